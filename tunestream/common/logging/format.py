"""Duration parsing utilities.

yt-dlp reports durations as seconds (int or float) but some extractors only
provide ``duration_string`` ("3:54", "1:02:03"). Everything is canonicalized
to whole seconds.
"""

import math
from typing import Any, Optional


def _whole_seconds(seconds: float) -> Optional[int]:
    # NaN, infinities and negatives are not durations
    if not math.isfinite(seconds) or seconds < 0:
        return None
    return int(seconds)


def parse_duration(value: Any) -> Optional[int]:
    """Convert a duration in any supported textual form to whole seconds.

    Args:
        value: int, float, numeric string, "m:ss" or "h:mm:ss"

    Returns:
        Whole seconds, or None if the value cannot be interpreted

    Examples:
        >>> parse_duration(233.7)
        233
        >>> parse_duration("3:54")
        234
        >>> parse_duration("1:02:03")
        3723
        >>> parse_duration(float("inf")) is None
        True
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float):
        return _whole_seconds(value)

    text = str(value).strip()
    if not text:
        return None

    if ":" not in text:
        try:
            seconds = float(text)
        except ValueError:
            return None
        return _whole_seconds(seconds)

    parts = text.split(":")
    if len(parts) > 3:
        return None

    total = 0
    try:
        for part in parts:
            number = int(part or "0")
            if number < 0:
                return None
            total = total * 60 + number
    except ValueError:
        return None

    return total
