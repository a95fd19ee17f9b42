"""
Command builder for the external search/extraction and transcoding tools.

Every argument list is assembled here and validated before anything is
spawned. Processes are started with exec semantics (no shell), and user text
only ever appears inside the ``ytsearch1:`` argument, so it can never be
parsed as an option.
"""

from urllib.parse import urlparse

from tunestream.core.errors import CommandError
from tunestream.core.interfaces import CommandSpec

MAX_QUERY_LENGTH = 500
MAX_URL_LENGTH = 8192

SEARCH_CAPABILITY = "search"
TRANSCODE_CAPABILITY = "transcode"

# Canonical output: 16-bit signed PCM, 44.1 kHz, stereo, WAV container on stdout
PCM_CODEC = "pcm_s16le"
SAMPLE_RATE = 44100
CHANNELS = 2
CONTAINER = "wav"

AUDIO_FORMAT = "bestaudio[ext=m4a]/bestaudio"


def _check_text(value: str, name: str, max_length: int) -> str:
    if not isinstance(value, str):
        raise CommandError(f"{name} must be a string", data={"type": type(value).__name__})
    if not value.strip():
        raise CommandError(f"{name} must not be empty")
    if len(value) > max_length:
        raise CommandError(f"{name} is too long", data={"length": len(value), "max": max_length})
    if any(ch in value for ch in ("\x00", "\n", "\r")):
        raise CommandError(f"{name} contains control characters")
    return value


def validate_source_url(url: str) -> str:
    """Accept only absolute http(s) URLs as transcoder input."""
    url = _check_text(url, "source URL", MAX_URL_LENGTH).strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise CommandError("source URL must be an absolute http(s) URL", data={"scheme": parsed.scheme})
    return url


class CommandBuilder:
    """Builds validated CommandSpecs for yt-dlp and ffmpeg."""

    def __init__(self, ytdlp_bin: str = "yt-dlp", ffmpeg_bin: str = "ffmpeg"):
        self.ytdlp_bin = ytdlp_bin
        self.ffmpeg_bin = ffmpeg_bin

    def _search_target(self, query: str) -> str:
        query = _check_text(query, "query", MAX_QUERY_LENGTH).strip()
        return f"ytsearch1:{query}"

    def metadata(self, query: str) -> CommandSpec:
        """Single best match, metadata only, no download."""
        return CommandSpec(
            capability=SEARCH_CAPABILITY,
            program=self.ytdlp_bin,
            args=(
                "-j",
                "--no-playlist",
                "--skip-download",
                "--no-warnings",
                self._search_target(query),
            ),
        )

    def stream_url(self, query: str) -> CommandSpec:
        """Single best match, best audio format, URL only, no download."""
        return CommandSpec(
            capability=SEARCH_CAPABILITY,
            program=self.ytdlp_bin,
            args=(
                "--get-url",
                "--no-playlist",
                "--no-warnings",
                "--format", AUDIO_FORMAT,
                self._search_target(query),
            ),
        )

    def transcode(self, source_url: str) -> CommandSpec:
        """Decode the source and write canonical PCM WAV to stdout."""
        source_url = validate_source_url(source_url)
        return CommandSpec(
            capability=TRANSCODE_CAPABILITY,
            program=self.ffmpeg_bin,
            args=(
                "-nostdin",
                "-hide_banner",
                "-loglevel", "error",
                "-i", source_url,
                "-vn",
                "-f", CONTAINER,
                "-acodec", PCM_CODEC,
                "-ar", str(SAMPLE_RATE),
                "-ac", str(CHANNELS),
                "-",
            ),
        )
