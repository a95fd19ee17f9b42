"""Tests for duration parsing."""

import pytest

from tunestream.common.logging import parse_duration


@pytest.mark.unit
class TestParseDuration:
    """Tests for parse_duration()."""

    @pytest.mark.parametrize("value, expected", [
        (233, 233),
        (233.7, 233),
        ("233", 233),
        ("3:54", 234),
        ("1:02:03", 3723),
        ("0:07", 7),
    ])
    def test_supported_forms(self, value, expected):
        assert parse_duration(value) == expected

    @pytest.mark.parametrize("value", [None, True, "", "abc", "1:2:3:4", "-5", -1, "3:xx"])
    def test_unparsable_values(self, value):
        assert parse_duration(value) is None

    @pytest.mark.parametrize("value", [float("inf"), float("-inf"), float("nan"), "1e999", "inf", "NaN"])
    def test_non_finite_values(self, value):
        """Non-finite numbers are not durations.

        ЧТО ПРОВЕРЯЕМ:
            Infinity and NaN from yt-dlp JSON yield None instead of OverflowError
        """
        assert parse_duration(value) is None
