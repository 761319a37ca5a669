"""
Tests for HH:MM <-> minutes arithmetic.
"""

import pytest

from freetime.gap_truth.errors import ParseError, RangeError
from freetime.gap_truth.time_math import duration_minutes, format_span, to_minutes, to_time_string


class TestToMinutes:
    def test_midnight(self):
        assert to_minutes("00:00") == 0

    def test_working_hours(self):
        assert to_minutes("09:00") == 540
        assert to_minutes("17:30") == 1050

    def test_last_minute(self):
        assert to_minutes("23:59") == 1439

    def test_unpadded_hour(self):
        assert to_minutes("9:05") == 545

    def test_seconds_are_ignored(self):
        assert to_minutes("09:00:30") == 540

    @pytest.mark.parametrize("bad", ["24:00", "12:60", "ab:cd", "12", "", "12:3x", "-1:00", "09:00:61"])
    def test_rejects_malformed(self, bad):
        with pytest.raises(ParseError):
            to_minutes(bad)

    def test_rejects_non_string(self):
        with pytest.raises(ParseError):
            to_minutes(540)

    def test_parse_error_is_value_error(self):
        with pytest.raises(ValueError):
            to_minutes("nope")


class TestToTimeString:
    def test_zero_padded(self):
        assert to_time_string(0) == "00:00"
        assert to_time_string(545) == "09:05"
        assert to_time_string(1439) == "23:59"

    @pytest.mark.parametrize("bad", [-1, 1440, 5000])
    def test_out_of_range(self, bad):
        with pytest.raises(RangeError):
            to_time_string(bad)

    @pytest.mark.parametrize("bad", [1.5, "540", None, True])
    def test_non_int(self, bad):
        with pytest.raises(RangeError):
            to_time_string(bad)

    def test_inverse_of_to_minutes(self):
        for minutes in (0, 59, 60, 61, 719, 720, 1439):
            assert to_minutes(to_time_string(minutes)) == minutes


class TestDuration:
    def test_positive(self):
        assert duration_minutes("09:00", "10:30") == 90

    def test_may_be_negative(self):
        assert duration_minutes("17:00", "09:00") == -480


class TestFormatSpan:
    def test_end_of_day(self):
        assert format_span(1380, 1440) == "23:00-24:00"

    def test_regular(self):
        assert format_span(660, 675) == "11:00-11:15"
