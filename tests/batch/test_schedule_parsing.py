"""
Tests for pawnshop_batch.domain.schedule.

Pure functions -- no threads, no clock, no logging.
"""

from datetime import timedelta

import pytest

from pawnshop_batch.domain.schedule import (
    DEFAULT_INTERVAL,
    ParsedSchedule,
    parse_duration,
    parse_schedule,
    validate_schedule,
)
from pawnshop_batch.domain.types import ScheduleKind
from pawnshop_kernel.exceptions import InvalidScheduleError


# =============================================================================
# Duration literals
# =============================================================================


class TestParseDuration:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("6h", timedelta(hours=6)),
            ("30m", timedelta(minutes=30)),
            ("45s", timedelta(seconds=45)),
            ("250ms", timedelta(milliseconds=250)),
            ("1h30m", timedelta(hours=1, minutes=30)),
            ("2h45m30s", timedelta(hours=2, minutes=45, seconds=30)),
            ("1.5h", timedelta(minutes=90)),
            (".5s", timedelta(milliseconds=500)),
            ("1500us", timedelta(microseconds=1500)),
            ("1500µs", timedelta(microseconds=1500)),
            ("0", timedelta(0)),
            ("0s", timedelta(0)),
        ],
    )
    def test_valid_literals(self, text, expected):
        assert parse_duration(text) == expected

    def test_negative_sign(self):
        assert parse_duration("-5m") == timedelta(minutes=-5)

    def test_positive_sign(self):
        assert parse_duration("+5m") == timedelta(minutes=5)

    def test_nanoseconds_truncate_to_microseconds(self):
        assert parse_duration("1999ns") == timedelta(microseconds=1)

    @pytest.mark.parametrize("text", ["500ns", "1ns", "0.5us"])
    def test_sub_microsecond_duration_rounds_up(self, text):
        assert parse_duration(text) == timedelta(microseconds=1)

    def test_negative_sub_microsecond_duration(self):
        assert parse_duration("-500ns") == timedelta(microseconds=-1)

    def test_duration_too_large_raises(self):
        with pytest.raises(InvalidScheduleError) as exc_info:
            parse_duration("99999999999h")
        assert exc_info.value.reason == "duration out of range"

    @pytest.mark.parametrize("text", ["", "-", "6", "6x", "h", "1h30", "abc", "1.h.5"])
    def test_invalid_literals_raise(self, text):
        with pytest.raises(InvalidScheduleError):
            parse_duration(text)

    def test_error_carries_original_text(self):
        with pytest.raises(InvalidScheduleError) as exc_info:
            parse_duration("-")
        assert exc_info.value.expression == "-"
        assert exc_info.value.reason == "empty duration"


# =============================================================================
# Schedule expressions
# =============================================================================


class TestParseSchedule:
    def test_hourly(self):
        parsed = parse_schedule("hourly")
        assert parsed.interval == timedelta(hours=1)
        assert parsed.kind == ScheduleKind.HOURLY
        assert not parsed.is_fallback

    def test_daily(self):
        parsed = parse_schedule("daily")
        assert parsed.interval == timedelta(hours=24)
        assert parsed.kind == ScheduleKind.DAILY

    def test_every_duration(self):
        parsed = parse_schedule("every:6h")
        assert parsed.interval == timedelta(hours=6)
        assert parsed.kind == ScheduleKind.EVERY

    def test_every_minutes(self):
        assert parse_schedule("every:90m").interval == timedelta(minutes=90)

    def test_every_compound_duration(self):
        assert parse_schedule("every:1h30m").interval == timedelta(minutes=90)

    def test_unparseable_every_falls_back_to_daily(self):
        parsed = parse_schedule("every:notaduration")
        assert parsed.interval == timedelta(hours=24)
        assert parsed.kind == ScheduleKind.FALLBACK

    def test_literals_are_case_sensitive(self):
        parsed = parse_schedule("Hourly")
        assert parsed.is_fallback
        assert parsed.interval == DEFAULT_INTERVAL

    def test_unknown_expression_falls_back_to_24h(self):
        parsed = parse_schedule("weekly")
        assert parsed == ParsedSchedule(
            "weekly", timedelta(hours=24), ScheduleKind.FALLBACK,
            fallback_reason="unrecognized schedule expression",
        )

    def test_cron_expression_is_not_supported(self):
        assert parse_schedule("0 * * * *").is_fallback

    def test_bad_every_duration_falls_back_with_reason(self):
        parsed = parse_schedule("every:soon")
        assert parsed.is_fallback
        assert parsed.interval == DEFAULT_INTERVAL
        assert parsed.fallback_reason.startswith("invalid duration")

    def test_empty_every_falls_back(self):
        assert parse_schedule("every:").is_fallback

    def test_out_of_range_every_falls_back(self):
        parsed = parse_schedule("every:99999999999h")
        assert parsed.is_fallback
        assert parsed.interval == DEFAULT_INTERVAL
        assert parsed.fallback_reason == "invalid duration: duration out of range"

    def test_zero_interval_is_parsed_not_rejected(self):
        parsed = parse_schedule("every:0s")
        assert parsed.interval == timedelta(0)
        assert parsed.kind == ScheduleKind.EVERY
        assert not parsed.is_positive

    def test_negative_interval_is_parsed(self):
        assert parse_schedule("every:-5m").interval == timedelta(minutes=-5)


class TestValidateSchedule:
    def test_positive_interval_passes(self):
        assert validate_schedule("every:20ms").interval == timedelta(milliseconds=20)

    def test_nanosecond_interval_is_positive(self):
        assert validate_schedule("every:500ns").interval == timedelta(microseconds=1)

    def test_fallback_is_positive(self):
        assert validate_schedule("fortnightly").interval == DEFAULT_INTERVAL

    @pytest.mark.parametrize("expression", ["every:0s", "every:-5m", "every:0"])
    def test_non_positive_interval_rejected(self, expression):
        with pytest.raises(InvalidScheduleError, match="interval must be positive"):
            validate_schedule(expression)
