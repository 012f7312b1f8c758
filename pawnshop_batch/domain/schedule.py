"""
Pure schedule expression parsing.

Contract:
    ``parse_schedule(expression)`` maps a schedule expression to a fixed
    interval and is PURE -- no I/O, no clock, no logging.  The caller (the
    scheduler's ``register``) decides what to log about the result.

Grammar:
    ``hourly``            -> 1 hour
    ``daily``             -> 24 hours
    ``every:<duration>``  -> the duration, e.g. ``every:6h``, ``every:1h30m``,
                             ``every:250ms``
    anything else         -> 24 hours, tagged ``ScheduleKind.FALLBACK``

Duration literals are a sequence of decimal numbers, each with an optional
fraction and a mandatory unit suffix (``ns``, ``us``/``µs``, ``ms``, ``s``,
``m``, ``h``), optionally preceded by a sign.  ``"0"`` alone is allowed.

Invariants enforced:
    - Literals are exact and case-sensitive (``"Hourly"`` is a fallback).
    - An ``every:`` whose duration does not parse falls back to 24 hours
      rather than failing; ``ParsedSchedule.fallback_reason`` says why.
    - ``parse_schedule`` never rejects a non-positive interval; use
      ``validate_schedule`` for that.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal, InvalidOperation

from pawnshop_batch.domain.types import ScheduleKind
from pawnshop_kernel.exceptions import InvalidScheduleError

HOURLY = "hourly"
DAILY = "daily"
EVERY_PREFIX = "every:"

DEFAULT_INTERVAL = timedelta(hours=24)


# =============================================================================
# Duration literals
# =============================================================================

_UNIT_NANOSECONDS: dict[str, int] = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,  # micro sign
    "μs": 1_000,  # greek mu
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}

# Longer units first so "ms" is not read as "m" followed by garbage.
_ELEMENT = re.compile(
    r"(?P<number>[0-9]*(?:\.[0-9]*)?)"
    r"(?P<unit>ns|us|µs|μs|ms|s|m|h)"
)


def parse_duration(text: str) -> timedelta:
    """Parse a duration literal such as ``"6h"``, ``"1h30m"`` or ``"-1.5s"``.

    Sub-microsecond remainders are truncated (timedelta resolution), except
    that a non-zero duration shorter than one microsecond becomes 1µs.

    Raises:
        InvalidScheduleError: empty input, missing unit, unknown unit, a
            number with no digits, or a duration timedelta cannot hold.
    """
    original = text
    negative = False
    if text[:1] in ("-", "+"):
        negative = text[0] == "-"
        text = text[1:]

    if text == "0":
        return timedelta(0)
    if not text:
        raise InvalidScheduleError(original, "empty duration")

    total_ns = Decimal(0)
    pos = 0
    while pos < len(text):
        match = _ELEMENT.match(text, pos)
        if match is None:
            if not text[pos].isdigit() and text[pos] != ".":
                raise InvalidScheduleError(original, f"unexpected character {text[pos]!r}")
            raise InvalidScheduleError(original, "missing or unknown unit")

        number = match.group("number")
        if not any(ch.isdigit() for ch in number):
            raise InvalidScheduleError(original, "number expected before unit")
        try:
            value = Decimal(number)
        except InvalidOperation as exc:
            raise InvalidScheduleError(original, f"bad number {number!r}") from exc

        total_ns += value * _UNIT_NANOSECONDS[match.group("unit")]
        pos = match.end()

    microseconds = int(total_ns // 1000)
    if microseconds == 0 and total_ns > 0:
        microseconds = 1
    try:
        return timedelta(microseconds=-microseconds if negative else microseconds)
    except OverflowError as exc:
        raise InvalidScheduleError(original, "duration out of range") from exc


# =============================================================================
# Schedule expressions
# =============================================================================


@dataclass(frozen=True)
class ParsedSchedule:
    """Result of interpreting a schedule expression."""

    expression: str
    interval: timedelta
    kind: ScheduleKind
    fallback_reason: str | None = None

    @property
    def is_fallback(self) -> bool:
        return self.kind == ScheduleKind.FALLBACK

    @property
    def is_positive(self) -> bool:
        return self.interval > timedelta(0)


def parse_schedule(expression: str) -> ParsedSchedule:
    """Interpret ``expression`` as a fixed interval (pure, never raises)."""
    if expression == HOURLY:
        return ParsedSchedule(expression, timedelta(hours=1), ScheduleKind.HOURLY)

    if expression == DAILY:
        return ParsedSchedule(expression, timedelta(hours=24), ScheduleKind.DAILY)

    if expression.startswith(EVERY_PREFIX):
        try:
            interval = parse_duration(expression[len(EVERY_PREFIX):])
        except InvalidScheduleError as exc:
            return ParsedSchedule(
                expression, DEFAULT_INTERVAL, ScheduleKind.FALLBACK,
                fallback_reason=f"invalid duration: {exc.reason}",
            )
        return ParsedSchedule(expression, interval, ScheduleKind.EVERY)

    return ParsedSchedule(
        expression, DEFAULT_INTERVAL, ScheduleKind.FALLBACK,
        fallback_reason="unrecognized schedule expression",
    )


def validate_schedule(expression: str) -> ParsedSchedule:
    """Parse ``expression`` and reject intervals that are not positive.

    Raises:
        InvalidScheduleError: e.g. ``every:0s`` or ``every:-5m``.
    """
    parsed = parse_schedule(expression)
    if not parsed.is_positive:
        raise InvalidScheduleError(expression, f"interval must be positive, got {parsed.interval}")
    return parsed
