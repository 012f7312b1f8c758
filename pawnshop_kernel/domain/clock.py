"""
Clock -- Deterministic time abstraction.

Responsibility:
    Provides an injectable clock so that jobs never call ``datetime.now()``
    directly. Overdue detection, fee accrual and reminder windows are all
    functions of "now", and tests pin it with ``DeterministicClock``.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, time, timedelta, timezone, tzinfo


class Clock(ABC):
    """
    Abstract clock interface.

    Contract:
        All services that need current time receive a Clock instance
        via constructor injection.

    Guarantees:
        - ``now()`` returns a timezone-aware ``datetime`` in the server's
          local zone (calendar-day boundaries are local).
        - ``now_utc()`` returns a UTC-normalized ``datetime``.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current local time."""
        ...

    @abstractmethod
    def now_utc(self) -> datetime:
        """Get the current UTC time."""
        ...

    def start_of_day(self, day: date) -> datetime:
        """Local midnight opening ``day``, in the zone ``now()`` reports."""
        tz = self.now().tzinfo
        naive = datetime.combine(day, time.min)
        if hasattr(tz, "localize"):
            # pytz zones pick the offset in force on ``day``
            return tz.localize(naive)
        return naive.replace(tzinfo=tz)


class SystemClock(Clock):
    """
    Production clock that returns actual system time.

    ``zone`` should be a named zone (``pytz.timezone("America/Guatemala")``)
    so that local calendar days follow daylight-saving changes.  Without one,
    ``now()`` carries the host's current fixed UTC offset.
    """

    def __init__(self, zone: tzinfo | None = None):
        self._zone = zone

    @property
    def zone(self) -> tzinfo | None:
        return self._zone

    def now(self) -> datetime:
        """Get current system time in the local zone."""
        if self._zone is not None:
            return datetime.now(self._zone)
        return datetime.now().astimezone()

    def now_utc(self) -> datetime:
        """Get current UTC time."""
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    Guarantees:
        - ``now()`` returns the same value on repeated calls until ``advance()``
          or ``set_time()`` is called.
        - ``tick()`` advances by exactly 1 second and returns the new time.
    """

    def __init__(self, fixed_time: datetime | None = None):
        """
        Initialize with optional fixed time.

        Args:
            fixed_time: If provided, clock starts at this time.
                       If None, uses a default epoch time (UTC).
        """
        self._fixed_time = fixed_time or datetime(
            2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc
        )
        self._advance_seconds = 0.0

    def now(self) -> datetime:
        """Get the fixed/controlled time."""
        return self._fixed_time + timedelta(seconds=self._advance_seconds)

    def now_utc(self) -> datetime:
        """Get the fixed/controlled UTC time."""
        return self.now().astimezone(timezone.utc)

    def set_time(self, time: datetime) -> None:
        """Set the clock to a specific time."""
        self._fixed_time = time
        self._advance_seconds = 0.0

    def advance(self, seconds: float = 1) -> None:
        """Advance the clock by the specified seconds."""
        self._advance_seconds += seconds

    def advance_days(self, days: float) -> None:
        """Advance the clock by whole or fractional days."""
        self.advance(days * 86400)

    def tick(self) -> datetime:
        """Advance by 1 second and return new time."""
        self.advance(1)
        return self.now()

