"""
Worker configuration schema.

Frozen dataclasses the loader produces from YAML plus ``PAWN_*`` environment
overrides.  Every field has a default so an empty file (or no file) yields a
runnable local configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings passed to ``pawnshop_kernel.db.init_engine_from_url``."""

    url: str = "sqlite:///pawnshop.db"
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 5


@dataclass(frozen=True)
class LoggingConfig:

    level: str = "INFO"


@dataclass(frozen=True)
class SchedulerConfig:
    """Execution limits for the job scheduler.

    ``stop_timeout_seconds`` of None makes shutdown wait for every running
    job; when set it may not be shorter than ``execution_timeout_seconds``.
    """

    execution_timeout_seconds: float = 300.0
    stop_timeout_seconds: float | None = None


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JobsConfig:
    """Schedule overrides and business knobs for the loan lifecycle jobs.

    ``schedules`` maps job name -> schedule expression and only needs the
    entries that differ from the built-in defaults.
    """

    schedules: dict[str, str] = field(default_factory=dict)
    disabled: tuple[str, ...] = ()
    reminder_days: tuple[int, ...] = (1, 3, 7)
    page_size: int = 1000
    late_fee_epsilon: Decimal = Decimal("0.01")
    notification_channel: str = "sms"
    currency_symbol: str = "Q"
    branch_id: int | None = None  # None = all branches


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkerConfig:
    """Complete worker configuration."""

    app_name: str = "pawnshop-worker"
    environment: str = "development"
    timezone: str | None = None  # IANA name; None = host offset
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    jobs: JobsConfig = field(default_factory=JobsConfig)
