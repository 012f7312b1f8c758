"""
Configuration Loader (``pawnshop_config.loader``).

Responsibility
--------------
Reads the optional worker YAML file, parses each section into the frozen
dataclasses of ``pawnshop_config.schema`` and then applies ``PAWN_*``
environment overrides on top.

Precedence (lowest to highest): dataclass defaults, YAML file, environment.

Environment overrides
---------------------
* ``PAWN_CONFIG_FILE``                 -- YAML path when none is passed
* ``PAWN_APP_ENV``                     -- ``environment``
* ``PAWN_TIMEZONE``                    -- ``timezone`` (IANA name, e.g. ``America/Guatemala``)
* ``PAWN_DATABASE_URL``                -- ``database.url``
* ``PAWN_LOG_LEVEL``                   -- ``logging.level``
* ``PAWN_EXECUTION_TIMEOUT_SECONDS``   -- ``scheduler.execution_timeout_seconds``
* ``PAWN_JOB_<NAME>_SCHEDULE``         -- ``jobs.schedules[<name>]``
* ``PAWN_DISABLED_JOBS``               -- comma-separated ``jobs.disabled``

Failure modes
-------------
* Missing YAML file  -> ``ConfigurationError`` (key ``config_file``).
* Malformed YAML     -> ``ConfigurationError`` chained from ``yaml.YAMLError``.
* A value of the wrong type or out of range -> ``ConfigurationError`` naming
  the dotted key.
"""

from __future__ import annotations

import os
import re
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Mapping

import pytz
import yaml

from pawnshop_config.schema import (
    DatabaseConfig,
    JobsConfig,
    LoggingConfig,
    SchedulerConfig,
    WorkerConfig,
)
from pawnshop_kernel.exceptions import ConfigurationError

ENV_PREFIX = "PAWN_"

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})
_JOB_SCHEDULE_ENV = re.compile(r"^PAWN_JOB_(?P<name>[A-Z0-9_]+)_SCHEDULE$")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        ConfigurationError: file missing, unreadable YAML, or a top level
            that is not a mapping.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError as exc:
        raise ConfigurationError("config_file", f"not found: {path}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError("config_file", f"invalid YAML in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError("config_file", "top level must be a mapping")
    return data


# ---------------------------------------------------------------------------
# Value coercion
# ---------------------------------------------------------------------------


def _section(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, Mapping):
        raise ConfigurationError(key, "must be a mapping")
    return value


def _as_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("1", "true", "yes", "on"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(key, f"expected a boolean, got {value!r}")


def _as_int(key: str, value: Any, minimum: int | None = None) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(key, f"expected an integer, got {value!r}")
    try:
        result = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(key, f"expected an integer, got {value!r}") from exc
    if minimum is not None and result < minimum:
        raise ConfigurationError(key, f"must be >= {minimum}, got {result}")
    return result


def _as_positive_float(key: str, value: Any) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(key, f"expected a number, got {value!r}") from exc
    if result <= 0:
        raise ConfigurationError(key, f"must be positive, got {result}")
    return result


def _as_timezone(key: str, value: Any) -> str | None:
    if value is None:
        return None
    name = str(value).strip()
    if not name:
        raise ConfigurationError(key, "time zone name is empty")
    try:
        pytz.timezone(name)
    except pytz.UnknownTimeZoneError as exc:
        raise ConfigurationError(key, f"unknown time zone {value!r}") from exc
    return name


def _as_decimal(key: str, value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ConfigurationError(key, f"expected a decimal, got {value!r}") from exc


def _as_log_level(key: str, value: Any) -> str:
    level = str(value).strip().upper()
    if level not in _LOG_LEVELS:
        raise ConfigurationError(key, f"unknown log level {value!r}")
    return level


def _as_names(key: str, value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        raise ConfigurationError(key, "expected a list or comma-separated string")
    return tuple(str(item).strip() for item in items if str(item).strip())


# ---------------------------------------------------------------------------
# Section parsers
# ---------------------------------------------------------------------------


def parse_database(data: Mapping[str, Any]) -> DatabaseConfig:
    defaults = DatabaseConfig()
    return DatabaseConfig(
        url=str(data.get("url", defaults.url)),
        echo=_as_bool("database.echo", data.get("echo", defaults.echo)),
        pool_size=_as_int("database.pool_size", data.get("pool_size", defaults.pool_size), 1),
        max_overflow=_as_int(
            "database.max_overflow", data.get("max_overflow", defaults.max_overflow), 0,
        ),
    )


def parse_logging(data: Mapping[str, Any]) -> LoggingConfig:
    return LoggingConfig(
        level=_as_log_level("logging.level", data.get("level", LoggingConfig().level)),
    )


def _check_stop_timeout(scheduler: SchedulerConfig) -> SchedulerConfig:
    """Shutdown must not give up on a job that is still within its time limit."""
    stop = scheduler.stop_timeout_seconds
    if stop is not None and stop < scheduler.execution_timeout_seconds:
        raise ConfigurationError(
            "scheduler.stop_timeout_seconds",
            f"must be at least scheduler.execution_timeout_seconds "
            f"({scheduler.execution_timeout_seconds}), got {stop}",
        )
    return scheduler


def parse_scheduler(data: Mapping[str, Any]) -> SchedulerConfig:
    defaults = SchedulerConfig()
    stop_raw = data.get("stop_timeout_seconds", defaults.stop_timeout_seconds)
    return _check_stop_timeout(SchedulerConfig(
        execution_timeout_seconds=_as_positive_float(
            "scheduler.execution_timeout_seconds",
            data.get("execution_timeout_seconds", defaults.execution_timeout_seconds),
        ),
        stop_timeout_seconds=None if stop_raw is None else _as_positive_float(
            "scheduler.stop_timeout_seconds", stop_raw,
        ),
    ))


def parse_jobs(data: Mapping[str, Any]) -> JobsConfig:
    """
    Parse the ``jobs`` section.

    ``schedules`` entries must be strings; their syntax is checked when
    the jobs are registered, not here.
    """
    defaults = JobsConfig()

    schedules_raw = data.get("schedules") or {}
    if not isinstance(schedules_raw, Mapping):
        raise ConfigurationError("jobs.schedules", "must be a mapping of job name to schedule")
    schedules: dict[str, str] = {}
    for name, expression in schedules_raw.items():
        if not isinstance(expression, str):
            raise ConfigurationError(
                f"jobs.schedules.{name}", f"expected a string, got {expression!r}",
            )
        schedules[str(name)] = expression

    reminder_raw = data.get("reminder_days", defaults.reminder_days)
    if not isinstance(reminder_raw, (list, tuple)) or not reminder_raw:
        raise ConfigurationError("jobs.reminder_days", "must be a non-empty list of days")
    reminder_days = tuple(
        sorted({_as_int("jobs.reminder_days", d, 0) for d in reminder_raw})
    )

    branch_raw = data.get("branch_id", defaults.branch_id)
    branch_id = None if branch_raw is None else _as_int("jobs.branch_id", branch_raw, 1)

    return JobsConfig(
        schedules=schedules,
        disabled=_as_names("jobs.disabled", data.get("disabled")),
        reminder_days=reminder_days,
        page_size=_as_int("jobs.page_size", data.get("page_size", defaults.page_size), 1),
        late_fee_epsilon=_as_decimal(
            "jobs.late_fee_epsilon", data.get("late_fee_epsilon", defaults.late_fee_epsilon),
        ),
        notification_channel=str(
            data.get("notification_channel", defaults.notification_channel)
        ),
        currency_symbol=str(data.get("currency_symbol", defaults.currency_symbol)),
        branch_id=branch_id,
    )


def parse_config(data: Mapping[str, Any]) -> WorkerConfig:
    """Parse a full configuration mapping (as loaded from YAML)."""
    app = _section(data, "app")
    defaults = WorkerConfig()
    return WorkerConfig(
        app_name=str(app.get("name", defaults.app_name)),
        environment=str(app.get("environment", defaults.environment)),
        timezone=_as_timezone("app.timezone", app.get("timezone", defaults.timezone)),
        database=parse_database(_section(data, "database")),
        logging=parse_logging(_section(data, "logging")),
        scheduler=parse_scheduler(_section(data, "scheduler")),
        jobs=parse_jobs(_section(data, "jobs")),
    )


# ---------------------------------------------------------------------------
# Environment overrides
# ---------------------------------------------------------------------------


def apply_env_overrides(config: WorkerConfig, env: Mapping[str, str]) -> WorkerConfig:
    """Return ``config`` with every ``PAWN_*`` override present in ``env`` applied."""
    if "PAWN_APP_ENV" in env:
        config = replace(config, environment=env["PAWN_APP_ENV"])

    if "PAWN_TIMEZONE" in env:
        config = replace(config, timezone=_as_timezone("PAWN_TIMEZONE", env["PAWN_TIMEZONE"]))

    if "PAWN_DATABASE_URL" in env:
        config = replace(config, database=replace(config.database, url=env["PAWN_DATABASE_URL"]))

    if "PAWN_LOG_LEVEL" in env:
        config = replace(
            config,
            logging=LoggingConfig(level=_as_log_level("PAWN_LOG_LEVEL", env["PAWN_LOG_LEVEL"])),
        )

    if "PAWN_EXECUTION_TIMEOUT_SECONDS" in env:
        timeout = _as_positive_float(
            "PAWN_EXECUTION_TIMEOUT_SECONDS", env["PAWN_EXECUTION_TIMEOUT_SECONDS"],
        )
        config = replace(
            config,
            scheduler=_check_stop_timeout(
                replace(config.scheduler, execution_timeout_seconds=timeout),
            ),
        )

    schedules = dict(config.jobs.schedules)
    for key, value in env.items():
        match = _JOB_SCHEDULE_ENV.match(key)
        if match:
            schedules[match.group("name").lower()] = value

    disabled = config.jobs.disabled
    if "PAWN_DISABLED_JOBS" in env:
        disabled = _as_names("PAWN_DISABLED_JOBS", env["PAWN_DISABLED_JOBS"])

    return replace(config, jobs=replace(config.jobs, schedules=schedules, disabled=disabled))


def load_config(
    path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> WorkerConfig:
    """
    Build the worker configuration.

    Args:
        path: YAML file; falls back to ``PAWN_CONFIG_FILE``; when neither is
            set only defaults and environment overrides apply.
        env: Environment mapping (defaults to ``os.environ``).
    """
    env = os.environ if env is None else env
    if path is None and env.get("PAWN_CONFIG_FILE"):
        path = env["PAWN_CONFIG_FILE"]

    data = load_yaml_file(Path(path)) if path is not None else {}
    return apply_env_overrides(parse_config(data), env)
