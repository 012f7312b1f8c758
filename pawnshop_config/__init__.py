"""
pawnshop_config -- worker configuration.

``load_config()`` is the single entry point: YAML file (optional) plus
``PAWN_*`` environment overrides, returned as a frozen ``WorkerConfig``.
"""

from pawnshop_config.loader import load_config
from pawnshop_config.schema import (
    DatabaseConfig,
    JobsConfig,
    LoggingConfig,
    SchedulerConfig,
    WorkerConfig,
)

__all__ = [
    "DatabaseConfig",
    "JobsConfig",
    "LoggingConfig",
    "SchedulerConfig",
    "WorkerConfig",
    "load_config",
]
