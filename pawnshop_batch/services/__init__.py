"""Stateful scheduler services."""

from pawnshop_batch.services.context import ExecutionContext
from pawnshop_batch.services.scheduler import Scheduler

__all__ = ["ExecutionContext", "Scheduler"]
