"""
Pytest fixtures for the pawnshop worker test suite.

Provides:
- Structured logging configured once per session, plus ``captured_logs``
  (JSON lines parsed back to dicts) and ``recording_logger`` (an isolated
  logger for injection into Scheduler / LoanLifecycleJobs)
- A DeterministicClock pinned to ``FIXED_NOW``
- An in-memory SQLite engine with all tables created, and a session factory
"""

import json
import logging
from datetime import datetime, timezone
from io import StringIO
from uuid import uuid4

import pytest
from sqlalchemy.orm import sessionmaker

import pawnshop_kernel.models  # noqa: F401  (registers tables)
from pawnshop_kernel.db.base import Base
from pawnshop_kernel.db.engine import build_engine
from pawnshop_kernel.domain.clock import DeterministicClock
from pawnshop_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

from tests.fakes import RecordingHandler

FIXED_NOW = datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture pawnshop logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            scheduler.run_now("process_overdue_loans")
            logs = captured_logs()
            assert any(r["message"] == "job_execution_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("pawnshop")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


@pytest.fixture
def recording_logger():
    """An isolated logger plus the handler recording its records."""
    logger = logging.getLogger(f"test.recording.{uuid4().hex}")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    handler = RecordingHandler()
    logger.addHandler(handler)
    yield logger, handler
    logger.removeHandler(handler)


# =============================================================================
# Time
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(FIXED_NOW)


# =============================================================================
# Database (in-memory SQLite, one per test)
# =============================================================================


@pytest.fixture
def engine():
    eng = build_engine("sqlite://")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)
