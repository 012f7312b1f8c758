"""
Run the pawnshop background worker: load config, wire the jobs and run the scheduler.

Usage:
    pawnshop-worker [--config worker.yaml] [options]

Examples:
    # Run every enabled job until SIGINT/SIGTERM
    pawnshop-worker --config config/worker.yaml

    # Show the effective job schedules and exit (no database needed)
    pawnshop-worker --list-jobs

    # Execute one job once and exit (exit code 1 if it failed)
    pawnshop-worker --run-once process_overdue_loans

    # Create tables first (local SQLite runs)
    PAWN_DATABASE_URL=sqlite:///pawnshop.db pawnshop-worker --create-tables
"""

from __future__ import annotations

import argparse
import signal
import sys
import threading
from pathlib import Path

from pawnshop_config import load_config
from pawnshop_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from pawnshop_kernel.exceptions import ConfigurationError, JobNotFoundError
from pawnshop_kernel.logging_config import configure_logging, get_logger

from pawnshop_batch.domain.schedule import parse_schedule
from pawnshop_batch.jobs.registry import effective_schedules
from pawnshop_batch.orchestrator import WorkerOrchestrator

logger = get_logger("batch.worker")

EXIT_OK = 0
EXIT_JOB_FAILED = 1
EXIT_USAGE = 2


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pawnshop-worker",
        description="Pawnshop loan lifecycle worker.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML config file (default: PAWN_CONFIG_FILE env or built-in defaults).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override the configured log level (DEBUG, INFO, WARNING, ...).",
    )
    parser.add_argument(
        "--list-jobs",
        action="store_true",
        help="Print each job with its effective schedule and exit.",
    )
    parser.add_argument(
        "--run-once",
        metavar="JOB",
        default=None,
        help="Execute a single job synchronously and exit.",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create database tables before running.",
    )
    return parser.parse_args(argv)


def _list_jobs(schedules, disabled) -> None:
    for name, schedule, enabled in effective_schedules(schedules, disabled):
        parsed = parse_schedule(schedule)
        state = "enabled" if enabled else "disabled"
        note = f"  ({parsed.fallback_reason}, runs every 24h)" if parsed.is_fallback else ""
        print(f"{name:<28} {schedule:<12} {parsed.interval!s:>16}  {state}{note}")


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigurationError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_USAGE

    configure_logging(level=args.log_level or config.logging.level)

    if args.list_jobs:
        try:
            _list_jobs(config.jobs.schedules, config.jobs.disabled)
        except ConfigurationError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return EXIT_USAGE
        return EXIT_OK

    init_engine_from_url(
        config.database.url,
        echo=config.database.echo,
        pool_size=config.database.pool_size,
        max_overflow=config.database.max_overflow,
    )
    try:
        if args.create_tables:
            create_tables()

        try:
            orchestrator = WorkerOrchestrator.from_session_factory(get_session_factory(), config)
            scheduler = orchestrator.create_scheduler()
        except ConfigurationError as exc:
            logger.error("worker_configuration_invalid", extra={"error": str(exc)})
            return EXIT_USAGE

        if args.run_once:
            try:
                result = scheduler.run_now(args.run_once)
            except JobNotFoundError as exc:
                logger.error("job_not_found", extra={"job": exc.job_name})
                return EXIT_USAGE
            return EXIT_OK if result.succeeded else EXIT_JOB_FAILED

        return _run_until_signalled(scheduler, config.scheduler.stop_timeout_seconds)
    finally:
        reset_engine()


def _run_until_signalled(
    scheduler,
    stop_timeout: float | None,
    stop_requested: threading.Event | None = None,
) -> int:
    """Run ``scheduler`` until SIGINT/SIGTERM (or ``stop_requested``), then stop it.

    Returns EXIT_JOB_FAILED when a job is still running after ``stop_timeout``;
    the caller disposes the engine only after this returns.
    """
    stop_requested = stop_requested or threading.Event()

    def _handle_signal(signum, frame) -> None:
        logger.info(
            "shutdown_signal_received",
            extra={"signal": signal.Signals(signum).name},
        )
        stop_requested.set()

    previous = {
        sig: signal.signal(sig, _handle_signal) for sig in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        scheduler.start()
        logger.info("worker_started", extra={"jobs": list(scheduler.job_names)})

        # Short waits keep the main thread responsive to signals.
        while not stop_requested.wait(timeout=1.0):
            pass

        if not scheduler.stop(timeout=stop_timeout):
            logger.error(
                "worker_stop_incomplete",
                extra={"stop_timeout_seconds": stop_timeout},
            )
            return EXIT_JOB_FAILED
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    logger.info("worker_stopped")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
