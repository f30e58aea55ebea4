"""
Sweep driver.

Runs InstanceMaterializer on a timer (or once with --once). Holds no state of
its own, so several drivers may point at the same database.
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from datetime import date

from taskcadence.config import SETTINGS
from taskcadence.domain.errors import StorageUnavailable
from taskcadence.infra.db import init_db
from taskcadence.infra.logging import setup_logging
from taskcadence.infra.repository import TaskRepository
from taskcadence.services.materializer import InstanceMaterializer

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Materialize due recurring task instances.")
    parser.add_argument("--once", action="store_true", help="run a single sweep and exit")
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="reference date (YYYY-MM-DD) for a --once sweep; defaults to today",
    )
    parser.add_argument("--log-level", default=None, help="overrides LOG_LEVEL")
    args = parser.parse_args(argv)
    if args.date is not None and not args.once:
        parser.error("--date requires --once")
    return args


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    setup_logging(args.log_level)
    try:
        init_db()
    except Exception as exc:  # noqa: BLE001
        logger.error("DB error: %s", exc)
        sys.exit(1)

    materializer = InstanceMaterializer(
        TaskRepository(),
        catch_up_limit=SETTINGS.sweep_catch_up_limit,
        max_workers=SETTINGS.sweep_max_workers,
    )

    stop_event = threading.Event()

    def _request_stop(signum, _frame) -> None:
        logger.info("Signal %s received; stopping after the current template", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _request_stop)
    signal.signal(signal.SIGTERM, _request_stop)

    while not stop_event.is_set():
        today = args.date or date.today()
        try:
            materializer.sweep(today, stop_event)
        except StorageUnavailable as exc:
            logger.warning("Storage unavailable, next attempt in %ss: %s", SETTINGS.sweep_interval_seconds, exc)
        if args.once:
            break
        stop_event.wait(SETTINGS.sweep_interval_seconds)

    logger.info("Sweep driver stopped")


if __name__ == "__main__":
    main()
