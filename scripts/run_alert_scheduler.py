"""Run the certificate alert scheduler from the command line."""

from __future__ import annotations

import argparse
import json
import logging
import time
from typing import Optional, Sequence

from scripts._path import add_root

add_root()

from core.logging import setup_logging  # noqa: E402
from database import init_db  # noqa: E402
from services.scheduler_runner import (  # noqa: E402
    SCHEDULER_BASE_INTERVAL_MINUTES,
    get_scheduler_runner,
)

logger = logging.getLogger(__name__)


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Certificate expiry alert scheduler.")
    parser.add_argument("--once", action="store_true", help="Run a single tick and exit.")
    parser.add_argument(
        "--interval",
        type=int,
        default=SCHEDULER_BASE_INTERVAL_MINUTES,
        help="Minutes between ticks when looping (default: %(default)s).",
    )
    parser.add_argument("--init-db", action="store_true", help="Create missing tables before running.")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    setup_logging()
    args = _parse_args(argv)
    if args.init_db:
        init_db()

    runner = get_scheduler_runner()
    if args.once:
        summary = runner.run_once()
        print(json.dumps(summary.as_dict() if summary else {"status": "disabled"}, ensure_ascii=False))
        return 0

    interval_seconds = max(1, args.interval) * 60
    logger.info("Alert scheduler loop started (interval=%s min).", args.interval)
    while True:
        try:
            runner.run_once()
        except Exception as exc:  # noqa: BLE001 - the next tick retries
            logger.warning("Alert scheduler tick failed: %s", exc)
        # Sleep until the next interval boundary so ticks land on whole minutes.
        time.sleep(interval_seconds - (time.time() % interval_seconds))


if __name__ == "__main__":
    raise SystemExit(main())
