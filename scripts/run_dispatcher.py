"""Run the notification dispatcher outside of the HTTP application."""

from __future__ import annotations

import argparse
import logging
import threading

from sqlalchemy.exc import SQLAlchemyError

from notification_engine.config import get_settings
from notification_engine.infrastructure.database import initialize_database
from notification_engine.runtime import build_runtime

logger = logging.getLogger("run_dispatcher")


def parse_args() -> argparse.Namespace:
    """Parse command line arguments for the dispatcher runner."""

    parser = argparse.ArgumentParser(
        description="Schedule and deliver push notifications.",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--once",
        action="store_true",
        help="Process the currently due jobs a single time and exit.",
    )
    mode.add_argument(
        "--regenerate",
        action="store_true",
        help="Rebuild the recurring job schedule of every user and exit.",
    )
    return parser.parse_args()


def main() -> None:
    """Run the dispatcher according to the provided command line arguments."""

    args = parse_args()
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    try:
        initialize_database()
    except SQLAlchemyError as exc:
        raise SystemExit(f"Could not prepare the database: {exc}") from exc

    runtime = build_runtime(settings)
    try:
        if args.once:
            result = runtime.dispatcher.tick()
            print(
                "Tick finished:\n"
                f"  Claimed: {result.claimed if result else 0}\n"
                f"  Succeeded: {result.succeeded if result else 0}\n"
                f"  Failed: {result.failed if result else 0}"
            )
            return
        if args.regenerate:
            summary = runtime.dispatcher.regenerate_jobs()
            if summary is None:
                raise SystemExit("Job regeneration failed; see the log for details.")
            print(
                "Jobs regenerated:\n"
                f"  Daily reminders: {summary.daily}\n"
                f"  Streak warnings: {summary.streak}\n"
                f"  Weekly summaries: {summary.weekly}\n"
                f"  Tips: {summary.tips}"
            )
            return

        runtime.dispatcher.start()
        stop = threading.Event()
        try:
            stop.wait()
        except KeyboardInterrupt:
            logger.info("Interrupted; shutting down")
    finally:
        runtime.close()


if __name__ == "__main__":
    main()
