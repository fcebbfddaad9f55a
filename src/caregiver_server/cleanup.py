"""Stale-session CLI: ``caregiver-cleanup``.

Connects to the database and marks ``in_progress`` sessions that have not
been touched for ``--days`` days as ``abandoned``.  This is the only place
(besides the equivalent admin endpoint) that sets the abandoned status.
Intended for cron jobs or one-off maintenance.

Examples::

    # Abandon sessions idle for longer than $STALE_SESSION_DAYS (default 30)
    uv run caregiver-cleanup

    # Abandon sessions idle for longer than a week
    uv run caregiver-cleanup --days 7
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

logger = logging.getLogger(__name__)


async def run_cleanup(*, days: int) -> int:
    """Abandon stale sessions and return the number of affected rows.

    Creates its own database session, runs the bulk update,
    and commits.  Safe to call from a CLI entry point or a scheduled task.
    """
    # Lazy imports to avoid loading DB machinery at module import time
    from caregiver_db.engine import dispose_engine, session_scope
    from caregiver_questionnaire.sessions import SessionManager

    sessions = SessionManager()

    try:
        async with session_scope() as db:
            affected = await sessions.abandon_stale_sessions(db, older_than_days=days)

        logger.info("Cleanup complete: abandoned=%d, days=%d", affected, days)
        return affected
    finally:
        await dispose_engine()


def cli() -> None:
    """Console-script entry point: ``caregiver-cleanup``.

    Parses command-line arguments and runs the async cleanup function.
    """
    parser = argparse.ArgumentParser(
        prog="caregiver-cleanup",
        description="Mark stale in-progress questionnaire sessions as abandoned.",
    )
    parser.add_argument(
        "--days",
        type=int,
        default=int(os.getenv("STALE_SESSION_DAYS", "30")),
        help="Idle threshold in days (default: $STALE_SESSION_DAYS or 30)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )

    args = parser.parse_args()
    if args.days < 1:
        parser.error("--days must be at least 1")

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    affected = asyncio.run(run_cleanup(days=args.days))

    print(f"Abandoned sessions: {affected}")
    sys.exit(0)
