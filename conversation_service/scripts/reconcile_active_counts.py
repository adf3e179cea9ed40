#!/usr/bin/env python
# conversation_service/scripts/reconcile_active_counts.py

"""
Recompute every user's active conversation counter from the conversations
table. Intended to run periodically (cron or a scheduled job).
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

# --- Logging and Helpers ---
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("reconcile_active_counts")

service_dir = Path(__file__).parent.parent.absolute()


def colored(text: str, color: str) -> str:
    colors = {
        "red": "\033[91m",
        "green": "\033[92m",
        "yellow": "\033[93m",
        "reset": "\033[0m",
    }
    return f"{colors.get(color, '')}{text}{colors['reset']}"


async def run(dry_run: bool, user_id: str | None) -> int:
    from conversation_service.clients.user_directory import DatabaseUserDirectory
    from conversation_service.db import dispose_engine, session_scope
    from conversation_service.services.maintenance import (
        reconcile_active_counts,
        reconcile_user,
    )

    try:
        async with session_scope() as session:
            users = DatabaseUserDirectory(session)
            if user_id:
                count = await reconcile_user(session, users, user_id)
                if count is None:
                    logger.error(colored(f"User {user_id} not found.", "red"))
                    return 1
                logger.info(colored(f"User {user_id} now has {count} active conversation(s).", "green"))
                return 0

            changed = await reconcile_active_counts(session, users, dry_run=dry_run)
    finally:
        await dispose_engine()

    verb = "Would update" if dry_run else "Updated"
    logger.info(colored(f"{verb} {len(changed)} user counter(s).", "green"))
    return 0


def main() -> int:
    dotenv_path = service_dir / ".env.dev"
    if dotenv_path.exists():
        logger.info(f"Loading environment variables from {dotenv_path}")
        load_dotenv(dotenv_path=dotenv_path, override=True)
    else:
        logger.warning(
            f"{dotenv_path} not found. Relying on shell environment variables."
        )

    parser = argparse.ArgumentParser(
        description="Reconcile per-user active conversation counters"
    )
    parser.add_argument(
        "--dry-run", action="store_true", help="Report changes without writing them."
    )
    parser.add_argument("--user", help="Only reconcile this user id.")
    args = parser.parse_args()

    try:
        return asyncio.run(run(args.dry_run, args.user))
    except Exception as e:
        logger.error(colored(f"Reconciliation failed: {e}", "red"), exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
