#!/usr/bin/env python3
"""
Delete expired sessions, old login attempts and dead one-time tokens.

Sessions are only flagged inactive while the service runs; this job removes
them. Run it from cron.

Usage:
    # Dry run (shows what would be deleted)
    python scripts/sweep_sessions.py --dry-run

    # Delete
    python scripts/sweep_sessions.py --confirm
"""

import argparse
import asyncio
import sys

from safra_auth.core.database import get_async_session
from safra_auth.core.logging import configure_logging
from safra_auth.services.maintenance import sweep_expired


async def main() -> int:
    parser = argparse.ArgumentParser(description="Sweep expired auth records")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be deleted without actually deleting",
    )
    parser.add_argument(
        "--confirm",
        action="store_true",
        help="Actually delete the records (required to make changes)",
    )
    args = parser.parse_args()

    if not args.dry_run and not args.confirm:
        print("\nERROR: Must specify --dry-run or --confirm")
        return 1

    configure_logging()

    async with get_async_session() as db:
        report = await sweep_expired(db, dry_run=args.dry_run)

    verb = "Would delete" if args.dry_run else "Deleted"
    print("\n" + "=" * 50)
    for kind, count in report.sessions.items():
        print(f"{verb} {count} {kind} sessions")
    for kind, count in report.login_attempts.items():
        print(f"{verb} {count} {kind} login attempts")
    print(f"{verb} {report.password_resets} password reset tokens")
    print(f"{verb} {report.email_verifications} email verification tokens")
    print("=" * 50)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
