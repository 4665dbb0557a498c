#!/usr/bin/env python3
"""
Create a staff (admin) account.

Admin accounts cannot self-register; this script bootstraps the first one.
The password is prompted for when not given on the command line.

Usage:
    python scripts/create_admin_user.py --email admin@safrareport.com --username admin
    python scripts/create_admin_user.py --email ed@safrareport.com --username ed --role editor
"""

import argparse
import asyncio
import getpass
import sys

from safra_auth.config import Role
from safra_auth.core.database import create_tables, get_async_session
from safra_auth.core.errors import AuthError
from safra_auth.core.logging import configure_logging
from safra_auth.core.principals import ADMIN
from safra_auth.core.security import PasswordHasher, validate_password_strength
from safra_auth.services.credential_store import CredentialStore


async def main() -> int:
    parser = argparse.ArgumentParser(description="Create an admin account")
    parser.add_argument("--email", required=True)
    parser.add_argument("--username", required=True)
    parser.add_argument(
        "--role",
        default=Role.ADMIN.value,
        choices=sorted(role.value for role in ADMIN.roles),
    )
    parser.add_argument("--first-name", default=None)
    parser.add_argument("--last-name", default=None)
    parser.add_argument("--password", default=None, help="Prompted for when omitted")
    args = parser.parse_args()

    configure_logging()

    password = args.password or getpass.getpass("Password: ")
    try:
        validate_password_strength(password)
    except AuthError as e:
        print(f"\nERROR: {e.message}")
        return 1

    await create_tables()
    password_hash = await PasswordHasher().hash_async(password)

    async with get_async_session() as db:
        store = CredentialStore(db, ADMIN)
        try:
            admin = await store.create(
                args.email,
                password_hash,
                username=args.username,
                role=args.role,
                first_name=args.first_name,
                last_name=args.last_name,
            )
        except AuthError as e:
            print(f"\nERROR: {e.message}")
            return 1
        await db.commit()

    print(f"\nCreated {args.role} account #{admin.id} for {admin.email}")  # type: ignore[attr-defined]
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
