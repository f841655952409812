"""
Script to create a password user with a personal organization for local testing.

Usage:
    acme-create-user --email alice@acme.dev --password 'Secr3t-pass' --name Alice
"""

import argparse
import asyncio
import sys

import structlog

from acme_server.core.config import get_settings
from acme_server.core.database import Database
from acme_server.core.errors import Failure
from acme_server.core.logging import configure_logging
from acme_server.services import accounts

from acme_shared.schemas.users import SignupRequest

log = structlog.get_logger()


async def create_user(email: str, password: str, name: str) -> int:
    settings = get_settings()
    db = Database(settings.database_url)
    await db.create_all()
    try:
        async with db.session() as session:
            req = SignupRequest(
                name=name, email=email, password=password, confirm_password=password
            )
            result = await accounts.sign_up(req, session, settings)
            if isinstance(result, Failure):
                log.error("user.create_failed", email=email, error=result.message)
                return 1
            log.info(
                "user.created",
                email=email,
                user_id=str(result.value.user.id),
                org_slug=result.value.organization.slug,
            )
            return 0
    finally:
        await db.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a local password user")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--name", default="Local Admin")
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings.log_level, "text")
    sys.exit(asyncio.run(create_user(args.email, args.password, args.name)))


if __name__ == "__main__":
    main()
