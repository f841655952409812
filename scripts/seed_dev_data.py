#!/usr/bin/env python3
"""Seed a development database with users, organizations and memberships.

Usage:
    python scripts/seed_dev_data.py

Uses ACME_DATABASE_URL (or the default local Postgres). Safe to re-run:
existing users are left alone.
"""

import asyncio

import structlog

from acme_server.core.config import get_settings
from acme_server.core.database import Database
from acme_server.core.errors import Failure
from acme_server.core.logging import configure_logging
from acme_server.models.membership import Membership
from acme_server.services import accounts
from acme_server.services.organizations import create_organization

from acme_shared.schemas.common import Role
from acme_shared.schemas.organizations import OrgCreateRequest
from acme_shared.schemas.users import SignupRequest

log = structlog.get_logger()

PASSWORD = "dev-password-123"

USERS = [
    ("Alice Example", "alice@acme.dev"),
    ("Bob Example", "bob@acme.dev"),
    ("Carol Example", "carol@acme.dev"),
]

# Shared organization: Alice owns it, Bob co-owns, Carol is a member
SHARED_ORG = "Acme Robotics"
SHARED_ROLES = {
    "bob@acme.dev": Role.OWNER,
    "carol@acme.dev": Role.MEMBER,
}


async def seed() -> None:
    settings = get_settings()
    db = Database(settings.database_url)
    await db.create_all()

    user_ids = {}
    async with db.session() as session:
        for name, email in USERS:
            existing = await accounts.get_user_by_email(email, session)
            if existing:
                user_ids[email] = existing.id
                log.info("seed.user_exists", email=email)
                continue
            req = SignupRequest(name=name, email=email, password=PASSWORD, confirm_password=PASSWORD)
            result = await accounts.sign_up(req, session, settings)
            if isinstance(result, Failure):
                raise SystemExit(f"Could not create {email}: {result.message}")
            user_ids[email] = result.value.user.id
            log.info("seed.user_created", email=email, org=result.value.organization.slug)

        result = await create_organization(
            OrgCreateRequest(name=SHARED_ORG, description="Seeded shared organization"),
            user_ids["alice@acme.dev"],
            session,
        )
        if isinstance(result, Failure):
            raise SystemExit(f"Could not create {SHARED_ORG}: {result.message}")
        org = result.value

        for email, role in SHARED_ROLES.items():
            session.add(
                Membership(user_id=user_ids[email], organization_id=org.id, role=role.value)
            )
        log.info("seed.org_created", slug=org.slug, members=len(SHARED_ROLES) + 1)

    await db.dispose()
    log.info("seed.done")


if __name__ == "__main__":
    configure_logging("info", "text")
    asyncio.run(seed())
