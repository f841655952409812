"""
Organization service — creation, listing, switching and updates.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from acme_server.core.errors import (
    Result,
    Success,
    access_denied,
    conflict,
    internal_failure,
    not_found,
)
from acme_server.models.auth import AuthSession
from acme_server.models.base import utcnow
from acme_server.models.membership import Membership
from acme_server.models.organization import Organization
from acme_server.services.permissions import OrgAction, get_membership, role_allows
from acme_server.services.slugs import allocate_slug

from acme_shared.schemas.common import Role
from acme_shared.schemas.organizations import OrgCreateRequest, OrgUpdateRequest

log = structlog.get_logger()

DEFAULT_SLUG_ATTEMPTS = 5


@dataclass
class MembershipRow:
    membership: Membership
    organization: Organization
    member_count: int


async def add_organization_with_owner(
    name: str,
    description: Optional[str],
    owner_id: uuid.UUID,
    session: AsyncSession,
) -> Organization:
    """Stage an organization and its owner membership in the current transaction."""
    slug = await allocate_slug(name, session)
    org = Organization(name=name, slug=slug, description=description or "")
    session.add(org)
    await session.flush()

    session.add(
        Membership(user_id=owner_id, organization_id=org.id, role=Role.OWNER.value)
    )
    await session.flush()
    return org


async def create_organization(
    req: OrgCreateRequest,
    creator_id: uuid.UUID,
    session: AsyncSession,
    *,
    max_attempts: int = DEFAULT_SLUG_ATTEMPTS,
) -> Result[Organization]:
    """Create an org with the creator as owner, in one transaction.

    A concurrent insert of the same slug fails the unique constraint; the
    transaction is rolled back and the slug probed again.
    """
    for attempt in range(1, max_attempts + 1):
        try:
            org = await add_organization_with_owner(
                req.name, req.description, creator_id, session
            )
            await session.commit()
        except IntegrityError:
            await session.rollback()
            log.warning("org.slug_conflict", name=req.name, attempt=attempt)
            continue
        except SQLAlchemyError:
            await session.rollback()
            log.exception("org.create_failed", name=req.name)
            return internal_failure()

        log.info("org.created", org_id=str(org.id), slug=org.slug, creator=str(creator_id))
        return Success(org)

    log.error("org.slug_exhausted", name=req.name, attempts=max_attempts)
    return conflict("Could not allocate a unique organization slug, please retry")


async def get_organization_by_slug(slug: str, session: AsyncSession) -> Optional[Organization]:
    result = await session.execute(select(Organization).where(Organization.slug == slug))
    return result.scalar_one_or_none()


async def list_user_memberships(
    user_id: uuid.UUID, session: AsyncSession
) -> list[MembershipRow]:
    """List the user's memberships, oldest first, with member counts."""
    counts = (
        select(Membership.organization_id, func.count().label("member_count"))
        .group_by(Membership.organization_id)
        .subquery()
    )
    result = await session.execute(
        select(Membership, Organization, counts.c.member_count)
        .join(Organization, Organization.id == Membership.organization_id)
        .join(counts, counts.c.organization_id == Organization.id)
        .where(Membership.user_id == user_id)
        .order_by(Membership.created_at)
    )
    return [
        MembershipRow(membership=m, organization=org, member_count=count)
        for m, org, count in result.all()
    ]


async def switch_organization(
    auth_session: AuthSession,
    organization_id: uuid.UUID,
    session: AsyncSession,
) -> Result[tuple[Organization, str]]:
    """Make ``organization_id`` the active org of a session. Members only."""
    try:
        membership = await get_membership(session, auth_session.user_id, organization_id)
        if membership is None:
            return access_denied("Access denied to this organization")

        org = await session.get(Organization, organization_id)
        if org is None:
            return not_found("Organization not found")

        auth_session.active_organization_id = org.id
        session.add(auth_session)
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        log.exception("org.switch_failed", org_id=str(organization_id))
        return internal_failure()

    log.info("org.switched", org_id=str(org.id), user_id=str(auth_session.user_id))
    return Success((org, membership.role))


async def update_organization(
    slug: str,
    req: OrgUpdateRequest,
    user_id: uuid.UUID,
    session: AsyncSession,
) -> Result[Organization]:
    """Update name/description. The slug never changes."""
    try:
        org = await get_organization_by_slug(slug, session)
        if org is None:
            return not_found("Organization not found")

        membership = await get_membership(session, user_id, org.id)
        if not role_allows(
            membership.role if membership else None, OrgAction.UPDATE_ORGANIZATION
        ):
            return access_denied("Only owners and admins can update organization settings.")

        org.name = req.name
        if req.description is not None:
            org.description = req.description
        org.updated_at = utcnow()
        session.add(org)
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        log.exception("org.update_failed", slug=slug)
        return internal_failure()

    log.info("org.updated", org_id=str(org.id), slug=org.slug)
    return Success(org)
