"""
Account lifecycle — permanent deletion of organizations and user accounts.

Both operations keep every organization with members owned by at least one
user. Checks and deletions run in the same transaction, so the owner count
seen by the check is the one the deletion commits against.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from acme_server.core.errors import (
    Result,
    Success,
    access_denied,
    internal_failure,
    not_found,
    sole_owner_conflict,
)
from acme_server.models.auth import Account, AuthSession, EmailVerification
from acme_server.models.invitation import Invitation
from acme_server.models.membership import Membership
from acme_server.models.onboarding import OnboardingProgress, UserPreferences
from acme_server.models.organization import Organization
from acme_server.models.user import User
from acme_server.services.permissions import OrgAction, get_membership, role_allows

from acme_shared.schemas.common import Role

log = structlog.get_logger()

# Rows owned by a user that go away with the account, children first
USER_OWNED_TABLES = (
    Membership,
    AuthSession,
    Account,
    EmailVerification,
    OnboardingProgress,
    UserPreferences,
)


# ---------------------------------------------------------------------------
# Organization deletion
# ---------------------------------------------------------------------------

async def _purge_org_children(organization_id: uuid.UUID, session: AsyncSession) -> None:
    await session.execute(
        delete(Invitation).where(Invitation.organization_id == organization_id)
    )
    await session.execute(
        delete(Membership).where(Membership.organization_id == organization_id)
    )


async def _delete_org_row(organization_id: uuid.UUID, session: AsyncSession) -> None:
    await session.execute(delete(Organization).where(Organization.id == organization_id))


async def delete_organization(
    organization_id: uuid.UUID,
    requesting_user_id: uuid.UUID,
    session: AsyncSession,
) -> Result[None]:
    """Delete an organization along with its memberships and invitations.

    Owners and admins only.
    """
    try:
        org = await session.get(Organization, organization_id)
        if org is None:
            return not_found("Organization not found")

        membership = await get_membership(session, requesting_user_id, organization_id)
        if not role_allows(
            membership.role if membership else None, OrgAction.DELETE_ORGANIZATION
        ):
            log.info(
                "org.delete_denied",
                org_id=str(organization_id),
                user_id=str(requesting_user_id),
            )
            return access_denied(
                "Access denied. Only owners and admins can delete organizations."
            )

        org_name = org.name
        await _purge_org_children(organization_id, session)
        await _delete_org_row(organization_id, session)
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        log.exception("org.delete_failed", org_id=str(organization_id))
        return internal_failure()

    log.info(
        "org.deleted",
        org_id=str(organization_id),
        name=org_name,
        deleted_by=str(requesting_user_id),
    )
    return Success(None)


# ---------------------------------------------------------------------------
# Account deletion
# ---------------------------------------------------------------------------

async def find_sole_owned_organization(
    user_id: uuid.UUID, session: AsyncSession
) -> Organization | None:
    """Return the first organization (by membership age) the user alone owns.

    Owned organizations are locked ``FOR UPDATE`` so a concurrent deletion of
    a co-owner waits for this transaction.
    """
    owned = await session.execute(
        select(Organization)
        .join(Membership, Membership.organization_id == Organization.id)
        .where(Membership.user_id == user_id, Membership.role == Role.OWNER.value)
        .order_by(Membership.created_at)
        .with_for_update(of=Organization)
    )
    for org in owned.scalars().all():
        owner_count = await session.scalar(
            select(func.count())
            .select_from(Membership)
            .where(
                Membership.organization_id == org.id,
                Membership.role == Role.OWNER.value,
            )
        )
        if owner_count <= 1:
            return org
    return None


async def delete_account(user_id: uuid.UUID, session: AsyncSession) -> Result[None]:
    """Delete a user and everything that belongs to the account.

    Rejected without any mutation when the user is the only owner of any
    organization they belong to.
    """
    try:
        user = await session.get(User, user_id)
        if user is None:
            return not_found("User not found")

        sole_owned = await find_sole_owned_organization(user_id, session)
        if sole_owned is not None:
            org_name, org_id = sole_owned.name, sole_owned.id
            await session.rollback()
            log.info(
                "account.delete_blocked",
                user_id=str(user_id),
                org_id=str(org_id),
                reason="sole_owner",
            )
            return sole_owner_conflict(org_name)

        for model in USER_OWNED_TABLES:
            await session.execute(delete(model).where(model.user_id == user_id))
        await session.execute(delete(User).where(User.id == user_id))
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        log.exception("account.delete_failed", user_id=str(user_id))
        return internal_failure()

    log.info("account.deleted", user_id=str(user_id))
    return Success(None)
