"""
Member management inside an organization: list, change role, remove.

Owner demotion is re-validated inside the mutating transaction so an
organization can never lose its last owner.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

import structlog
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from acme_server.core.errors import (
    Failure,
    Result,
    Success,
    access_denied,
    conflict,
    internal_failure,
    not_found,
    validation_error,
)
from acme_server.models.membership import Membership
from acme_server.models.organization import Organization
from acme_server.models.user import User
from acme_server.services.organizations import get_organization_by_slug
from acme_server.services.permissions import OrgAction, get_membership, role_allows

from acme_shared.schemas.common import Role

log = structlog.get_logger()


@dataclass
class MemberRow:
    membership: Membership
    user: User


async def _load_context(
    slug: str, acting_user_id: uuid.UUID, session: AsyncSession
) -> Failure | tuple[Organization, Membership]:
    """Resolve the org by slug and the acting user's membership in it.

    Persistence errors propagate; callers run this inside their ``try``.
    """
    org = await get_organization_by_slug(slug, session)
    if org is None:
        return not_found("Organization not found")
    acting = await get_membership(session, acting_user_id, org.id)
    if acting is None:
        return access_denied("Access denied to this organization")
    return org, acting


async def _load_target(
    org: Organization, membership_id: uuid.UUID, session: AsyncSession
) -> Membership | None:
    target = await session.get(Membership, membership_id)
    if target is None or target.organization_id != org.id:
        return None
    return target


async def _owner_count(organization_id: uuid.UUID, session: AsyncSession) -> int:
    return await session.scalar(
        select(func.count())
        .select_from(Membership)
        .where(
            Membership.organization_id == organization_id,
            Membership.role == Role.OWNER.value,
        )
    )


async def list_members(
    slug: str, acting_user_id: uuid.UUID, session: AsyncSession
) -> Result[list[MemberRow]]:
    try:
        ctx = await _load_context(slug, acting_user_id, session)
        if isinstance(ctx, Failure):
            return ctx
        org, _ = ctx

        result = await session.execute(
            select(Membership, User)
            .join(User, User.id == Membership.user_id)
            .where(Membership.organization_id == org.id)
            .order_by(Membership.created_at)
        )
        rows = [MemberRow(membership=m, user=u) for m, u in result.all()]
    except SQLAlchemyError:
        log.exception("member.list_failed", slug=slug)
        return internal_failure()
    return Success(rows)


async def update_member_role(
    slug: str,
    membership_id: uuid.UUID,
    new_role: Role,
    acting_user_id: uuid.UUID,
    session: AsyncSession,
) -> Result[Membership]:
    """Change a member's role.

    Admins manage admins and members; only owners grant or take away
    ownership, and never from the last owner.
    """
    try:
        ctx = await _load_context(slug, acting_user_id, session)
        if isinstance(ctx, Failure):
            return ctx
        org, acting = ctx
        org_id = org.id

        if not role_allows(acting.role, OrgAction.MANAGE_MEMBERS):
            return access_denied("Only owners and admins can manage members.")

        target = await _load_target(org, membership_id, session)
        if target is None:
            return not_found("Member not found")

        touches_owner = new_role == Role.OWNER or target.role == Role.OWNER.value
        if touches_owner and not role_allows(acting.role, OrgAction.ASSIGN_OWNER):
            return access_denied("Only owners can grant or revoke ownership.")

        if target.role == new_role.value:
            return Success(target)

        if target.role == Role.OWNER.value:
            # Lock the organization row, then count owners under the lock
            await session.execute(
                select(Organization.id).where(Organization.id == org_id).with_for_update()
            )
            if await _owner_count(org_id, session) <= 1:
                await session.rollback()
                return conflict(
                    "Cannot change the role of the only owner. Assign another owner first.",
                    code="SOLE_OWNER",
                )
        previous_role = target.role
        target.role = new_role.value
        session.add(target)
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        log.exception("member.role_update_failed", membership_id=str(membership_id))
        return internal_failure()

    log.info(
        "member.role_updated",
        org_id=str(org_id),
        membership_id=str(membership_id),
        previous_role=previous_role,
        role=new_role.value,
        by=str(acting_user_id),
    )
    return Success(target)


async def remove_member(
    slug: str,
    membership_id: uuid.UUID,
    acting_user_id: uuid.UUID,
    session: AsyncSession,
) -> Result[None]:
    try:
        ctx = await _load_context(slug, acting_user_id, session)
        if isinstance(ctx, Failure):
            return ctx
        org, acting = ctx
        org_id = org.id

        if not role_allows(acting.role, OrgAction.MANAGE_MEMBERS):
            return access_denied("Only owners and admins can manage members.")

        target = await _load_target(org, membership_id, session)
        if target is None:
            return not_found("Member not found")

        if target.user_id == acting_user_id:
            return validation_error("You cannot remove yourself from the organization.")
        if target.role == Role.OWNER.value:
            return conflict("Cannot remove an owner. Change their role first.")

        removed_user = target.user_id
        await session.delete(target)
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        log.exception("member.remove_failed", membership_id=str(membership_id))
        return internal_failure()

    log.info(
        "member.removed",
        org_id=str(org_id),
        user_id=str(removed_user),
        by=str(acting_user_id),
    )
    return Success(None)
