"""
Membership/role authority.

Decisions are made from the persisted Membership row, looked up fresh on
every call. A missing row means "no access", never an error.
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from acme_server.models.membership import Membership

from acme_shared.schemas.common import ADMIN_ROLES, Role


class OrgAction(str, Enum):
    DELETE_ORGANIZATION = "delete_organization"
    UPDATE_ORGANIZATION = "update_organization"
    MANAGE_MEMBERS = "manage_members"
    ASSIGN_OWNER = "assign_owner"


ACTION_ROLES: dict[OrgAction, frozenset[Role]] = {
    OrgAction.DELETE_ORGANIZATION: ADMIN_ROLES,
    OrgAction.UPDATE_ORGANIZATION: ADMIN_ROLES,
    OrgAction.MANAGE_MEMBERS: ADMIN_ROLES,
    OrgAction.ASSIGN_OWNER: frozenset({Role.OWNER}),
}


def role_allows(role: Optional[str], action: OrgAction) -> bool:
    if role is None:
        return False
    try:
        return Role(role) in ACTION_ROLES[action]
    except ValueError:
        return False


async def get_membership(
    session: AsyncSession,
    user_id: uuid.UUID,
    organization_id: uuid.UUID,
) -> Optional[Membership]:
    result = await session.execute(
        select(Membership).where(
            Membership.user_id == user_id,
            Membership.organization_id == organization_id,
        )
    )
    return result.scalar_one_or_none()


async def can_perform(
    session: AsyncSession,
    user_id: uuid.UUID,
    organization_id: uuid.UUID,
    action: OrgAction,
) -> bool:
    """True when the user's membership role permits ``action``."""
    membership = await get_membership(session, user_id, organization_id)
    return role_allows(membership.role if membership else None, action)
