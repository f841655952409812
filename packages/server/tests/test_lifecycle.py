"""
Tests for organization and account deletion.
"""

from __future__ import annotations

import uuid
from datetime import timedelta

import pytest
from sqlalchemy import func
from sqlalchemy.exc import OperationalError
from sqlmodel import select

from acme_server.core.errors import ErrorKind, Failure, Success
from acme_server.models.auth import AuthSession
from acme_server.models.base import utcnow
from acme_server.models.invitation import Invitation
from acme_server.models.membership import Membership
from acme_server.models.onboarding import UserPreferences
from acme_server.models.organization import Organization
from acme_server.models.user import User
from acme_server.services import lifecycle

from conftest import add_member, make_org, make_user


async def _count(session, model, *where) -> int:
    stmt = select(func.count()).select_from(model)
    if where:
        stmt = stmt.where(*where)
    return await session.scalar(stmt)


async def _row_counts(session) -> dict[str, int]:
    return {
        model.__tablename__: await _count(session, model)
        for model in (User, Organization, Membership, AuthSession, UserPreferences)
    }


# ---------------------------------------------------------------------------
# Organization deletion
# ---------------------------------------------------------------------------

class TestDeleteOrganization:
    @pytest.mark.parametrize("role", ["owner", "admin"])
    async def test_owner_and_admin_can_delete(self, session, role):
        requester = await make_user(session)
        other = await make_user(session)
        org = await make_org(session, "Doomed")
        await add_member(session, requester, org, role)
        if role != "owner":
            await add_member(session, other, org, "owner")
        org_id = org.id

        result = await lifecycle.delete_organization(org_id, requester.id, session)

        assert isinstance(result, Success)
        assert await session.get(Organization, org_id) is None
        assert await _count(session, Membership, Membership.organization_id == org_id) == 0

    async def test_member_is_denied(self, session):
        owner = await make_user(session)
        member = await make_user(session)
        org = await make_org(session, "Kept")
        await add_member(session, owner, org, "owner")
        await add_member(session, member, org, "member")

        result = await lifecycle.delete_organization(org.id, member.id, session)

        assert isinstance(result, Failure)
        assert result.kind == ErrorKind.ACCESS_DENIED
        assert result.status_code == 403
        assert await session.get(Organization, org.id) is not None
        assert await _count(session, Membership, Membership.organization_id == org.id) == 2

    async def test_non_member_is_denied(self, session):
        owner = await make_user(session)
        stranger = await make_user(session)
        org = await make_org(session, "Private")
        await add_member(session, owner, org, "owner")

        result = await lifecycle.delete_organization(org.id, stranger.id, session)

        assert result.kind == ErrorKind.ACCESS_DENIED
        assert result.message == "Access denied. Only owners and admins can delete organizations."
        assert await session.get(Organization, org.id) is not None

    async def test_missing_org_is_not_found(self, session):
        user = await make_user(session)
        result = await lifecycle.delete_organization(uuid.uuid4(), user.id, session)
        assert result.kind == ErrorKind.NOT_FOUND
        assert result.status_code == 404

    async def test_other_orgs_are_untouched(self, session):
        owner = await make_user(session)
        doomed = await make_org(session, "Doomed")
        kept = await make_org(session, "Kept")
        await add_member(session, owner, doomed, "owner")
        await add_member(session, owner, kept, "owner")

        await lifecycle.delete_organization(doomed.id, owner.id, session)

        assert await session.get(Organization, kept.id) is not None
        assert await _count(session, Membership, Membership.organization_id == kept.id) == 1

    async def test_invitations_go_with_the_org(self, session):
        owner = await make_user(session)
        org = await make_org(session, "Inviting")
        await add_member(session, owner, org, "owner")
        session.add(
            Invitation(
                organization_id=org.id,
                email="later@example.com",
                token="pending-token",
                invited_by_id=owner.id,
                expires_at=utcnow() + timedelta(days=7),
            )
        )
        await session.commit()
        org_id = org.id

        result = await lifecycle.delete_organization(org_id, owner.id, session)

        assert isinstance(result, Success)
        assert await _count(session, Invitation, Invitation.organization_id == org_id) == 0

    async def test_failure_between_steps_leaves_everything(self, session, monkeypatch):
        """A crash after memberships are purged rolls the purge back too."""
        owner = await make_user(session)
        member = await make_user(session)
        org = await make_org(session, "Sturdy")
        await add_member(session, owner, org, "owner")
        await add_member(session, member, org, "member")
        org_id, owner_id = org.id, owner.id

        async def broken_delete(organization_id, s):
            raise OperationalError("DELETE FROM organizations", {}, Exception("disk I/O error"))

        monkeypatch.setattr(lifecycle, "_delete_org_row", broken_delete)
        result = await lifecycle.delete_organization(org_id, owner_id, session)

        assert isinstance(result, Failure)
        assert result.kind == ErrorKind.INTERNAL
        assert result.message == "Internal server error"
        assert await _count(session, Organization, Organization.id == org_id) == 1
        assert await _count(session, Membership, Membership.organization_id == org_id) == 2

    async def test_failed_lookup_returns_internal_failure(self, session, monkeypatch):
        owner = await make_user(session)
        org = await make_org(session, "Unreachable")
        await add_member(session, owner, org, "owner")
        org_id, owner_id = org.id, owner.id

        async def broken_lookup(s, user_id, organization_id):
            raise OperationalError("SELECT memberships", {}, Exception("connection reset"))

        monkeypatch.setattr(lifecycle, "get_membership", broken_lookup)
        result = await lifecycle.delete_organization(org_id, owner_id, session)

        assert isinstance(result, Failure)
        assert result.kind == ErrorKind.INTERNAL
        assert await _count(session, Organization, Organization.id == org_id) == 1


# ---------------------------------------------------------------------------
# Account deletion
# ---------------------------------------------------------------------------

class TestDeleteAccount:
    async def test_removes_user_and_memberships(self, session):
        user = await make_user(session)
        owner = await make_user(session)
        org = await make_org(session, "Shared")
        await add_member(session, owner, org, "owner")
        await add_member(session, user, org, "member")
        session.add(AuthSession(id="jti-1", user_id=user.id, expires_at=utcnow() + timedelta(hours=1)))
        session.add(UserPreferences(user_id=user.id))
        await session.commit()
        user_id = user.id

        result = await lifecycle.delete_account(user_id, session)

        assert isinstance(result, Success)
        assert await session.get(User, user_id) is None
        assert await _count(session, Membership, Membership.user_id == user_id) == 0
        assert await _count(session, AuthSession, AuthSession.user_id == user_id) == 0
        assert await _count(session, UserPreferences, UserPreferences.user_id == user_id) == 0
        # The organization and its remaining owner stay
        assert await _count(session, Membership, Membership.organization_id == org.id) == 1

    async def test_user_without_memberships(self, session):
        user = await make_user(session)
        user_id = user.id
        result = await lifecycle.delete_account(user_id, session)
        assert isinstance(result, Success)
        assert await session.get(User, user_id) is None

    async def test_sole_owner_is_rejected_without_changes(self, session):
        user = await make_user(session)
        org = await make_org(session, "Solo Co")
        await add_member(session, user, org, "owner")
        session.add(AuthSession(id="jti-2", user_id=user.id, expires_at=utcnow() + timedelta(hours=1)))
        await session.commit()
        before = await _row_counts(session)

        result = await lifecycle.delete_account(user.id, session)

        assert isinstance(result, Failure)
        assert result.kind == ErrorKind.CONFLICT
        assert result.code == "SOLE_OWNER"
        assert result.status_code == 400
        assert '"Solo Co"' in result.message
        assert await _row_counts(session) == before

    async def test_sole_owner_even_with_other_members(self, session):
        """Admins and members do not count as owners."""
        user = await make_user(session)
        admin = await make_user(session)
        org = await make_org(session, "Team Co")
        await add_member(session, user, org, "owner")
        await add_member(session, admin, org, "admin")

        result = await lifecycle.delete_account(user.id, session)

        assert result.code == "SOLE_OWNER"

    async def test_missing_user_is_not_found(self, session):
        result = await lifecycle.delete_account(uuid.uuid4(), session)
        assert result.kind == ErrorKind.NOT_FOUND

    async def test_co_owner_scenario(self, session):
        """A alone owns X and co-owns Y with B: A is blocked, B may leave."""
        a = await make_user(session, "A")
        b = await make_user(session, "B")
        x = await make_org(session, "X Corp")
        y = await make_org(session, "Y Corp")
        await add_member(session, a, x, "owner")
        await add_member(session, a, y, "owner")
        await add_member(session, b, y, "owner")
        a_id, b_id, y_id = a.id, b.id, y.id

        rejected = await lifecycle.delete_account(a_id, session)
        assert isinstance(rejected, Failure)
        assert rejected.code == "SOLE_OWNER"
        assert '"X Corp"' in rejected.message

        accepted = await lifecycle.delete_account(b_id, session)
        assert isinstance(accepted, Success)
        assert await session.get(User, b_id) is None
        assert await session.get(User, a_id) is not None

        owners = (
            await session.execute(
                select(Membership.user_id).where(
                    Membership.organization_id == y_id, Membership.role == "owner"
                )
            )
        ).scalars().all()
        assert owners == [a_id]

    async def test_find_sole_owned_organization(self, session):
        user = await make_user(session)
        partner = await make_user(session)
        shared = await make_org(session, "Shared")
        solo = await make_org(session, "Solo")
        await add_member(session, user, shared, "owner")
        await add_member(session, partner, shared, "owner")
        assert await lifecycle.find_sole_owned_organization(user.id, session) is None

        await add_member(session, user, solo, "owner")
        found = await lifecycle.find_sole_owned_organization(user.id, session)
        assert found.id == solo.id
