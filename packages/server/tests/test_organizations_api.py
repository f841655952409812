"""
Tests for the organization and member endpoints.
"""

from __future__ import annotations

import uuid
from datetime import timedelta

from sqlalchemy.exc import OperationalError
from sqlmodel import select

from acme_server.core.errors import ErrorKind, Failure
from acme_server.models.auth import AuthSession
from acme_server.models.base import utcnow
from acme_server.models.membership import Membership
from acme_server.models.organization import Organization
from acme_server.services import organizations as org_service

from acme_shared.schemas.organizations import OrgUpdateRequest

from conftest import add_member, make_org, make_user, signup_and_login


async def _join(db, user_id: str, org_id: str, role: str) -> str:
    """Add a membership directly; returns its id."""
    async with db.session_factory() as s:
        membership = Membership(
            user_id=uuid.UUID(user_id), organization_id=uuid.UUID(org_id), role=role
        )
        s.add(membership)
        await s.commit()
        return str(membership.id)


class TestListAndCreate:
    async def test_signup_org_is_listed(self, client):
        data, headers = await signup_and_login(client)
        resp = await client.get("/api/v1/organizations", headers=headers)
        assert resp.status_code == 200
        rows = resp.json()["data"]
        assert len(rows) == 1
        assert rows[0]["role"] == "owner"
        assert rows[0]["organization"]["slug"] == data["organization"]["slug"]
        assert rows[0]["organization"]["member_count"] == 1
        assert rows[0]["organization"]["plan"] == "free"
        assert rows[0]["organization"]["status"] == "active"

    async def test_create(self, client):
        _, headers = await signup_and_login(client)
        resp = await client.post(
            "/api/v1/organizations",
            json={"name": "Acme Inc!!", "description": "Rockets"},
            headers=headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["message"] == "Organization created successfully"
        assert body["organization"]["slug"] == "acme-inc"
        assert body["organization"]["description"] == "Rockets"

        again = await client.post(
            "/api/v1/organizations", json={"name": "Acme Inc"}, headers=headers
        )
        assert again.json()["organization"]["slug"] == "acme-inc-1"

        listed = (await client.get("/api/v1/organizations", headers=headers)).json()["data"]
        assert [row["organization"]["name"] for row in listed][1:] == ["Acme Inc!!", "Acme Inc"]

    async def test_create_requires_name(self, client):
        _, headers = await signup_and_login(client)
        resp = await client.post("/api/v1/organizations", json={"name": " x "}, headers=headers)
        assert resp.status_code == 400
        assert resp.json()["error"] == "Validation failed"

    async def test_requires_authentication(self, client):
        resp = await client.post("/api/v1/organizations", json={"name": "Nobody Inc"})
        assert resp.status_code == 401


class TestSwitch:
    async def test_switch_to_own_org(self, client, db):
        data, headers = await signup_and_login(client)
        org_id = data["organization"]["id"]
        resp = await client.post(
            "/api/v1/organizations/switch", json={"organization_id": org_id}, headers=headers
        )
        assert resp.status_code == 200
        assert resp.json()["role"] == "owner"
        assert resp.json()["organization"]["id"] == org_id

        async with db.session_factory() as s:
            active = (
                await s.execute(
                    select(AuthSession.active_organization_id).where(
                        AuthSession.user_id == uuid.UUID(data["user"]["id"])
                    )
                )
            ).scalar_one()
        assert str(active) == org_id

    async def test_switch_to_foreign_org(self, client):
        other, _ = await signup_and_login(client, name="Other Person")
        _, headers = await signup_and_login(client)
        resp = await client.post(
            "/api/v1/organizations/switch",
            json={"organization_id": other["organization"]["id"]},
            headers=headers,
        )
        assert resp.status_code == 403
        assert resp.json() == {"error": "Access denied to this organization"}

    async def test_switch_without_id(self, client):
        _, headers = await signup_and_login(client)
        resp = await client.post("/api/v1/organizations/switch", json={}, headers=headers)
        assert resp.status_code == 400
        assert resp.json() == {"error": "Organization ID is required"}


class TestUpdateAndDelete:
    async def test_owner_updates(self, client):
        data, headers = await signup_and_login(client)
        slug = data["organization"]["slug"]
        resp = await client.put(
            f"/api/v1/organizations/{slug}",
            json={"name": "Renamed", "description": "New"},
            headers=headers,
        )
        assert resp.status_code == 200
        assert resp.json()["name"] == "Renamed"
        assert resp.json()["slug"] == slug

    async def test_member_cannot_update(self, client, db):
        owner, _ = await signup_and_login(client, name="Owner Person")
        member, member_headers = await signup_and_login(client, name="Member Person")
        await _join(db, member["user"]["id"], owner["organization"]["id"], "member")

        resp = await client.put(
            f"/api/v1/organizations/{owner['organization']['slug']}",
            json={"name": "Hijacked"},
            headers=member_headers,
        )
        assert resp.status_code == 403

    async def test_owner_deletes(self, client, db):
        data, headers = await signup_and_login(client)
        org_id = data["organization"]["id"]
        resp = await client.delete(f"/api/v1/organizations/{org_id}", headers=headers)
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Organization deleted successfully"}

        async with db.session_factory() as s:
            assert await s.get(Organization, uuid.UUID(org_id)) is None
        listed = (await client.get("/api/v1/organizations", headers=headers)).json()["data"]
        assert listed == []

    async def test_delete_clears_active_org(self, client, db):
        data, headers = await signup_and_login(client)
        org_id = data["organization"]["id"]
        await client.post(
            "/api/v1/organizations/switch", json={"organization_id": org_id}, headers=headers
        )

        resp = await client.delete(f"/api/v1/organizations/{org_id}", headers=headers)
        assert resp.status_code == 200

        async with db.session_factory() as s:
            active = (
                await s.execute(
                    select(AuthSession.active_organization_id).where(
                        AuthSession.user_id == uuid.UUID(data["user"]["id"])
                    )
                )
            ).scalar_one()
        assert active is None

    async def test_admin_deletes(self, client, db):
        owner, _ = await signup_and_login(client, name="Owner Person")
        admin, admin_headers = await signup_and_login(client, name="Admin Person")
        await _join(db, admin["user"]["id"], owner["organization"]["id"], "admin")

        resp = await client.delete(
            f"/api/v1/organizations/{owner['organization']['id']}", headers=admin_headers
        )
        assert resp.status_code == 200

    async def test_member_cannot_delete(self, client, db):
        owner, _ = await signup_and_login(client, name="Owner Person")
        member, member_headers = await signup_and_login(client, name="Member Person")
        await _join(db, member["user"]["id"], owner["organization"]["id"], "member")

        resp = await client.delete(
            f"/api/v1/organizations/{owner['organization']['id']}", headers=member_headers
        )
        assert resp.status_code == 403
        assert resp.json() == {
            "error": "Access denied. Only owners and admins can delete organizations."
        }
        async with db.session_factory() as s:
            assert await s.get(Organization, uuid.UUID(owner["organization"]["id"])) is not None

    async def test_unknown_org(self, client):
        _, headers = await signup_and_login(client)
        resp = await client.delete(f"/api/v1/organizations/{uuid.uuid4()}", headers=headers)
        assert resp.status_code == 404
        assert resp.json() == {"error": "Organization not found"}

    async def test_malformed_id(self, client):
        _, headers = await signup_and_login(client)
        resp = await client.delete("/api/v1/organizations/not-a-uuid", headers=headers)
        assert resp.status_code == 400
        assert resp.json()["error"] == "Validation failed"


class TestMembersApi:
    async def test_list_change_and_remove(self, client, db):
        owner, owner_headers = await signup_and_login(client, name="Owner Person")
        member, _ = await signup_and_login(client, name="Member Person")
        slug = owner["organization"]["slug"]
        membership_id = await _join(db, member["user"]["id"], owner["organization"]["id"], "member")

        listed = await client.get(f"/api/v1/organizations/{slug}/members", headers=owner_headers)
        assert listed.status_code == 200
        assert [m["name"] for m in listed.json()["data"]] == ["Owner Person", "Member Person"]

        promoted = await client.put(
            f"/api/v1/organizations/{slug}/members/{membership_id}",
            json={"role": "admin"},
            headers=owner_headers,
        )
        assert promoted.status_code == 200
        assert promoted.json()["role"] == "admin"
        assert promoted.json()["email"] == member["user"]["email"]

        removed = await client.delete(
            f"/api/v1/organizations/{slug}/members/{membership_id}", headers=owner_headers
        )
        assert removed.status_code == 200
        listed = await client.get(f"/api/v1/organizations/{slug}/members", headers=owner_headers)
        assert len(listed.json()["data"]) == 1

    async def test_sole_owner_cannot_demote_self(self, client):
        owner, headers = await signup_and_login(client)
        slug = owner["organization"]["slug"]
        members = (
            await client.get(f"/api/v1/organizations/{slug}/members", headers=headers)
        ).json()["data"]

        resp = await client.put(
            f"/api/v1/organizations/{slug}/members/{members[0]['id']}",
            json={"role": "member"},
            headers=headers,
        )
        assert resp.status_code == 400
        assert "only owner" in resp.json()["error"]

    async def test_invalid_role(self, client):
        owner, headers = await signup_and_login(client)
        slug = owner["organization"]["slug"]
        resp = await client.put(
            f"/api/v1/organizations/{slug}/members/{uuid.uuid4()}",
            json={"role": "emperor"},
            headers=headers,
        )
        assert resp.status_code == 400


class TestPersistenceFailures:
    async def test_switch_lookup_failure_is_internal(self, session, monkeypatch):
        user = await make_user(session)
        org = await make_org(session, "Elsewhere")
        await add_member(session, user, org, "owner")
        auth_session = AuthSession(
            id=uuid.uuid4().hex, user_id=user.id, expires_at=utcnow() + timedelta(hours=1)
        )
        session.add(auth_session)
        await session.commit()

        async def broken_lookup(s, user_id, organization_id):
            raise OperationalError("SELECT memberships", {}, Exception("connection reset"))

        monkeypatch.setattr(org_service, "get_membership", broken_lookup)
        result = await org_service.switch_organization(auth_session, org.id, session)

        assert isinstance(result, Failure)
        assert result.kind == ErrorKind.INTERNAL

    async def test_update_lookup_failure_is_internal(self, session, monkeypatch):
        user = await make_user(session)
        org = await make_org(session, "Steady", slug="steady")
        await add_member(session, user, org, "owner")
        user_id = user.id

        async def broken_lookup(slug, s):
            raise OperationalError("SELECT organizations", {}, Exception("connection reset"))

        monkeypatch.setattr(org_service, "get_organization_by_slug", broken_lookup)
        result = await org_service.update_organization(
            "steady", OrgUpdateRequest(name="Renamed"), user_id, session
        )

        assert isinstance(result, Failure)
        assert result.kind == ErrorKind.INTERNAL
        name = await session.scalar(select(Organization.name).where(Organization.slug == "steady"))
        assert name == "Steady"
