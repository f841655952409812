"""
Tests for slug derivation and allocation.
"""

from __future__ import annotations

import pytest
from sqlmodel import select

from acme_server.core.errors import Failure, Success
from acme_server.models.membership import Membership
from acme_server.models.organization import Organization
from acme_server.services import organizations as org_service
from acme_server.services.slugs import allocate_slug, candidate_slugs, slugify

from acme_shared.schemas.organizations import OrgCreateRequest

from conftest import make_org, make_user


# ---------------------------------------------------------------------------
# Unit Tests: slugify
# ---------------------------------------------------------------------------

class TestSlugify:
    def test_lowercases_and_hyphenates(self):
        assert slugify("Acme Inc") == "acme-inc"

    def test_collapses_symbol_runs(self):
        assert slugify("Acme   &&  Sons!!") == "acme-sons"

    def test_trims_edge_hyphens(self):
        assert slugify("--Hello World--") == "hello-world"
        assert slugify("  !!Acme Inc!!  ") == "acme-inc"

    def test_keeps_digits(self):
        assert slugify("Team 42") == "team-42"

    def test_non_ascii_letters_are_separators(self):
        assert slugify("Café Ünion") == "caf-nion"

    def test_all_symbols_falls_back(self):
        assert slugify("!!!") == "org"
        assert slugify("") == "org"

    def test_candidates_are_sequential(self):
        gen = candidate_slugs("foo")
        assert [next(gen) for _ in range(4)] == ["foo", "foo-1", "foo-2", "foo-3"]


# ---------------------------------------------------------------------------
# Allocation against the database
# ---------------------------------------------------------------------------

class TestAllocateSlug:
    async def test_free_base_slug(self, session):
        assert await allocate_slug("Acme Inc", session) == "acme-inc"

    async def test_suffix_when_taken(self, session):
        await make_org(session, "Acme Inc", slug="acme-inc")
        assert await allocate_slug("Acme Inc", session) == "acme-inc-1"

    async def test_fills_first_gap(self, session):
        await make_org(session, "Acme", slug="acme")
        await make_org(session, "Acme", slug="acme-2")
        assert await allocate_slug("Acme", session) == "acme-1"

    async def test_unrelated_prefix_does_not_count(self, session):
        await make_org(session, "Acme", slug="acme")
        await make_org(session, "Acme Inc", slug="acme-inc")
        assert await allocate_slug("Acme", session) == "acme-1"

    async def test_empty_name_uses_fallback(self, session):
        assert await allocate_slug("***", session) == "org"
        await make_org(session, "***", slug="org")
        assert await allocate_slug("%%%", session) == "org-1"


class TestCreateOrganization:
    async def test_sequential_suffixes(self, session):
        """Organizations sharing a base slug get foo, foo-1, foo-2 in creation order."""
        user = await make_user(session)
        slugs = []
        for name in ["Foo", "foo", "FOO!", "  foo  "]:
            result = await org_service.create_organization(
                OrgCreateRequest(name=name), user.id, session
            )
            assert isinstance(result, Success)
            slugs.append(result.value.slug)
        assert slugs == ["foo", "foo-1", "foo-2", "foo-3"]

    async def test_acme_scenario(self, session):
        user = await make_user(session)
        first = await org_service.create_organization(
            OrgCreateRequest(name="Acme Inc!!"), user.id, session
        )
        second = await org_service.create_organization(
            OrgCreateRequest(name="Acme Inc"), user.id, session
        )
        assert first.value.slug == "acme-inc"
        assert second.value.slug == "acme-inc-1"

    async def test_creator_is_owner(self, session):
        user = await make_user(session)
        result = await org_service.create_organization(
            OrgCreateRequest(name="Owned Co", description="Things"), user.id, session
        )
        org = result.value
        assert org.description == "Things"
        memberships = (
            await session.execute(
                select(Membership).where(Membership.organization_id == org.id)
            )
        ).scalars().all()
        assert len(memberships) == 1
        assert memberships[0].user_id == user.id
        assert memberships[0].role == "owner"

    async def test_description_defaults_to_empty(self, session):
        user = await make_user(session)
        result = await org_service.create_organization(
            OrgCreateRequest(name="No Desc"), user.id, session
        )
        assert result.value.description == ""

    async def test_retries_after_unique_violation(self, session, monkeypatch):
        """A slug taken between probe and insert is retried with a fresh probe."""
        user = await make_user(session)
        real_allocate = org_service.allocate_slug
        calls = []

        async def racing_allocate(name, s):
            slug = await real_allocate(name, s)
            if not calls:
                # Another request wins the race for this slug
                await make_org(s, name, slug=slug)
            calls.append(slug)
            return slug

        monkeypatch.setattr(org_service, "allocate_slug", racing_allocate)
        result = await org_service.create_organization(
            OrgCreateRequest(name="Racy"), user.id, session
        )
        assert isinstance(result, Success)
        assert result.value.slug == "racy-1"
        assert calls == ["racy", "racy-1"]

    async def test_gives_up_after_max_attempts(self, session, monkeypatch):
        user = await make_user(session)
        await make_org(session, "Stuck", slug="stuck")

        async def always_taken(name, s):
            return "stuck"

        monkeypatch.setattr(org_service, "allocate_slug", always_taken)
        result = await org_service.create_organization(
            OrgCreateRequest(name="Stuck"), user.id, session, max_attempts=3
        )
        assert isinstance(result, Failure)
        assert result.status_code == 400
        orgs = (await session.execute(select(Organization))).scalars().all()
        assert len(orgs) == 1
