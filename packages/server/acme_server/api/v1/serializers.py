"""Model → response schema conversion shared by the v1 routers."""

from __future__ import annotations

from acme_server.models.invitation import Invitation
from acme_server.models.membership import Membership
from acme_server.models.organization import Organization
from acme_server.models.user import User
from acme_server.services.members import MemberRow
from acme_server.services.organizations import MembershipRow

from acme_shared.schemas.organizations import (
    InvitationResponse,
    MemberResponse,
    MembershipWithOrg,
    OrgResponse,
    OrgSummary,
)
from acme_shared.schemas.users import UserResponse


def user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        email_verified=user.email_verified,
        created_at=user.created_at,
    )


def org_response(org: Organization) -> OrgResponse:
    return OrgResponse(id=org.id, name=org.name, slug=org.slug, description=org.description)


def membership_with_org(row: MembershipRow) -> MembershipWithOrg:
    org = row.organization
    return MembershipWithOrg(
        id=row.membership.id,
        role=row.membership.role,
        created_at=row.membership.created_at,
        organization=OrgSummary(
            id=org.id,
            name=org.name,
            slug=org.slug,
            plan=org.plan,
            status=org.status,
            created_at=org.created_at,
            member_count=row.member_count,
        ),
    )


def member_response(membership: Membership, user: User) -> MemberResponse:
    return MemberResponse(
        id=membership.id,
        user_id=user.id,
        name=user.name,
        email=user.email,
        role=membership.role,
        created_at=membership.created_at,
    )


def member_row_response(row: MemberRow) -> MemberResponse:
    return member_response(row.membership, row.user)


def invitation_response(invitation: Invitation) -> InvitationResponse:
    return InvitationResponse(
        id=invitation.id,
        email=invitation.email,
        role=invitation.role,
        status=invitation.status,
        created_at=invitation.created_at,
        expires_at=invitation.expires_at,
    )
