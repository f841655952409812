"""
Organization API endpoints.

GET    /api/v1/organizations                          — List the caller's memberships
POST   /api/v1/organizations                          — Create an org (caller becomes owner)
POST   /api/v1/organizations/switch                   — Switch the session's active org
PUT    /api/v1/organizations/{slug}                   — Update name/description
DELETE /api/v1/organizations/{org_id}                 — Permanently delete an org
GET    /api/v1/organizations/{slug}/members           — List members
PUT    /api/v1/organizations/{slug}/members/{member_id} — Change a member's role
DELETE /api/v1/organizations/{slug}/members/{member_id} — Remove a member
GET    /api/v1/organizations/{slug}/invitations       — List pending invitations
POST   /api/v1/organizations/{slug}/invitations       — Invite someone by email
DELETE /api/v1/organizations/{slug}/invitations/{invitation_id} — Cancel an invitation
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from acme_server.api.deps import get_app_settings, get_email_sender
from acme_server.api.v1.serializers import (
    invitation_response,
    member_response,
    member_row_response,
    membership_with_org,
    org_response,
)
from acme_server.core.auth import AuthenticatedUser, get_current_user
from acme_server.core.config import Settings
from acme_server.core.database import get_session
from acme_server.core.email import EmailSender
from acme_server.core.errors import ApiError, unwrap, validation_error
from acme_server.models.user import User
from acme_server.services import invitations as invitation_service
from acme_server.services import lifecycle
from acme_server.services import members as member_service
from acme_server.services import organizations as org_service

from acme_shared.schemas.common import SuccessResponse
from acme_shared.schemas.organizations import (
    InvitationCreateRequest,
    InvitationCreateResponse,
    InvitationListResponse,
    MemberListResponse,
    MemberResponse,
    MemberRoleUpdateRequest,
    MembershipListResponse,
    OrgCreateRequest,
    OrgCreateResponse,
    OrgResponse,
    OrgSwitchRequest,
    OrgSwitchResponse,
    OrgUpdateRequest,
)

router = APIRouter()


@router.get("", response_model=MembershipListResponse)
async def list_organizations(
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """List the organizations the caller belongs to, oldest membership first."""
    rows = await org_service.list_user_memberships(auth.user_id, session)
    return MembershipListResponse(data=[membership_with_org(row) for row in rows])


@router.post("", response_model=OrgCreateResponse)
async def create_organization(
    body: OrgCreateRequest,
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
):
    """Create a new organization. The creator becomes its owner."""
    org = unwrap(
        await org_service.create_organization(
            body, auth.user_id, session, max_attempts=settings.slug_max_attempts
        )
    )
    return OrgCreateResponse(organization=org_response(org))


@router.post("/switch", response_model=OrgSwitchResponse)
async def switch_organization(
    body: OrgSwitchRequest,
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Make an organization the active one for the current session."""
    if body.organization_id is None:
        raise ApiError(validation_error("Organization ID is required"))
    org, role = unwrap(
        await org_service.switch_organization(auth.auth_session, body.organization_id, session)
    )
    return OrgSwitchResponse(organization=org_response(org), role=role)


@router.put("/{slug}", response_model=OrgResponse)
async def update_organization(
    slug: str,
    body: OrgUpdateRequest,
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Update organization name and description (owners and admins)."""
    org = unwrap(await org_service.update_organization(slug, body, auth.user_id, session))
    return org_response(org)


@router.delete("/{org_id}", response_model=SuccessResponse)
async def delete_organization(
    org_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Permanently delete an organization and its memberships (owners and admins)."""
    unwrap(await lifecycle.delete_organization(org_id, auth.user_id, session))
    return SuccessResponse(message="Organization deleted successfully")


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

@router.get("/{slug}/members", response_model=MemberListResponse)
async def list_members(
    slug: str,
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    rows = unwrap(await member_service.list_members(slug, auth.user_id, session))
    return MemberListResponse(data=[member_row_response(row) for row in rows])


@router.put("/{slug}/members/{member_id}", response_model=MemberResponse)
async def update_member_role(
    slug: str,
    member_id: uuid.UUID,
    body: MemberRoleUpdateRequest,
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Change a member's role. Ownership changes require an owner."""
    membership = unwrap(
        await member_service.update_member_role(
            slug, member_id, body.role, auth.user_id, session
        )
    )
    user = await session.get(User, membership.user_id)
    return member_response(membership, user)


@router.delete("/{slug}/members/{member_id}", response_model=SuccessResponse)
async def remove_member(
    slug: str,
    member_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    unwrap(await member_service.remove_member(slug, member_id, auth.user_id, session))
    return SuccessResponse(message="Member removed successfully")


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------

@router.get("/{slug}/invitations", response_model=InvitationListResponse)
async def list_invitations(
    slug: str,
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Pending invitations, newest first (any member)."""
    invitations = unwrap(
        await invitation_service.list_invitations(slug, auth.user_id, session)
    )
    return InvitationListResponse(data=[invitation_response(i) for i in invitations])


@router.post("/{slug}/invitations", response_model=InvitationCreateResponse)
async def create_invitation(
    slug: str,
    body: InvitationCreateRequest,
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
    email_sender: EmailSender = Depends(get_email_sender),
):
    """Invite someone by email as member or admin (owners and admins)."""
    created = unwrap(
        await invitation_service.create_invitation(
            slug, body, auth.user_id, session, settings, email_sender
        )
    )
    return InvitationCreateResponse(
        message=(
            "Invitation sent successfully"
            if created.email_sent
            else "Invitation created, but the email could not be sent"
        ),
        invitation=invitation_response(created.invitation),
        email_sent=created.email_sent,
    )


@router.delete("/{slug}/invitations/{invitation_id}", response_model=SuccessResponse)
async def cancel_invitation(
    slug: str,
    invitation_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    unwrap(
        await invitation_service.cancel_invitation(slug, invitation_id, auth.user_id, session)
    )
    return SuccessResponse(message="Invitation cancelled successfully")
