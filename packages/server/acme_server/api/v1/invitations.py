"""
Invitation acceptance.

POST /api/v1/invitations/accept — Join an organization with an emailed token
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from acme_server.api.v1.serializers import org_response
from acme_server.core.auth import AuthenticatedUser, get_current_user
from acme_server.core.database import get_session
from acme_server.core.errors import unwrap
from acme_server.services import invitations as invitation_service

from acme_shared.schemas.organizations import (
    InvitationAcceptRequest,
    InvitationAcceptResponse,
)

router = APIRouter()


@router.post("/accept", response_model=InvitationAcceptResponse)
async def accept_invitation(
    body: InvitationAcceptRequest,
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Accept an invitation addressed to the caller's email."""
    accepted = unwrap(
        await invitation_service.accept_invitation(body.token, auth.user, session)
    )
    return InvitationAcceptResponse(
        organization=org_response(accepted.organization),
        role=accepted.membership.role,
    )
