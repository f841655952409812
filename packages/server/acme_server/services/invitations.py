"""
Invitations — owners and admins invite people by email; the invitee accepts
with the emailed token and becomes a member with the invited role.

The invitation row is committed before the email goes out. A failed
delivery is reported to the caller but leaves the invitation pending.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import timedelta

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from acme_server.core.auth import generate_token
from acme_server.core.config import Settings
from acme_server.core.email import EmailSender, invitation_email
from acme_server.core.errors import (
    Result,
    Success,
    access_denied,
    conflict,
    internal_failure,
    not_found,
    validation_error,
)
from acme_server.models.base import utcnow
from acme_server.models.invitation import Invitation
from acme_server.models.membership import Membership
from acme_server.models.organization import Organization
from acme_server.models.user import User
from acme_server.services.accounts import get_user_by_email
from acme_server.services.organizations import get_organization_by_slug
from acme_server.services.permissions import OrgAction, get_membership, role_allows

from acme_shared.schemas.common import InvitationStatus
from acme_shared.schemas.organizations import InvitationCreateRequest

log = structlog.get_logger()


@dataclass
class CreatedInvitation:
    invitation: Invitation
    email_sent: bool


@dataclass
class AcceptedInvitation:
    organization: Organization
    membership: Membership


async def _pending_for_email(
    organization_id: uuid.UUID, email: str, session: AsyncSession
) -> Invitation | None:
    result = await session.execute(
        select(Invitation).where(
            Invitation.organization_id == organization_id,
            Invitation.email == email,
            Invitation.status == InvitationStatus.PENDING.value,
        )
    )
    return result.scalars().first()


async def list_invitations(
    slug: str, acting_user_id: uuid.UUID, session: AsyncSession
) -> Result[list[Invitation]]:
    """Pending invitations, newest first. Any member may look."""
    try:
        org = await get_organization_by_slug(slug, session)
        if org is None:
            return not_found("Organization not found")
        if await get_membership(session, acting_user_id, org.id) is None:
            return access_denied("You don't have access to this organization")

        result = await session.execute(
            select(Invitation)
            .where(
                Invitation.organization_id == org.id,
                Invitation.status == InvitationStatus.PENDING.value,
            )
            .order_by(Invitation.created_at.desc())
        )
        invitations = list(result.scalars().all())
    except SQLAlchemyError:
        log.exception("invitation.list_failed", slug=slug)
        return internal_failure()
    return Success(invitations)


async def create_invitation(
    slug: str,
    req: InvitationCreateRequest,
    acting_user_id: uuid.UUID,
    session: AsyncSession,
    settings: Settings,
    email_sender: EmailSender,
) -> Result[CreatedInvitation]:
    email = req.email.lower()
    try:
        org = await get_organization_by_slug(slug, session)
        if org is None:
            return not_found("Organization not found")
        acting = await get_membership(session, acting_user_id, org.id)
        if not role_allows(acting.role if acting else None, OrgAction.MANAGE_MEMBERS):
            return access_denied("You don't have permission to invite members")

        existing_user = await get_user_by_email(email, session)
        if existing_user is not None and (
            await get_membership(session, existing_user.id, org.id) is not None
        ):
            return conflict("User is already a member of this organization", code="ALREADY_MEMBER")
        if await _pending_for_email(org.id, email, session) is not None:
            return conflict(
                "An invitation has already been sent to this email", code="ALREADY_INVITED"
            )

        inviter = await session.get(User, acting_user_id)
        inviter_name = inviter.name if inviter else "A teammate"
        org_id, org_name = org.id, org.name

        invitation = Invitation(
            organization_id=org_id,
            email=email,
            role=req.role.value,
            token=generate_token(),
            invited_by_id=acting_user_id,
            expires_at=utcnow() + timedelta(days=settings.invitation_ttl_days),
        )
        session.add(invitation)
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        log.exception("invitation.create_failed", slug=slug)
        return internal_failure()

    log.info(
        "invitation.created",
        org_id=str(org_id),
        invitation_id=str(invitation.id),
        role=invitation.role,
        by=str(acting_user_id),
    )

    accept_url = (
        f"{settings.app_url.rstrip('/')}/invitations/accept?token={invitation.token}"
    )
    sent = await email_sender.send(
        invitation_email(
            email,
            org_name,
            inviter_name,
            invitation.role,
            accept_url,
            settings.invitation_ttl_days,
        )
    )
    if not sent.success:
        log.warning(
            "invitation.email_failed", invitation_id=str(invitation.id), error=sent.error
        )
    return Success(CreatedInvitation(invitation=invitation, email_sent=sent.success))


async def cancel_invitation(
    slug: str,
    invitation_id: uuid.UUID,
    acting_user_id: uuid.UUID,
    session: AsyncSession,
) -> Result[None]:
    try:
        org = await get_organization_by_slug(slug, session)
        if org is None:
            return not_found("Organization not found")
        acting = await get_membership(session, acting_user_id, org.id)
        if not role_allows(acting.role if acting else None, OrgAction.MANAGE_MEMBERS):
            return access_denied("You don't have permission to cancel invitations")

        invitation = await session.get(Invitation, invitation_id)
        if (
            invitation is None
            or invitation.organization_id != org.id
            or invitation.status != InvitationStatus.PENDING.value
        ):
            return not_found("Invitation not found or already processed")

        invitation.status = InvitationStatus.CANCELLED.value
        session.add(invitation)
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        log.exception("invitation.cancel_failed", invitation_id=str(invitation_id))
        return internal_failure()

    log.info(
        "invitation.cancelled", invitation_id=str(invitation_id), by=str(acting_user_id)
    )
    return Success(None)


async def accept_invitation(
    token: str, user: User, session: AsyncSession
) -> Result[AcceptedInvitation]:
    """Join the inviting organization with the invited role.

    The invitation must be pending, unexpired and addressed to the
    accepting user's email.
    """
    user_id, user_email = user.id, user.email.lower()
    try:
        result = await session.execute(select(Invitation).where(Invitation.token == token))
        invitation = result.scalar_one_or_none()
        if invitation is None or invitation.status != InvitationStatus.PENDING.value:
            return not_found("Invitation not found or already processed")
        if invitation.expires_at < utcnow():
            return validation_error("Invitation has expired")
        if invitation.email != user_email:
            return access_denied("This invitation was sent to a different email address")

        org_id = invitation.organization_id
        if await get_membership(session, user_id, org_id) is not None:
            return conflict("Already a member of this organization", code="ALREADY_MEMBER")

        org = await session.get(Organization, org_id)
        if org is None:
            return not_found("Invitation not found or already processed")

        membership = Membership(user_id=user_id, organization_id=org_id, role=invitation.role)
        invitation.status = InvitationStatus.ACCEPTED.value
        session.add(membership)
        session.add(invitation)
        await session.commit()
    except IntegrityError:
        # A concurrent accept created the membership first
        await session.rollback()
        return conflict("Already a member of this organization", code="ALREADY_MEMBER")
    except SQLAlchemyError:
        await session.rollback()
        log.exception("invitation.accept_failed", user_id=str(user_id))
        return internal_failure()

    log.info(
        "invitation.accepted",
        org_id=str(org_id),
        user_id=str(user_id),
        role=membership.role,
    )
    return Success(AcceptedInvitation(organization=org, membership=membership))
