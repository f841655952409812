"""
Profile API endpoints (the authenticated user's own account).

GET    /api/v1/profile                      — Current user
PUT    /api/v1/profile                      — Update name/email
PUT    /api/v1/profile/password             — Change password
GET    /api/v1/profile/settings             — Notification settings
PUT    /api/v1/profile/settings             — Update notification settings
POST   /api/v1/profile/resend-verification  — Send a new verification email
DELETE /api/v1/profile                      — Permanently delete the account
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from acme_server.api.deps import get_app_settings, get_email_sender
from acme_server.api.v1.serializers import user_response
from acme_server.core.auth import SESSION_COOKIE, AuthenticatedUser, get_current_user
from acme_server.core.config import Settings
from acme_server.core.database import get_session
from acme_server.core.email import EmailSender
from acme_server.core.errors import unwrap
from acme_server.services import lifecycle
from acme_server.services import profile as profile_service

from acme_shared.schemas.common import SuccessResponse
from acme_shared.schemas.users import (
    PasswordChangeRequest,
    ProfileUpdateRequest,
    ProfileUpdateResponse,
    SettingsResponse,
    SettingsUpdateRequest,
    UserResponse,
)

router = APIRouter()


def _settings_response(prefs) -> SettingsResponse:
    return SettingsResponse(
        email_notifications=prefs.email_notifications,
        marketing_emails=prefs.marketing_emails,
        security_alerts=prefs.security_alerts,
    )


@router.get("", response_model=UserResponse)
async def get_profile(auth: AuthenticatedUser = Depends(get_current_user)):
    return user_response(auth.user)


@router.put("", response_model=ProfileUpdateResponse)
async def update_profile(
    body: ProfileUpdateRequest,
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
    email_sender: EmailSender = Depends(get_email_sender),
):
    """Update name and email. Changing the email resets its verification."""
    update = unwrap(
        await profile_service.update_profile(auth.user, body, session, email_sender, settings)
    )
    return ProfileUpdateResponse(
        user=user_response(update.user),
        verification_email_sent=update.verification_email_sent,
    )


@router.put("/password", response_model=SuccessResponse)
async def change_password(
    body: PasswordChangeRequest,
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    unwrap(await profile_service.change_password(auth.user, body, session))
    return SuccessResponse(message="Password updated successfully")


@router.get("/settings", response_model=SettingsResponse)
async def get_notification_settings(
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return _settings_response(await profile_service.get_settings(auth.user, session))


@router.put("/settings", response_model=SettingsResponse)
async def update_notification_settings(
    body: SettingsUpdateRequest,
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    prefs = unwrap(await profile_service.update_settings(auth.user, body, session))
    return _settings_response(prefs)


@router.post("/resend-verification", response_model=SuccessResponse)
async def resend_verification(
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
    email_sender: EmailSender = Depends(get_email_sender),
):
    sent = unwrap(
        await profile_service.resend_verification(auth.user, session, email_sender, settings)
    )
    if not sent:
        return SuccessResponse(success=False, message="Verification email could not be sent")
    return SuccessResponse(message="Verification email sent")


@router.delete("", response_model=SuccessResponse)
async def delete_account(
    response: Response,
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Permanently delete the account. Sole owners must transfer ownership first."""
    unwrap(await lifecycle.delete_account(auth.user_id, session))
    response.delete_cookie(SESSION_COOKIE, path="/")
    return SuccessResponse(message="Account deleted successfully")
