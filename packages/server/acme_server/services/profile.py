"""
Profile service — name/email, password and notification settings.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from acme_server.core.auth import hash_password, verify_password
from acme_server.core.config import Settings
from acme_server.core.email import EmailSender
from acme_server.core.errors import (
    Result,
    Success,
    conflict,
    internal_failure,
    validation_error,
)
from acme_server.models.base import utcnow
from acme_server.models.onboarding import UserPreferences
from acme_server.models.user import User
from acme_server.services.accounts import issue_verification, send_verification

from acme_shared.schemas.users import (
    PasswordChangeRequest,
    ProfileUpdateRequest,
    SettingsUpdateRequest,
)

log = structlog.get_logger()


@dataclass
class ProfileUpdate:
    user: User
    # None when the email did not change
    verification_email_sent: Optional[bool] = None


async def update_profile(
    user: User,
    req: ProfileUpdateRequest,
    session: AsyncSession,
    email_sender: EmailSender,
    settings: Settings,
) -> Result[ProfileUpdate]:
    """Update name and email. A new email must be verified again.

    The verification email goes out after the commit; a delivery failure is
    reported in the result and leaves the update in place.
    """
    user_id = user.id
    new_email = req.email.lower()
    email_changed = new_email != user.email

    if email_changed:
        result = await session.execute(
            select(User.id).where(User.email == new_email, User.id != user.id)
        )
        if result.first() is not None:
            return conflict("Email is already taken")

    verification = None
    try:
        user.name = req.name
        if email_changed:
            user.email = new_email
            user.email_verified = None
            verification = await issue_verification(user, session, settings)
        user.updated_at = utcnow()
        session.add(user)
        await session.commit()
    except IntegrityError:
        await session.rollback()
        return conflict("Email is already taken")
    except SQLAlchemyError:
        await session.rollback()
        log.exception("profile.update_failed", user_id=str(user_id))
        return internal_failure()

    log.info("profile.updated", user_id=str(user_id), email_changed=email_changed)

    if verification is None:
        return Success(ProfileUpdate(user=user))
    sent = await send_verification(user, verification, email_sender, settings)
    return Success(ProfileUpdate(user=user, verification_email_sent=sent.success))


async def change_password(
    user: User, req: PasswordChangeRequest, session: AsyncSession
) -> Result[None]:
    user_id = user.id
    if not user.password_hash:
        return validation_error("User not found or no password set")
    if not verify_password(req.current_password, user.password_hash):
        log.warning("profile.password_change_rejected", user_id=str(user_id))
        return validation_error("Current password is incorrect")

    try:
        user.password_hash = hash_password(req.new_password)
        user.updated_at = utcnow()
        session.add(user)
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        log.exception("profile.password_change_failed", user_id=str(user_id))
        return internal_failure()

    log.info("profile.password_changed", user_id=str(user_id))
    return Success(None)


async def get_settings(user: User, session: AsyncSession) -> UserPreferences:
    prefs = await session.get(UserPreferences, user.id)
    if prefs is None:
        prefs = UserPreferences(user_id=user.id)
    return prefs


async def update_settings(
    user: User, req: SettingsUpdateRequest, session: AsyncSession
) -> Result[UserPreferences]:
    user_id = user.id
    prefs = await session.get(UserPreferences, user.id)
    if prefs is None:
        prefs = UserPreferences(user_id=user.id)

    try:
        prefs.email_notifications = req.email_notifications
        prefs.marketing_emails = req.marketing_emails
        prefs.security_alerts = req.security_alerts
        session.add(prefs)
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        log.exception("profile.settings_failed", user_id=str(user_id))
        return internal_failure()

    log.info("profile.settings_updated", user_id=str(user_id))
    return Success(prefs)


async def resend_verification(
    user: User,
    session: AsyncSession,
    email_sender: EmailSender,
    settings: Settings,
) -> Result[bool]:
    """Issue a fresh verification token; the value reports delivery."""
    user_id = user.id
    if user.email_verified is not None:
        return validation_error("Email is already verified")

    try:
        verification = await issue_verification(user, session, settings)
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        log.exception("profile.resend_verification_failed", user_id=str(user_id))
        return internal_failure()

    sent = await send_verification(user, verification, email_sender, settings)
    return Success(sent.success)
