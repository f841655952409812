"""
Account service — sign-up, credential login, sessions and email verification.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from acme_server.core.auth import (
    create_session_token,
    generate_token,
    hash_password,
    verify_password,
)
from acme_server.core.config import Settings
from acme_server.core.email import EmailResult, EmailSender, verification_email
from acme_server.core.errors import (
    Result,
    Success,
    conflict,
    internal_failure,
    unauthorized,
    validation_error,
)
from acme_server.models.auth import AuthSession, EmailVerification
from acme_server.models.base import utcnow
from acme_server.models.organization import Organization
from acme_server.models.user import User
from acme_server.services.onboarding import stage_user_onboarding
from acme_server.services.organizations import add_organization_with_owner

from acme_shared.schemas.users import SignupRequest

log = structlog.get_logger()


@dataclass
class SignupResult:
    user: User
    organization: Organization
    verification: EmailVerification


@dataclass
class LoginResult:
    user: User
    token: str
    expires_at: datetime


def personal_org_name(user_name: str) -> str:
    return f"{user_name}'s Organization"


async def get_user_by_email(email: str, session: AsyncSession) -> User | None:
    result = await session.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


def _new_verification(user: User, settings: Settings) -> EmailVerification:
    return EmailVerification(
        token=generate_token(),
        user_id=user.id,
        email=user.email,
        expires_at=utcnow() + timedelta(hours=settings.email_verification_ttl_hours),
    )


async def send_verification(
    user: User,
    verification: EmailVerification,
    email_sender: EmailSender,
    settings: Settings,
) -> EmailResult:
    """Deliver a verification link. Failures are reported, never raised."""
    verify_url = f"{settings.app_url.rstrip('/')}/verify-email?token={verification.token}"
    result = await email_sender.send(
        verification_email(
            verification.email,
            user.name,
            verify_url,
            settings.app_name,
            settings.email_verification_ttl_hours,
        )
    )
    if not result.success:
        log.warning("account.verification_email_failed", user_id=str(user.id), error=result.error)
    return result


# ---------------------------------------------------------------------------
# Sign-up
# ---------------------------------------------------------------------------

async def sign_up(
    req: SignupRequest,
    session: AsyncSession,
    settings: Settings,
) -> Result[SignupResult]:
    """Create a user with a personal organization they own.

    User, organization, owner membership, onboarding rows and the
    verification token are committed together.
    """
    email = req.email.lower()
    if await get_user_by_email(email, session):
        return conflict("User already exists")

    for attempt in range(1, settings.slug_max_attempts + 1):
        try:
            user = User(email=email, name=req.name, password_hash=hash_password(req.password))
            session.add(user)
            await session.flush()

            org = await add_organization_with_owner(
                personal_org_name(req.name), None, user.id, session
            )
            await stage_user_onboarding(user.id, session)
            verification = _new_verification(user, settings)
            session.add(verification)
            await session.commit()
        except IntegrityError:
            await session.rollback()
            if await get_user_by_email(email, session):
                return conflict("User already exists")
            log.warning("account.signup_slug_conflict", attempt=attempt)
            continue
        except SQLAlchemyError:
            await session.rollback()
            log.exception("account.signup_failed")
            return internal_failure()

        log.info("user.registered", user_id=str(user.id), org_id=str(org.id), slug=org.slug)
        return Success(SignupResult(user=user, organization=org, verification=verification))

    return conflict("Could not allocate a unique organization slug, please retry")


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

async def authenticate(
    email: str,
    password: str,
    session: AsyncSession,
    settings: Settings,
) -> Result[LoginResult]:
    """Check credentials and open a new session."""
    user = await get_user_by_email(email, session)
    if user is None or not user.password_hash:
        return unauthorized("Invalid email or password")
    if not verify_password(password, user.password_hash):
        log.warning("auth.login_failure", user_id=str(user.id), reason="bad_password")
        return unauthorized("Invalid email or password")

    token, jti, expires_at = create_session_token(user.id, settings)
    try:
        session.add(AuthSession(id=jti, user_id=user.id, expires_at=expires_at))
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        log.exception("auth.session_create_failed", user_id=str(user.id))
        return internal_failure()

    log.info("auth.login_success", user_id=str(user.id))
    return Success(LoginResult(user=user, token=token, expires_at=expires_at))


async def end_session(session_id: str, session: AsyncSession) -> Result[None]:
    auth_session = await session.get(AuthSession, session_id)
    if auth_session is None:
        return Success(None)
    user_id = auth_session.user_id
    try:
        await session.delete(auth_session)
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        log.exception("auth.logout_failed")
        return internal_failure()
    log.info("auth.logout", user_id=str(user_id))
    return Success(None)


# ---------------------------------------------------------------------------
# Email verification
# ---------------------------------------------------------------------------

async def issue_verification(
    user: User, session: AsyncSession, settings: Settings
) -> EmailVerification:
    """Stage a new verification token for the user's current email."""
    verification = _new_verification(user, settings)
    session.add(verification)
    await session.flush()
    return verification


async def verify_email(token: str, session: AsyncSession) -> Result[User]:
    result = await session.execute(
        select(EmailVerification).where(EmailVerification.token == token)
    )
    verification = result.scalar_one_or_none()
    if verification is None or verification.used or verification.expires_at <= utcnow():
        return validation_error("Invalid or expired verification token")

    user = await session.get(User, verification.user_id)
    if user is None or user.email != verification.email:
        return validation_error("Invalid or expired verification token")

    try:
        user.email_verified = utcnow()
        verification.used = True
        session.add_all([user, verification])
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        log.exception("account.verify_failed", user_id=str(verification.user_id))
        return internal_failure()

    log.info("account.email_verified", user_id=str(user.id))
    return Success(user)

