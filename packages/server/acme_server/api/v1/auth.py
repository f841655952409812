"""
Authentication endpoints.

POST /api/v1/auth/signup        — Register with email/password (creates a personal org)
POST /api/v1/auth/login         — Open a session (cookie + bearer token)
POST /api/v1/auth/logout        — End the current session
POST /api/v1/auth/verify-email  — Confirm an email address
GET  /api/v1/csrf               — Issue a CSRF token for the current session
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from acme_server.api.deps import get_app_settings, get_csrf_store, get_email_sender
from acme_server.api.v1.serializers import org_response, user_response
from acme_server.core.auth import SESSION_COOKIE, AuthenticatedUser, get_current_user
from acme_server.core.config import Settings
from acme_server.core.csrf import CsrfStore
from acme_server.core.database import get_session
from acme_server.core.email import EmailSender
from acme_server.core.errors import unwrap
from acme_server.services import accounts as account_service

from acme_shared.schemas.common import SuccessResponse
from acme_shared.schemas.users import (
    CsrfTokenResponse,
    LoginRequest,
    LoginResponse,
    SignupRequest,
    SignupResponse,
    VerifyEmailRequest,
)

router = APIRouter()
csrf_router = APIRouter()


def _set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        httponly=True,
        secure=not settings.debug,  # allow non-HTTPS in dev
        samesite="lax",
        path="/",
        max_age=settings.session_expire_minutes * 60,
    )


# ---------------------------------------------------------------------------
# Registration & login
# ---------------------------------------------------------------------------

@router.post("/signup", response_model=SignupResponse, status_code=201)
async def signup(
    body: SignupRequest,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
    email_sender: EmailSender = Depends(get_email_sender),
):
    """Register a new user. A personal organization is created with the user as owner."""
    result = unwrap(await account_service.sign_up(body, session, settings))
    await account_service.send_verification(
        result.user, result.verification, email_sender, settings
    )
    return SignupResponse(
        user=user_response(result.user),
        organization=org_response(result.organization),
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
):
    """Authenticate with email/password and receive a session."""
    result = unwrap(
        await account_service.authenticate(body.email, body.password, session, settings)
    )
    _set_session_cookie(response, result.token, settings)
    return LoginResponse(
        user=user_response(result.user),
        token=result.token,
        expires_at=result.expires_at,
    )


@router.post("/logout", response_model=SuccessResponse)
async def logout(
    response: Response,
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Invalidate the current session."""
    unwrap(await account_service.end_session(auth.session_id, session))
    response.delete_cookie(SESSION_COOKIE, path="/")
    return SuccessResponse(message="Logged out")


@router.post("/verify-email", response_model=SuccessResponse)
async def verify_email(
    body: VerifyEmailRequest,
    session: AsyncSession = Depends(get_session),
):
    unwrap(await account_service.verify_email(body.token, session))
    return SuccessResponse(message="Email verified")


# ---------------------------------------------------------------------------
# CSRF
# ---------------------------------------------------------------------------

@csrf_router.get("/csrf", response_model=CsrfTokenResponse, tags=["Authentication"])
async def issue_csrf_token(
    auth: AuthenticatedUser = Depends(get_current_user),
    csrf_store: CsrfStore = Depends(get_csrf_store),
):
    """Issue a single-use CSRF token bound to the caller's session."""
    issued = await csrf_store.issue(auth.session_id)
    return CsrfTokenResponse(token=issued.token, expires=issued.expires)
