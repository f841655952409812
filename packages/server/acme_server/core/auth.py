"""
Authentication for the Acme platform.

Supports:
- Email/Password credentials (bcrypt)
- Session tokens (JWT) backed by a ``sessions`` row, sent as the
  ``acme_session`` cookie or an ``Authorization: Bearer`` header
- The session resolver dependency used by every authenticated route
"""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, Request
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from acme_server.core.config import Settings
from acme_server.core.database import get_session
from acme_server.core.errors import ApiError, unauthorized
from acme_server.models.auth import AuthSession
from acme_server.models.base import utcnow
from acme_server.models.user import User


SESSION_COOKIE = "acme_session"
BCRYPT_ROUNDS = 12
# bcrypt only looks at the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72

authorization_header = APIKeyHeader(name="Authorization", auto_error=False)

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """Hash a password using bcrypt with cost factor 12."""
    return bcrypt.hashpw(
        password.encode()[:BCRYPT_MAX_BYTES], bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    ).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    return bcrypt.checkpw(password.encode()[:BCRYPT_MAX_BYTES], hashed.encode())


# ---------------------------------------------------------------------------
# Session tokens
# ---------------------------------------------------------------------------

def create_session_token(
    user_id: uuid.UUID,
    settings: Settings,
    *,
    expires_delta: timedelta | None = None,
) -> tuple[str, str, datetime]:
    """Create a signed session JWT. Returns (token, jti, naive-UTC expiry)."""
    jti = secrets.token_urlsafe(24)
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.session_expire_minutes))
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": exp,
        "jti": jti,
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token, jti, exp.replace(tzinfo=None)


def decode_session_token(token: str, settings: Settings) -> dict:
    """Decode and verify a session JWT. Raises jwt.PyJWTError on failure."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


def generate_token() -> str:
    """Generate a random URL-safe token (CSRF, email verification)."""
    return secrets.token_urlsafe(32)


def extract_session_token(request: Request, authorization: Optional[str]) -> Optional[str]:
    """Bearer header wins over the session cookie."""
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip() or None
    return request.cookies.get(SESSION_COOKIE)


# ---------------------------------------------------------------------------
# Session resolver
# ---------------------------------------------------------------------------

class AuthenticatedUser:
    """Container for an authenticated user and the session that proved it."""

    def __init__(self, user: User, auth_session: AuthSession):
        self.user = user
        self.auth_session = auth_session
        self.user_id = user.id
        self.session_id = auth_session.id


async def resolve_session(
    token: str, session: AsyncSession, settings: Settings
) -> Optional[AuthenticatedUser]:
    """Return the authenticated user for a token, or None."""
    try:
        payload = decode_session_token(token, settings)
    except jwt.PyJWTError:
        return None

    jti = payload.get("jti")
    try:
        user_id = uuid.UUID(payload.get("sub", ""))
    except ValueError:
        return None
    if not jti:
        return None

    auth_session = await session.get(AuthSession, jti)
    if auth_session is None or auth_session.user_id != user_id:
        return None
    if auth_session.expires_at <= utcnow():
        return None

    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        return None
    return AuthenticatedUser(user=user, auth_session=auth_session)


async def get_current_user(
    request: Request,
    authorization: Optional[str] = Depends(authorization_header),
    session: AsyncSession = Depends(get_session),
) -> AuthenticatedUser:
    """Main authentication dependency. Raises 401 when no valid session exists."""
    token = extract_session_token(request, authorization)
    if not token:
        raise ApiError(unauthorized())

    auth = await resolve_session(token, session, request.app.state.settings)
    if auth is None:
        raise ApiError(unauthorized())

    request.state.auth = auth
    return auth
