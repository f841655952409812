"""
Security middleware: CSRF protection, security headers.
"""

from __future__ import annotations

import jwt
import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from acme_server.core.auth import SESSION_COOKIE, decode_session_token
from acme_server.core.csrf import CSRF_HEADER

log = structlog.get_logger()

SAFE_METHODS = {"GET", "HEAD", "OPTIONS"}

# Credential-establishing endpoints carry no trusted session yet
CSRF_EXEMPT_PATHS = {
    "/api/v1/auth/signup",
    "/api/v1/auth/login",
    "/api/v1/auth/verify-email",
}

# ---------------------------------------------------------------------------
# Security Headers
# ---------------------------------------------------------------------------

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "0",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
    "Content-Security-Policy": "default-src 'self'; frame-ancestors 'none';",
    "Strict-Transport-Security": "max-age=63072000; includeSubDomains; preload",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach security headers to every response."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers[header] = value
        return response


# ---------------------------------------------------------------------------
# CSRF Protection (session-bound token)
# ---------------------------------------------------------------------------

def _csrf_rejection() -> JSONResponse:
    return JSONResponse(status_code=403, content={"error": "CSRF token required"})


class CSRFMiddleware(BaseHTTPMiddleware):
    """
    Session-bound CSRF protection.

    The ``X-CSRF-Token`` header must carry the token issued by ``GET /api/v1/csrf``
    for the caller's session. Skipped for:
    - Safe HTTP methods (GET, HEAD, OPTIONS)
    - Requests with a Bearer Authorization header (not cookie-based)
    - Requests without a session cookie
    - Signup, login and email verification
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method in SAFE_METHODS:
            return await call_next(request)

        if request.headers.get("Authorization", "").startswith("Bearer "):
            return await call_next(request)

        cookie_token = request.cookies.get(SESSION_COOKIE)
        if not cookie_token:
            return await call_next(request)

        if request.url.path in CSRF_EXEMPT_PATHS:
            return await call_next(request)

        try:
            payload = decode_session_token(cookie_token, request.app.state.settings)
        except jwt.PyJWTError:
            # Invalid session; the route's session resolver answers 401
            return await call_next(request)

        session_id = payload.get("jti")
        header_token = request.headers.get(CSRF_HEADER, "")
        if not session_id or not await request.app.state.csrf_store.validate(
            session_id, header_token
        ):
            log.warning("csrf.validation_failed", path=request.url.path)
            return _csrf_rejection()

        return await call_next(request)
