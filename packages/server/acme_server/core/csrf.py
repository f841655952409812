"""
CSRF tokens bound to a server-side session.

Tokens are stored in Redis under ``csrf:<session id>`` with a TTL and are
consumed by the first successful validation.
"""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass

import redis.asyncio as redis
import structlog

from acme_server.core.auth import generate_token

log = structlog.get_logger()

CSRF_HEADER = "X-CSRF-Token"


@dataclass(frozen=True)
class IssuedCsrfToken:
    token: str
    expires: int  # epoch milliseconds


class CsrfStore:
    def __init__(self, client: redis.Redis, ttl_seconds: int = 60 * 60 * 24):
        self._redis = client
        self._ttl = ttl_seconds

    @staticmethod
    def _key(session_id: str) -> str:
        return f"csrf:{session_id}"

    async def issue(self, session_id: str) -> IssuedCsrfToken:
        """Create a token for a session, replacing any earlier one."""
        token = generate_token()
        await self._redis.setex(self._key(session_id), self._ttl, token)
        expires = int((time.time() + self._ttl) * 1000)
        log.debug("csrf.issued", session_id=session_id)
        return IssuedCsrfToken(token=token, expires=expires)

    async def validate(self, session_id: str, token: str) -> bool:
        """Check a token and consume it on success."""
        if not token:
            return False
        key = self._key(session_id)
        stored = await self._redis.get(key)
        if not stored or not secrets.compare_digest(stored, token):
            log.info("csrf.rejected", session_id=session_id)
            return False
        await self._redis.delete(key)
        return True
