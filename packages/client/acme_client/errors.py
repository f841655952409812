"""
Normalised client errors.

Every failed call surfaces as ``ApiClientError`` with a stable ``code``
derived from the HTTP status and the server's ``{"error", "details"}`` body.
"""

from __future__ import annotations

import random
import string
import time
from typing import Any

import httpx

NETWORK_ERROR = "NETWORK_ERROR"

_STATUS_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    429: "RATE_LIMITED",
}

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_request_id() -> str:
    """Request id of the form ``req_<epoch ms>_<9 random chars>``."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"req_{int(time.time() * 1000)}_{suffix}"


def map_status_to_error_code(status: int) -> str:
    if status in _STATUS_CODES:
        return _STATUS_CODES[status]
    return "INTERNAL" if status >= 500 else "BAD_REQUEST"


class ApiClientError(Exception):
    def __init__(
        self,
        code: str,
        message: str,
        status: int,
        request_id: str,
        details: Any = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status = status
        self.request_id = request_id
        self.details = details

    def __repr__(self) -> str:
        return (
            f"ApiClientError(code={self.code!r}, status={self.status}, "
            f"message={self.message!r}, request_id={self.request_id!r})"
        )

    @classmethod
    def from_response(cls, response: httpx.Response, request_id: str) -> "ApiClientError":
        message = response.reason_phrase or "Request failed"
        details = None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            message = body.get("error") or message
            details = body.get("details")
        return cls(
            code=map_status_to_error_code(response.status_code),
            message=message,
            status=response.status_code,
            request_id=request_id,
            details=details,
        )
