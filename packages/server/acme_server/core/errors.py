"""
Result types returned by core services and their HTTP rendering.

Services never raise for domain outcomes; they return ``Success`` or
``Failure``. Route handlers call ``unwrap()`` which turns a ``Failure`` into an
``ApiError`` rendered by the exception handlers registered in ``create_app``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar, Union

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

log = structlog.get_logger()

T = TypeVar("T")

INTERNAL_ERROR_MESSAGE = "Internal server error"


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    UNAUTHORIZED = "unauthorized"
    ACCESS_DENIED = "access_denied"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INTERNAL = "internal"


STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.ACCESS_DENIED: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 400,
    ErrorKind.INTERNAL: 500,
}


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Success(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str
    code: Optional[str] = None
    details: Optional[list[Any]] = None

    @property
    def ok(self) -> bool:
        return False

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]


Result = Union[Success[T], Failure]


def validation_error(message: str, details: Optional[list[Any]] = None) -> Failure:
    return Failure(ErrorKind.VALIDATION, message, details=details)


def unauthorized(message: str = "Unauthorized") -> Failure:
    return Failure(ErrorKind.UNAUTHORIZED, message)


def access_denied(message: str) -> Failure:
    return Failure(ErrorKind.ACCESS_DENIED, message)


def not_found(message: str) -> Failure:
    return Failure(ErrorKind.NOT_FOUND, message)


def conflict(message: str, code: Optional[str] = None) -> Failure:
    return Failure(ErrorKind.CONFLICT, message, code=code)


def sole_owner_conflict(org_name: str) -> Failure:
    return conflict(
        f'Cannot delete account. You are the only owner of "{org_name}". '
        "Please transfer ownership or delete the organization first.",
        code="SOLE_OWNER",
    )


def internal_failure() -> Failure:
    return Failure(ErrorKind.INTERNAL, INTERNAL_ERROR_MESSAGE)


# ---------------------------------------------------------------------------
# HTTP translation
# ---------------------------------------------------------------------------

class ApiError(Exception):
    """Raised by route handlers to short-circuit with an error body."""

    def __init__(self, failure: Failure):
        super().__init__(failure.message)
        self.failure = failure

    @property
    def status_code(self) -> int:
        return self.failure.status_code

    def body(self) -> dict[str, Any]:
        content: dict[str, Any] = {"error": self.failure.message}
        if self.failure.details:
            content["details"] = self.failure.details
        return content


def unwrap(result: Result[T]) -> T:
    """Return the success value or raise ``ApiError`` for a failure."""
    if isinstance(result, Failure):
        raise ApiError(result)
    return result.value


def _validation_details(exc: RequestValidationError) -> list[dict[str, Any]]:
    return [
        {
            "loc": [str(part) for part in err.get("loc", ())],
            "msg": str(err.get("msg", "")),
            "type": str(err.get("type", "")),
        }
        for err in exc.errors()
    ]


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers rendering every error as ``{"error": ..., "details"?: ...}``."""

    @app.exception_handler(ApiError)
    async def _api_error(request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.body())

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "Validation failed", "details": _validation_details(exc)},
        )

    @app.exception_handler(StarletteHTTPException)
    async def _http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        log.exception("request.unhandled_error", path=request.url.path, method=request.method)
        return JSONResponse(status_code=500, content={"error": INTERNAL_ERROR_MESSAGE})
