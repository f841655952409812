from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel


class Role(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class OrgPlan(str, Enum):
    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class OrgStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"


class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    CANCELLED = "cancelled"


# Roles allowed to administer an organization
ADMIN_ROLES: frozenset[Role] = frozenset({Role.OWNER, Role.ADMIN})


class ErrorResponse(BaseModel):
    error: str
    details: Optional[list[Any]] = None


class SuccessResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
