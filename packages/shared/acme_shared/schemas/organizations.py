"""
Organization-related Pydantic schemas shared between server and client.

Covers: organization create/update requests, summaries, membership listings,
active-organization switching, member management and invitations.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from .common import InvitationStatus, OrgPlan, OrgStatus, Role


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class OrgCreateRequest(BaseModel):
    name: str = Field(min_length=2, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Organization name must be at least 2 characters")
        return v


class OrgUpdateRequest(BaseModel):
    name: str = Field(min_length=2, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)


class OrgSwitchRequest(BaseModel):
    organization_id: Optional[uuid.UUID] = None


class MemberRoleUpdateRequest(BaseModel):
    role: Role


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class OrgResponse(BaseModel):
    """Organization as returned after create/update."""
    id: uuid.UUID
    name: str
    slug: str
    description: str = ""


class OrgCreateResponse(BaseModel):
    success: bool = True
    message: str = "Organization created successfully"
    organization: OrgResponse


class OrgSummary(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    plan: OrgPlan
    status: OrgStatus
    created_at: datetime
    member_count: int


class MembershipWithOrg(BaseModel):
    id: uuid.UUID
    role: Role
    created_at: datetime
    organization: OrgSummary


class MembershipListResponse(BaseModel):
    data: list[MembershipWithOrg]


class OrgSwitchResponse(BaseModel):
    success: bool = True
    organization: OrgResponse
    role: Role


class MemberResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    name: str
    email: str
    role: Role
    created_at: datetime


class MemberListResponse(BaseModel):
    data: list[MemberResponse]


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------

class InvitationCreateRequest(BaseModel):
    email: EmailStr
    role: Role = Role.MEMBER

    @field_validator("role")
    @classmethod
    def _not_owner(cls, v: Role) -> Role:
        if v is Role.OWNER:
            raise ValueError("Invitations can only grant the member or admin role")
        return v


class InvitationAcceptRequest(BaseModel):
    token: str = Field(min_length=1)


class InvitationResponse(BaseModel):
    id: uuid.UUID
    email: str
    role: Role
    status: InvitationStatus
    created_at: datetime
    expires_at: datetime


class InvitationListResponse(BaseModel):
    data: list[InvitationResponse]


class InvitationCreateResponse(BaseModel):
    success: bool = True
    message: str = "Invitation sent successfully"
    invitation: InvitationResponse
    email_sent: bool = True


class InvitationAcceptResponse(BaseModel):
    success: bool = True
    organization: OrgResponse
    role: Role
