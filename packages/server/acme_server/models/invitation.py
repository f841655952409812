"""Pending invitations to join an organization."""

from datetime import datetime
import uuid
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, utcnow


class Invitation(UUIDMixin, SQLModel, table=True):
    __tablename__ = "invitations"

    organization_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid,
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    email: str = Field(nullable=False, index=True)  # stored lowercased
    role: str = Field(nullable=False, default="member")  # admin | member
    token: str = Field(nullable=False, unique=True, index=True)
    status: str = Field(nullable=False, default="pending")  # pending | accepted | cancelled
    invited_by_id: Optional[uuid.UUID] = Field(
        default=None,
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
        ),
    )
    expires_at: datetime = Field(nullable=False, sa_type=sa.DateTime())
    created_at: datetime = Field(default_factory=utcnow, nullable=False, sa_type=sa.DateTime())
