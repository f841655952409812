"""Auxiliary authentication tables: sessions, external accounts, email verification."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, utcnow


def _user_fk() -> sa.Column:
    return sa.Column(
        sa.Uuid, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )


class AuthSession(SQLModel, table=True):
    """A server-side session; ``id`` is the ``jti`` claim of the session token."""

    __tablename__ = "sessions"

    id: str = Field(primary_key=True)
    user_id: uuid.UUID = Field(sa_column=_user_fk())
    active_organization_id: Optional[uuid.UUID] = Field(
        default=None,
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True
        ),
    )
    expires_at: datetime = Field(nullable=False, sa_type=sa.DateTime())
    created_at: datetime = Field(default_factory=utcnow, nullable=False, sa_type=sa.DateTime())


class Account(UUIDMixin, SQLModel, table=True):
    """Link to an external identity provider."""

    __tablename__ = "accounts"
    __table_args__ = (
        sa.UniqueConstraint("provider", "provider_account_id", name="uq_accounts_provider"),
    )

    user_id: uuid.UUID = Field(sa_column=_user_fk())
    provider: str = Field(nullable=False)
    provider_account_id: str = Field(nullable=False)
    created_at: datetime = Field(default_factory=utcnow, nullable=False, sa_type=sa.DateTime())


class EmailVerification(UUIDMixin, SQLModel, table=True):
    __tablename__ = "email_verifications"

    token: str = Field(unique=True, index=True, nullable=False)
    user_id: uuid.UUID = Field(sa_column=_user_fk())
    email: str = Field(nullable=False)
    expires_at: datetime = Field(nullable=False, sa_type=sa.DateTime())
    used: bool = Field(default=False, nullable=False)
    created_at: datetime = Field(default_factory=utcnow, nullable=False, sa_type=sa.DateTime())
