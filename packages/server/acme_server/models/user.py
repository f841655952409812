"""User model."""

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class User(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "users"

    email: str = Field(unique=True, index=True, nullable=False)
    name: str = Field(nullable=False)
    password_hash: Optional[str] = Field(default=None)  # null for externally authenticated accounts
    email_verified: Optional[datetime] = Field(default=None, sa_type=sa.DateTime())
    image: Optional[str] = None
