"""User preferences and onboarding progress."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin


class UserPreferences(SQLModel, table=True):
    __tablename__ = "user_preferences"

    user_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
        )
    )
    email_notifications: bool = Field(default=True, nullable=False)
    marketing_emails: bool = Field(default=False, nullable=False)
    security_alerts: bool = Field(default=True, nullable=False)
    onboarding_completed: bool = Field(default=False, nullable=False)
    onboarding_completed_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime())


class OnboardingStep(UUIDMixin, SQLModel, table=True):
    __tablename__ = "onboarding_steps"

    key: str = Field(unique=True, index=True, nullable=False)
    title: str = Field(nullable=False)
    description: Optional[str] = None
    order: int = Field(nullable=False)
    required: bool = Field(default=False, nullable=False)
    is_active: bool = Field(default=True, nullable=False)


class OnboardingProgress(UUIDMixin, SQLModel, table=True):
    __tablename__ = "onboarding_progress"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "step_id", name="uq_onboarding_progress_user_step"),
    )

    user_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
        )
    )
    step_id: uuid.UUID = Field(foreign_key="onboarding_steps.id", nullable=False)
    completed: bool = Field(default=False, nullable=False)
    skipped: bool = Field(default=False, nullable=False)
    data: Optional[dict] = Field(default=None, sa_type=sa.JSON)
    completed_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime())
