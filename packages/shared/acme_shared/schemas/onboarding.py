"""Onboarding progress schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class StepActionRequest(BaseModel):
    step_key: str = Field(min_length=1)
    data: Optional[dict[str, Any]] = None


class OnboardingStepProgress(BaseModel):
    key: str
    title: str
    description: Optional[str] = None
    order: int
    required: bool
    completed: bool = False
    skipped: bool = False
    completed_at: Optional[datetime] = None
    data: Optional[dict[str, Any]] = None


class OnboardingProgressResponse(BaseModel):
    steps: list[OnboardingStepProgress]
    total_steps: int
    completed_steps: int
    skipped_steps: int
    is_completed: bool
    completed_at: Optional[datetime] = None


class StepActionResponse(BaseModel):
    success: bool = True
    onboarding_completed: bool = False
