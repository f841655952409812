"""
Onboarding API endpoints.

GET  /api/v1/onboarding/progress  — Step-by-step progress
POST /api/v1/onboarding/complete  — Complete a step
POST /api/v1/onboarding/skip      — Skip an optional step
POST /api/v1/onboarding/reset     — Start over
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from acme_server.core.auth import AuthenticatedUser, get_current_user
from acme_server.core.database import get_session
from acme_server.core.errors import unwrap
from acme_server.services import onboarding as onboarding_service

from acme_shared.schemas.common import SuccessResponse
from acme_shared.schemas.onboarding import (
    OnboardingProgressResponse,
    StepActionRequest,
    StepActionResponse,
)

router = APIRouter()


@router.get("/progress", response_model=OnboardingProgressResponse)
async def get_progress(
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await onboarding_service.get_progress(auth.user_id, session)


@router.post("/complete", response_model=StepActionResponse)
async def complete_step(
    body: StepActionRequest,
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    completed = unwrap(
        await onboarding_service.complete_step(auth.user_id, body.step_key, session, body.data)
    )
    return StepActionResponse(onboarding_completed=completed)


@router.post("/skip", response_model=StepActionResponse)
async def skip_step(
    body: StepActionRequest,
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    completed = unwrap(await onboarding_service.skip_step(auth.user_id, body.step_key, session))
    return StepActionResponse(onboarding_completed=completed)


@router.post("/reset", response_model=SuccessResponse)
async def reset_onboarding(
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    unwrap(await onboarding_service.reset_onboarding(auth.user_id, session))
    return SuccessResponse(message="Onboarding reset")
