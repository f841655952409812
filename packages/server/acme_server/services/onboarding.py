"""
Onboarding service — per-user progress through the getting-started steps.
"""

from __future__ import annotations

import uuid
from typing import Any, Optional

import structlog
from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from acme_server.core.errors import (
    Result,
    Success,
    internal_failure,
    not_found,
    validation_error,
)
from acme_server.models.base import utcnow
from acme_server.models.onboarding import OnboardingProgress, OnboardingStep, UserPreferences

from acme_shared.schemas.onboarding import OnboardingProgressResponse, OnboardingStepProgress

log = structlog.get_logger()

DEFAULT_ONBOARDING_STEPS: list[dict[str, Any]] = [
    {
        "key": "welcome",
        "title": "Welcome",
        "description": "Welcome to the platform! Let's get you started.",
        "order": 1,
        "required": True,
    },
    {
        "key": "organization",
        "title": "Create Organization",
        "description": "Set up your organization to collaborate with your team.",
        "order": 2,
        "required": True,
    },
    {
        "key": "profile",
        "title": "Complete Profile",
        "description": "Add your profile information and preferences.",
        "order": 3,
        "required": False,
    },
    {
        "key": "tour",
        "title": "Take a Tour",
        "description": "Learn about the key features of the platform.",
        "order": 4,
        "required": False,
    },
    {
        "key": "invite",
        "title": "Invite Team Members",
        "description": "Invite your colleagues to join your organization.",
        "order": 5,
        "required": False,
    },
]


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

async def ensure_default_steps(session: AsyncSession) -> list[OnboardingStep]:
    """Create missing default steps; returns the active steps in order."""
    result = await session.execute(select(OnboardingStep))
    existing = {step.key: step for step in result.scalars().all()}
    for spec in DEFAULT_ONBOARDING_STEPS:
        if spec["key"] not in existing:
            step = OnboardingStep(**spec)
            session.add(step)
            existing[step.key] = step
    await session.flush()
    return sorted((s for s in existing.values() if s.is_active), key=lambda s: s.order)


async def _get_preferences(user_id: uuid.UUID, session: AsyncSession) -> UserPreferences:
    prefs = await session.get(UserPreferences, user_id)
    if prefs is None:
        prefs = UserPreferences(user_id=user_id)
        session.add(prefs)
        await session.flush()
    return prefs


async def stage_user_onboarding(user_id: uuid.UUID, session: AsyncSession) -> None:
    """Add preferences and one progress row per step, without committing."""
    steps = await ensure_default_steps(session)
    await _get_preferences(user_id, session)

    result = await session.execute(
        select(OnboardingProgress.step_id).where(OnboardingProgress.user_id == user_id)
    )
    have = set(result.scalars().all())
    for step in steps:
        if step.id not in have:
            session.add(OnboardingProgress(user_id=user_id, step_id=step.id))
    await session.flush()


async def initialize_user_onboarding(user_id: uuid.UUID, session: AsyncSession) -> None:
    await stage_user_onboarding(user_id, session)
    await session.commit()
    log.info("onboarding.initialized", user_id=str(user_id))


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------

async def _progress_rows(
    user_id: uuid.UUID, session: AsyncSession
) -> list[tuple[OnboardingStep, OnboardingProgress]]:
    result = await session.execute(
        select(OnboardingStep, OnboardingProgress)
        .join(OnboardingProgress, OnboardingProgress.step_id == OnboardingStep.id)
        .where(OnboardingProgress.user_id == user_id, OnboardingStep.is_active == True)  # noqa: E712
        .order_by(OnboardingStep.order)
    )
    return list(result.all())


async def get_progress(user_id: uuid.UUID, session: AsyncSession) -> OnboardingProgressResponse:
    """Progress for every active step; initialises the user lazily."""
    rows = await _progress_rows(user_id, session)
    if not rows:
        await initialize_user_onboarding(user_id, session)
        rows = await _progress_rows(user_id, session)

    prefs = await _get_preferences(user_id, session)
    steps = [
        OnboardingStepProgress(
            key=step.key,
            title=step.title,
            description=step.description,
            order=step.order,
            required=step.required,
            completed=progress.completed,
            skipped=progress.skipped,
            completed_at=progress.completed_at,
            data=progress.data,
        )
        for step, progress in rows
    ]
    return OnboardingProgressResponse(
        steps=steps,
        total_steps=len(steps),
        completed_steps=sum(1 for s in steps if s.completed),
        skipped_steps=sum(1 for s in steps if s.skipped),
        is_completed=prefs.onboarding_completed,
        completed_at=prefs.onboarding_completed_at,
    )


async def _find_progress(
    user_id: uuid.UUID, step_key: str, session: AsyncSession
) -> Optional[tuple[OnboardingStep, OnboardingProgress]]:
    result = await session.execute(select(OnboardingStep).where(OnboardingStep.key == step_key))
    step = result.scalar_one_or_none()
    if step is None:
        return None

    result = await session.execute(
        select(OnboardingProgress).where(
            OnboardingProgress.user_id == user_id,
            OnboardingProgress.step_id == step.id,
        )
    )
    progress = result.scalar_one_or_none()
    if progress is None:
        progress = OnboardingProgress(user_id=user_id, step_id=step.id)
        session.add(progress)
    return step, progress


async def check_completion(user_id: uuid.UUID, session: AsyncSession) -> bool:
    """Mark onboarding complete once every required step is completed."""
    await session.flush()
    result = await session.execute(
        select(OnboardingStep.id).where(
            OnboardingStep.required == True,  # noqa: E712
            OnboardingStep.is_active == True,  # noqa: E712
        )
    )
    required = set(result.scalars().all())
    rows = await _progress_rows(user_id, session)
    completed = {step.id for step, progress in rows if progress.completed}
    done = bool(required) and required <= completed

    prefs = await _get_preferences(user_id, session)
    if done and not prefs.onboarding_completed:
        prefs.onboarding_completed = True
        prefs.onboarding_completed_at = utcnow()
        session.add(prefs)
        log.info("onboarding.completed", user_id=str(user_id))
    return prefs.onboarding_completed


async def complete_step(
    user_id: uuid.UUID,
    step_key: str,
    session: AsyncSession,
    data: Optional[dict[str, Any]] = None,
) -> Result[bool]:
    """Complete a step. The success value is the overall completion flag."""
    found = await _find_progress(user_id, step_key, session)
    if found is None:
        return not_found(f"Unknown onboarding step: {step_key}")
    _, progress = found

    try:
        progress.completed = True
        progress.skipped = False
        progress.completed_at = utcnow()
        if data is not None:
            progress.data = data
        session.add(progress)
        completed = await check_completion(user_id, session)
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        log.exception("onboarding.complete_failed", user_id=str(user_id), step=step_key)
        return internal_failure()

    log.info("onboarding.step_completed", user_id=str(user_id), step=step_key)
    return Success(completed)


async def skip_step(
    user_id: uuid.UUID, step_key: str, session: AsyncSession
) -> Result[bool]:
    found = await _find_progress(user_id, step_key, session)
    if found is None:
        return not_found(f"Unknown onboarding step: {step_key}")
    step, progress = found
    if step.required:
        return validation_error("Cannot skip required step")

    try:
        progress.skipped = True
        progress.completed = False
        progress.completed_at = utcnow()
        session.add(progress)
        completed = await check_completion(user_id, session)
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        log.exception("onboarding.skip_failed", user_id=str(user_id), step=step_key)
        return internal_failure()

    log.info("onboarding.step_skipped", user_id=str(user_id), step=step_key)
    return Success(completed)


async def reset_onboarding(user_id: uuid.UUID, session: AsyncSession) -> Result[None]:
    try:
        await session.execute(
            delete(OnboardingProgress).where(OnboardingProgress.user_id == user_id)
        )
        prefs = await _get_preferences(user_id, session)
        prefs.onboarding_completed = False
        prefs.onboarding_completed_at = None
        session.add(prefs)
        await stage_user_onboarding(user_id, session)
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        log.exception("onboarding.reset_failed", user_id=str(user_id))
        return internal_failure()

    log.info("onboarding.reset", user_id=str(user_id))
    return Success(None)
