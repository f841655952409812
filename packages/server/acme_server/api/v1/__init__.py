"""
API v1 Router

Account-level endpoints; organization-scoped operations take the org slug or
id in the path.
"""

from fastapi import APIRouter
from . import auth, invitations, onboarding, organizations, profile

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(auth.csrf_router)
router.include_router(organizations.router, prefix="/organizations", tags=["Organizations"])
router.include_router(invitations.router, prefix="/invitations", tags=["Invitations"])
router.include_router(profile.router, prefix="/profile", tags=["Profile"])
router.include_router(onboarding.router, prefix="/onboarding", tags=["Onboarding"])


@router.get("/", tags=["API"])
async def api_root():
    """API root — returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/auth",
            "/csrf",
            "/organizations",
            "/organizations/{slug}/members",
            "/organizations/{slug}/invitations",
            "/invitations",
            "/profile",
            "/onboarding",
        ],
    }
