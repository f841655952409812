# SQLModel definitions — imported here to ensure metadata is populated for create_all().
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .organization import Organization  # noqa: F401
from .membership import Membership  # noqa: F401
from .auth import Account, AuthSession, EmailVerification  # noqa: F401
from .onboarding import OnboardingProgress, OnboardingStep, UserPreferences  # noqa: F401
from .invitation import Invitation  # noqa: F401
