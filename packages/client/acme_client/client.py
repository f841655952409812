"""
Typed client for the Acme Platform API.

Every method maps to one ``/api/v1`` endpoint and returns the matching
``acme_shared`` response model. The session token from ``login()`` is sent as
a Bearer header on later calls.
"""

from __future__ import annotations

import uuid
from typing import Any, Optional, TypeVar

import httpx
import structlog
from pydantic import BaseModel

from acme_shared.schemas.common import Role, SuccessResponse
from acme_shared.schemas.onboarding import (
    OnboardingProgressResponse,
    StepActionRequest,
    StepActionResponse,
)
from acme_shared.schemas.organizations import (
    InvitationAcceptRequest,
    InvitationAcceptResponse,
    InvitationCreateRequest,
    InvitationCreateResponse,
    InvitationListResponse,
    MemberListResponse,
    MemberResponse,
    MemberRoleUpdateRequest,
    MembershipListResponse,
    OrgCreateRequest,
    OrgCreateResponse,
    OrgResponse,
    OrgSwitchRequest,
    OrgSwitchResponse,
    OrgUpdateRequest,
)
from acme_shared.schemas.users import (
    CsrfTokenResponse,
    LoginRequest,
    LoginResponse,
    PasswordChangeRequest,
    ProfileUpdateRequest,
    ProfileUpdateResponse,
    SettingsResponse,
    SettingsUpdateRequest,
    SignupRequest,
    SignupResponse,
    UserResponse,
    VerifyEmailRequest,
)

from .config import ClientConfig
from .metrics import MetricsCollector
from .transport import Transport

log = structlog.get_logger()

API_PREFIX = "/api/v1"
CSRF_HEADER = "X-CSRF-Token"
UNSAFE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

M = TypeVar("M", bound=BaseModel)


class AcmeClient:
    """
    Async API client.

    Usage::

        async with AcmeClient(ClientConfig(base_url="https://acme.example")) as client:
            await client.login("alice@acme.dev", "secret-password")
            orgs = await client.list_organizations()
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        metrics: MetricsCollector | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or ClientConfig()
        self.metrics = metrics or MetricsCollector()
        self.token: Optional[str] = self.config.token
        self._csrf_token: Optional[str] = None
        self._transport = Transport(self.config, metrics=self.metrics, transport=transport)

    async def __aenter__(self) -> "AcmeClient":
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def open(self) -> None:
        await self._transport.open()

    async def close(self) -> None:
        await self._transport.close()

    # --- Plumbing ---

    def _headers(self, method: str) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if self._csrf_token and method in UNSAFE_METHODS:
            # Server-side CSRF tokens are single-use
            headers[CSRF_HEADER] = self._csrf_token
            self._csrf_token = None
        return headers

    async def _send(
        self,
        method: str,
        path: str,
        body: BaseModel | None = None,
        *,
        idempotency_key: str | None = None,
    ) -> Any:
        resp = await self._transport.request(
            method,
            f"{API_PREFIX}{path}",
            json=body.model_dump(mode="json") if body is not None else None,
            headers=self._headers(method),
            idempotency_key=idempotency_key,
        )
        return resp.json()

    async def _call(
        self,
        model: type[M],
        method: str,
        path: str,
        body: BaseModel | None = None,
        *,
        idempotency_key: str | None = None,
    ) -> M:
        data = await self._send(method, path, body, idempotency_key=idempotency_key)
        return model.model_validate(data)

    # --- Authentication ---

    async def signup(
        self, name: str, email: str, password: str, confirm_password: str | None = None
    ) -> SignupResponse:
        req = SignupRequest(
            name=name,
            email=email,
            password=password,
            confirm_password=password if confirm_password is None else confirm_password,
        )
        return await self._call(SignupResponse, "POST", "/auth/signup", req)

    async def login(self, email: str, password: str) -> LoginResponse:
        result = await self._call(
            LoginResponse, "POST", "/auth/login", LoginRequest(email=email, password=password)
        )
        self.token = result.token
        log.info("client.logged_in", user_id=str(result.user.id))
        return result

    async def logout(self) -> SuccessResponse:
        result = await self._call(SuccessResponse, "POST", "/auth/logout")
        self.token = None
        return result

    async def verify_email(self, token: str) -> SuccessResponse:
        return await self._call(
            SuccessResponse, "POST", "/auth/verify-email", VerifyEmailRequest(token=token)
        )

    async def fetch_csrf_token(self) -> CsrfTokenResponse:
        """Fetch a CSRF token; it is attached to the next mutating call."""
        result = await self._call(CsrfTokenResponse, "GET", "/csrf")
        self._csrf_token = result.token
        return result

    # --- Organizations ---

    async def list_organizations(self) -> MembershipListResponse:
        return await self._call(MembershipListResponse, "GET", "/organizations")

    async def create_organization(
        self,
        name: str,
        description: str | None = None,
        *,
        idempotency_key: str | None = None,
    ) -> OrgCreateResponse:
        req = OrgCreateRequest(name=name, description=description)
        return await self._call(
            OrgCreateResponse, "POST", "/organizations", req, idempotency_key=idempotency_key
        )

    async def switch_organization(self, organization_id: uuid.UUID) -> OrgSwitchResponse:
        req = OrgSwitchRequest(organization_id=organization_id)
        return await self._call(OrgSwitchResponse, "POST", "/organizations/switch", req)

    async def update_organization(
        self, slug: str, name: str, description: str | None = None
    ) -> OrgResponse:
        req = OrgUpdateRequest(name=name, description=description)
        return await self._call(OrgResponse, "PUT", f"/organizations/{slug}", req)

    async def delete_organization(self, organization_id: uuid.UUID) -> SuccessResponse:
        return await self._call(SuccessResponse, "DELETE", f"/organizations/{organization_id}")

    # --- Members ---

    async def list_members(self, slug: str) -> MemberListResponse:
        return await self._call(MemberListResponse, "GET", f"/organizations/{slug}/members")

    async def update_member_role(
        self, slug: str, member_id: uuid.UUID, role: Role
    ) -> MemberResponse:
        req = MemberRoleUpdateRequest(role=role)
        return await self._call(
            MemberResponse, "PUT", f"/organizations/{slug}/members/{member_id}", req
        )

    async def remove_member(self, slug: str, member_id: uuid.UUID) -> SuccessResponse:
        return await self._call(
            SuccessResponse, "DELETE", f"/organizations/{slug}/members/{member_id}"
        )

    # --- Invitations ---

    async def list_invitations(self, slug: str) -> InvitationListResponse:
        return await self._call(
            InvitationListResponse, "GET", f"/organizations/{slug}/invitations"
        )

    async def invite_member(
        self, slug: str, email: str, role: Role = Role.MEMBER
    ) -> InvitationCreateResponse:
        req = InvitationCreateRequest(email=email, role=role)
        return await self._call(
            InvitationCreateResponse, "POST", f"/organizations/{slug}/invitations", req
        )

    async def cancel_invitation(self, slug: str, invitation_id: uuid.UUID) -> SuccessResponse:
        return await self._call(
            SuccessResponse, "DELETE", f"/organizations/{slug}/invitations/{invitation_id}"
        )

    async def accept_invitation(self, token: str) -> InvitationAcceptResponse:
        req = InvitationAcceptRequest(token=token)
        return await self._call(InvitationAcceptResponse, "POST", "/invitations/accept", req)

    # --- Profile ---

    async def get_profile(self) -> UserResponse:
        return await self._call(UserResponse, "GET", "/profile")

    async def update_profile(self, name: str, email: str) -> ProfileUpdateResponse:
        req = ProfileUpdateRequest(name=name, email=email)
        return await self._call(ProfileUpdateResponse, "PUT", "/profile", req)

    async def change_password(self, current_password: str, new_password: str) -> SuccessResponse:
        req = PasswordChangeRequest(
            current_password=current_password,
            new_password=new_password,
            confirm_password=new_password,
        )
        return await self._call(SuccessResponse, "PUT", "/profile/password", req)

    async def get_settings(self) -> SettingsResponse:
        return await self._call(SettingsResponse, "GET", "/profile/settings")

    async def update_settings(self, settings: SettingsUpdateRequest) -> SettingsResponse:
        return await self._call(SettingsResponse, "PUT", "/profile/settings", settings)

    async def resend_verification(self) -> SuccessResponse:
        return await self._call(SuccessResponse, "POST", "/profile/resend-verification")

    async def delete_account(self) -> SuccessResponse:
        result = await self._call(SuccessResponse, "DELETE", "/profile")
        self.token = None
        return result

    # --- Onboarding ---

    async def onboarding_progress(self) -> OnboardingProgressResponse:
        return await self._call(OnboardingProgressResponse, "GET", "/onboarding/progress")

    async def complete_onboarding_step(
        self, step_key: str, data: dict[str, Any] | None = None
    ) -> StepActionResponse:
        req = StepActionRequest(step_key=step_key, data=data)
        return await self._call(StepActionResponse, "POST", "/onboarding/complete", req)

    async def skip_onboarding_step(self, step_key: str) -> StepActionResponse:
        req = StepActionRequest(step_key=step_key)
        return await self._call(StepActionResponse, "POST", "/onboarding/skip", req)

    async def reset_onboarding(self) -> SuccessResponse:
        return await self._call(SuccessResponse, "POST", "/onboarding/reset")

    # --- Health ---

    async def check_health(self) -> bool:
        """True when the server's liveness probe answers 200."""
        try:
            resp = await self._transport.request("GET", "/health")
        except Exception:
            return False
        return resp.status_code == 200
