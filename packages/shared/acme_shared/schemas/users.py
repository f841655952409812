"""Account, session and profile schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

from .organizations import OrgResponse

SIGNUP_PASSWORD_MIN_LENGTH = 6
PASSWORD_MIN_LENGTH = 8


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class SignupRequest(BaseModel):
    name: str = Field(min_length=2, max_length=200)
    email: EmailStr
    password: str = Field(min_length=SIGNUP_PASSWORD_MIN_LENGTH, max_length=200)
    confirm_password: str

    @model_validator(mode="after")
    def _passwords_match(self) -> "SignupRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class VerifyEmailRequest(BaseModel):
    token: str = Field(min_length=1)


class ProfileUpdateRequest(BaseModel):
    name: str = Field(min_length=2, max_length=200)
    email: EmailStr


class PasswordChangeRequest(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=PASSWORD_MIN_LENGTH, max_length=200)
    confirm_password: str

    @model_validator(mode="after")
    def _passwords_match(self) -> "PasswordChangeRequest":
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class SettingsUpdateRequest(BaseModel):
    email_notifications: bool = True
    marketing_emails: bool = False
    security_alerts: bool = True


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class UserResponse(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    email_verified: Optional[datetime] = None
    created_at: datetime


class SignupResponse(BaseModel):
    user: UserResponse
    organization: OrgResponse
    message: str = "User created successfully"


class LoginResponse(BaseModel):
    user: UserResponse
    token: str
    expires_at: datetime


class ProfileUpdateResponse(BaseModel):
    success: bool = True
    message: str = "Profile updated successfully"
    user: UserResponse
    verification_email_sent: Optional[bool] = None


class SettingsResponse(BaseModel):
    email_notifications: bool
    marketing_emails: bool
    security_alerts: bool


class CsrfTokenResponse(BaseModel):
    token: str
    expires: int  # epoch milliseconds
