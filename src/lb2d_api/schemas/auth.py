"""Auth-related Pydantic schemas.

Field names are snake_case in Python and camelCase on the wire.
"""

import re
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PASSWORD_STRENGTH = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")


class CamelModel(BaseModel):
    """Base model accepting either the camelCase alias or the field name."""

    model_config = ConfigDict(populate_by_name=True)


class DeviceFields(CamelModel):
    """Optional device details sent with register and login."""

    device_name: str | None = Field(None, alias="deviceName", max_length=200)
    fingerprint: str | None = Field(
        None,
        max_length=200,
        description="Stable per-install identifier; reused as the device id",
    )


class RegisterRequest(DeviceFields):
    """Schema for account registration."""

    email: str = Field(..., max_length=320)
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field(..., alias="firstName", min_length=1, max_length=100)
    last_name: str = Field(..., alias="lastName", min_length=1, max_length=100)
    phone: str | None = Field(None, max_length=32)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        """Require a plausible email address and normalise its case."""
        if not _EMAIL_PATTERN.match(v):
            raise ValueError("Please provide a valid email address")
        return v.lower()


class LoginRequest(DeviceFields):
    """Schema for login submissions."""

    email: str = Field(..., max_length=320)
    password: str = Field(..., min_length=6, max_length=128)


class RefreshRequest(CamelModel):
    """Refresh token exchange; the token travels in the body, never a header."""

    refresh_token: str | None = Field(None, alias="refreshToken")


class VerifyEmailRequest(CamelModel):
    token: str = Field(..., min_length=1, max_length=128)


class ForgotPasswordRequest(CamelModel):
    email: str = Field(..., max_length=320)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        if not _EMAIL_PATTERN.match(v):
            raise ValueError("Please provide a valid email address")
        return v.lower()


class ResetPasswordRequest(CamelModel):
    """Token from the reset link plus the replacement password."""

    token: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., alias="newPassword", min_length=6, max_length=100)

    @field_validator("new_password")
    @classmethod
    def validate_strength(cls, v: str) -> str:
        """Require at least one lowercase letter, one uppercase letter and one digit."""
        if not _PASSWORD_STRENGTH.match(v):
            raise ValueError(
                "Password must contain at least one uppercase letter, one lowercase letter, and one number"
            )
        return v


class LogoutRequest(CamelModel):
    """Logout from the current device, a named device, or every device."""

    device_id: str | None = Field(None, alias="deviceId")
    all_devices: bool = Field(False, alias="allDevices")


class UserResponse(CamelModel):
    """Public view of an account."""

    id: str
    email: str
    first_name: str = Field(..., alias="firstName")
    last_name: str = Field(..., alias="lastName")
    role: str
    is_email_verified: bool = Field(..., alias="isEmailVerified")
    phone: str | None = None
    profile_photo: str | None = Field(None, alias="profilePhoto")


class AuthResponse(CamelModel):
    """Tokens and profile returned after register or login."""

    user: UserResponse
    access_token: str = Field(..., alias="accessToken")
    refresh_token: str = Field(..., alias="refreshToken")
    device_id: str = Field(..., alias="deviceId")
    message: str


class TokenPairResponse(CamelModel):
    """New token pair returned by the refresh endpoint."""

    access_token: str = Field(..., alias="accessToken")
    refresh_token: str = Field(..., alias="refreshToken")


class MessageResponse(BaseModel):
    message: str


class DeviceSessionResponse(CamelModel):
    """A live device session as shown to its owner."""

    device_id: str = Field(..., alias="deviceId")
    device_name: str = Field(..., alias="deviceName")
    login_time: datetime = Field(..., alias="loginTime")
    last_activity_at: datetime = Field(..., alias="lastActivityAt")
    user_agent: str | None = Field(None, alias="userAgent")
    ip_address: str | None = Field(None, alias="ipAddress")


class DeviceSessionsResponse(BaseModel):
    sessions: list[DeviceSessionResponse]


class CurrentUserResponse(BaseModel):
    user: UserResponse
