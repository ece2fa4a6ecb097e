"""Typed API errors raised by the auth edge.

Every error carries the HTTP status and the stable, user-visible message the
exception handler in `lb2d_api.main` renders. Authentication failures are all
401s; account-flow errors use the status that matches the condition.
"""

from __future__ import annotations

from fastapi import status


class ApiError(Exception):
    """Base class for errors rendered directly as HTTP responses."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_detail: str = "Bad request"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class AuthenticationError(ApiError):
    """Terminal authentication failure; the client must log in or refresh."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Unauthorized"


class InvalidToken(AuthenticationError):
    default_detail = "Could not validate credentials"


class UserNotFound(AuthenticationError):
    default_detail = "User not found"


class AccountDeactivated(AuthenticationError):
    default_detail = "Account has been deactivated"


class SessionExpiredOrInvalid(AuthenticationError):
    default_detail = "Session expired or invalid"


class InvalidRefreshToken(AuthenticationError):
    default_detail = "Invalid refresh token"


class RefreshTokenMissing(AuthenticationError):
    default_detail = "Refresh token not found"


class InvalidCredentials(AuthenticationError):
    default_detail = "Invalid email or password"


class EmailAlreadyRegistered(ApiError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Email already registered"


class DeviceLimitReached(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, max_devices: int) -> None:
        super().__init__(
            f"Maximum {max_devices} devices allowed. Please logout from another device."
        )


class DeviceSessionNotFound(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Device session not found"


class InvalidVerificationToken(ApiError):
    default_detail = "Invalid or expired verification token"


class InvalidResetToken(ApiError):
    default_detail = "Invalid or expired reset token"


__all__ = [
    "ApiError",
    "AuthenticationError",
    "InvalidToken",
    "UserNotFound",
    "AccountDeactivated",
    "SessionExpiredOrInvalid",
    "InvalidRefreshToken",
    "RefreshTokenMissing",
    "InvalidCredentials",
    "EmailAlreadyRegistered",
    "DeviceLimitReached",
    "DeviceSessionNotFound",
    "InvalidVerificationToken",
    "InvalidResetToken",
]
