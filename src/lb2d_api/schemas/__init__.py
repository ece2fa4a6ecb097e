# src/lb2d_api/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .auth import (
    AuthResponse,
    CurrentUserResponse,
    DeviceSessionResponse,
    DeviceSessionsResponse,
    ForgotPasswordRequest,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenPairResponse,
    UserResponse,
    VerifyEmailRequest,
)

__all__ = [
    "AuthResponse", "CurrentUserResponse",
    "DeviceSessionResponse", "DeviceSessionsResponse",
    "LoginRequest", "LogoutRequest", "RefreshRequest", "RegisterRequest",
    "ForgotPasswordRequest", "ResetPasswordRequest", "VerifyEmailRequest",
    "MessageResponse", "TokenPairResponse", "UserResponse",
]
