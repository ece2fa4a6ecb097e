# src/lb2d_api/api/v1/endpoints/auth.py
"""Authentication endpoints for the LB2D API."""

from __future__ import annotations

from fastapi import APIRouter, Request, status

from lb2d_api.api.dependencies import (
    AuthenticatorDep,
    AuthServiceDep,
    CurrentPrincipalDep,
)
from lb2d_api.models import DeviceSession, User
from lb2d_api.schemas.auth import (
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
from lb2d_api.services.auth import AuthResult, DeviceInfo

router = APIRouter(prefix="/auth", tags=["authentication"])


def _device_info(request: Request, device_name: str | None, fingerprint: str | None) -> DeviceInfo:
    return DeviceInfo(
        device_name=device_name,
        fingerprint=fingerprint,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role,
        is_email_verified=user.is_email_verified,
        phone=user.phone,
        profile_photo=user.profile_photo,
    )


def _auth_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(
        user=_user_response(result.user),
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        device_id=result.device_id,
        message=result.message,
    )


def _session_response(device_session: DeviceSession) -> DeviceSessionResponse:
    return DeviceSessionResponse(
        device_id=device_session.device_id,
        device_name=device_session.device_name,
        login_time=device_session.login_time,
        last_activity_at=device_session.last_activity_at,
        user_agent=device_session.user_agent,
        ip_address=device_session.ip_address,
    )


@router.post(
    "/register",
    summary="Register a new user",
    status_code=status.HTTP_201_CREATED,
    response_model=AuthResponse,
)
def register_user(
    payload: RegisterRequest,
    request: Request,
    auth_service: AuthServiceDep,
) -> AuthResponse:
    """Create an account and sign the registering device in."""
    result = auth_service.register(
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
        phone=payload.phone,
        device=_device_info(request, payload.device_name, payload.fingerprint),
    )
    return _auth_response(result)


@router.post(
    "/login",
    summary="Authenticate with email and password",
    status_code=status.HTTP_200_OK,
    response_model=AuthResponse,
)
def login_user(
    payload: LoginRequest,
    request: Request,
    auth_service: AuthServiceDep,
) -> AuthResponse:
    """Return access and refresh tokens bound to a device session."""
    result = auth_service.login(
        email=payload.email,
        password=payload.password,
        device=_device_info(request, payload.device_name, payload.fingerprint),
    )
    return _auth_response(result)


@router.post(
    "/refresh",
    summary="Exchange a refresh token for a new token pair",
    status_code=status.HTTP_200_OK,
    response_model=TokenPairResponse,
)
def refresh_tokens(
    authenticator: AuthenticatorDep,
    auth_service: AuthServiceDep,
    payload: RefreshRequest | None = None,
) -> TokenPairResponse:
    """Rotate the device session's refresh token and issue a new access token."""
    claims = authenticator.validate_refresh(payload.refresh_token if payload else None)
    tokens = auth_service.refresh(claims)
    return TokenPairResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
    )


@router.post(
    "/verify-email",
    summary="Verify an email address",
    response_model=MessageResponse,
)
def verify_email(payload: VerifyEmailRequest, auth_service: AuthServiceDep) -> MessageResponse:
    return MessageResponse(message=auth_service.verify_email(payload.token))


@router.post(
    "/forgot-password",
    summary="Request a password reset link",
    response_model=MessageResponse,
)
def forgot_password(payload: ForgotPasswordRequest, auth_service: AuthServiceDep) -> MessageResponse:
    """Always answers the same way so account existence is not revealed."""
    return MessageResponse(message=auth_service.forgot_password(payload.email))


@router.post(
    "/reset-password",
    summary="Set a new password with a reset token",
    response_model=MessageResponse,
)
def reset_password(payload: ResetPasswordRequest, auth_service: AuthServiceDep) -> MessageResponse:
    """Replace the password and sign the account out of every device."""
    return MessageResponse(
        message=auth_service.reset_password(payload.token, payload.new_password)
    )


@router.post(
    "/logout",
    summary="Log out of the current device or every device",
    status_code=status.HTTP_200_OK,
    response_model=MessageResponse,
)
def logout_user(
    principal: CurrentPrincipalDep,
    auth_service: AuthServiceDep,
    payload: LogoutRequest | None = None,
) -> MessageResponse:
    payload = payload or LogoutRequest()
    if payload.all_devices:
        return MessageResponse(message=auth_service.logout_all(principal.user_id))

    device_id = payload.device_id or principal.device_id
    return MessageResponse(message=auth_service.logout(principal.user_id, device_id))


@router.get(
    "/sessions",
    summary="List active device sessions",
    response_model=DeviceSessionsResponse,
)
def list_device_sessions(
    principal: CurrentPrincipalDep,
    auth_service: AuthServiceDep,
) -> DeviceSessionsResponse:
    sessions = auth_service.list_sessions(principal.user_id)
    return DeviceSessionsResponse(sessions=[_session_response(s) for s in sessions])


@router.delete(
    "/sessions/{device_id}",
    summary="Log out of a specific device",
    response_model=MessageResponse,
)
def delete_device_session(
    device_id: str,
    principal: CurrentPrincipalDep,
    auth_service: AuthServiceDep,
) -> MessageResponse:
    return MessageResponse(message=auth_service.logout_device(principal.user_id, device_id))


@router.get(
    "/me",
    summary="Return the authenticated user",
    response_model=CurrentUserResponse,
)
def get_me(principal: CurrentPrincipalDep) -> CurrentUserResponse:
    """Return the profile resolved for the current access token."""
    return CurrentUserResponse(
        user=UserResponse(
            id=principal.user_id,
            email=principal.email,
            first_name=principal.first_name,
            last_name=principal.last_name,
            role=principal.role,
            is_email_verified=principal.is_email_verified,
            phone=principal.phone,
            profile_photo=principal.profile_photo,
        )
    )
