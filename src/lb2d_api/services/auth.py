"""Account flows that create, rotate, and remove device sessions.

Also owns the emailed-token flows: address verification and password reset.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from lb2d_api.core.errors import (
    AccountDeactivated,
    DeviceLimitReached,
    DeviceSessionNotFound,
    EmailAlreadyRegistered,
    InvalidCredentials,
    InvalidRefreshToken,
    InvalidResetToken,
    InvalidVerificationToken,
)
from lb2d_api.core.security import (
    generate_device_id,
    generate_email_token,
    hash_password,
    verify_password,
)
from lb2d_api.core.settings import settings
from lb2d_api.core.tokens import TokenClaims, create_access_token, create_refresh_token
from lb2d_api.db.time import utcnow
from lb2d_api.models import ROLE_STUDENT, DeviceSession, User
from lb2d_api.repositories.device_session_repo import DeviceSessionStore
from lb2d_api.services.authenticator import RefreshClaims
from lb2d_api.services.mailer import AccountMailer, LoggingMailer

logger = logging.getLogger(__name__)

DEFAULT_DEVICE_NAME = "Unknown Device"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a successful register or login."""

    user: User
    tokens: TokenPair
    device_id: str
    message: str


@dataclass(frozen=True)
class DeviceInfo:
    """Client-supplied and transport-derived details about the logging-in device."""

    device_name: str | None = None
    fingerprint: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None


class AuthService:
    """Register, log in, refresh, and log out users across their devices."""

    def __init__(
        self,
        store: DeviceSessionStore,
        clock: Callable[[], datetime] = utcnow,
        *,
        mailer: AccountMailer | None = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._mailer = mailer or LoggingMailer()

    def _notify(self, send: Callable[[str, str, str], None], user: User, token: str) -> None:
        # Mail is fire-and-forget: the account change stands even if delivery fails.
        try:
            send(user.email, token, user.first_name)
        except Exception:
            logger.warning("Could not send account email to user %s", user.id, exc_info=True)

    def _issue_tokens(self, user: User, device_id: str) -> TokenPair:
        claims = TokenClaims(
            subject_user_id=user.id,
            email=user.email,
            role=user.role,
            device_id=device_id,
        )
        return TokenPair(
            access_token=create_access_token(claims),
            refresh_token=create_refresh_token(claims),
        )

    def _session_expiry(self, now: datetime) -> datetime:
        return now + timedelta(days=settings.session_ttl_days)

    def _open_session(
        self, user: User, device: DeviceInfo, device_id: str, now: datetime
    ) -> TokenPair:
        tokens = self._issue_tokens(user, device_id)
        self._store.create_session(
            user_id=user.id,
            device_id=device_id,
            device_name=device.device_name or DEFAULT_DEVICE_NAME,
            fingerprint=device.fingerprint,
            refresh_token=tokens.refresh_token,
            user_agent=device.user_agent,
            ip_address=device.ip_address,
            login_time=now,
            last_activity_at=now,
            expires_at=self._session_expiry(now),
        )
        return tokens

    def register(
        self,
        *,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        phone: str | None = None,
        device: DeviceInfo | None = None,
    ) -> AuthResult:
        """Create an account and its first device session.

        Raises:
            EmailAlreadyRegistered: The email is taken.
        """
        device = device or DeviceInfo()
        if self._store.find_user_by_email(email) is not None:
            raise EmailAlreadyRegistered()

        now = self._clock()
        verification_token = generate_email_token()
        user = self._store.create_user(
            email=email.lower(),
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            role=ROLE_STUDENT,
            phone=phone,
            is_active=True,
            is_email_verified=False,
            email_verification_token=verification_token,
            email_verification_expires=now + timedelta(hours=settings.email_verification_ttl_hours),
            created_at=now,
        )
        logger.info("Registered user %s", user.id)
        self._notify(self._mailer.send_verification_email, user, verification_token)

        device_id = device.fingerprint or generate_device_id()
        tokens = self._open_session(user, device, device_id, now)
        return AuthResult(
            user=user,
            tokens=tokens,
            device_id=device_id,
            message="Registration successful. Please verify your email.",
        )

    def login(self, *, email: str, password: str, device: DeviceInfo | None = None) -> AuthResult:
        """Authenticate credentials and open a session for the device.

        A live session for the same device (or fingerprint) is replaced. A new
        device is refused once the user already has `MAX_DEVICES` live sessions.

        Raises:
            InvalidCredentials: Unknown email or wrong password.
            AccountDeactivated: The account has been switched off.
            DeviceLimitReached: Too many live sessions for a new device.
        """
        device = device or DeviceInfo()
        user = self._store.find_user_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            raise InvalidCredentials()
        if not user.is_active:
            raise AccountDeactivated()

        now = self._clock()
        device_id = device.fingerprint or generate_device_id()
        existing_sessions = self._store.list_active_sessions(user.id, now)
        existing_device = next(
            (
                session
                for session in existing_sessions
                if session.device_id == device_id
                or (device.fingerprint is not None and session.fingerprint == device.fingerprint)
            ),
            None,
        )

        if existing_device is not None:
            self._store.delete_session(existing_device)
        elif len(existing_sessions) >= settings.max_devices:
            raise DeviceLimitReached(settings.max_devices)

        tokens = self._open_session(user, device, device_id, now)
        self._store.record_login(user, now)
        logger.info("User %s logged in on device %s", user.id, device_id)

        return AuthResult(
            user=user,
            tokens=tokens,
            device_id=device_id,
            message="Login successful",
        )

    def refresh(self, claims: RefreshClaims) -> TokenPair:
        """Mint a new token pair and rotate the stored refresh token.

        The session lifetime is extended by `SESSION_TTL_DAYS` from now.

        Raises:
            InvalidRefreshToken: The token was rotated or the session removed
                after validation.
        """
        now = self._clock()
        device_session = self._store.find_active_device_session_by_refresh_token(
            claims.user_id, claims.refresh_token, now
        )
        if device_session is None:
            raise InvalidRefreshToken()

        tokens = self._issue_tokens(device_session.user, device_session.device_id)
        self._store.rotate_refresh_token(
            device_session,
            tokens.refresh_token,
            expires_at=self._session_expiry(now),
            now=now,
        )
        return tokens

    def logout(self, user_id: str, device_id: str) -> str:
        self._store.delete_sessions_for_device(user_id, device_id)
        logger.info("User %s logged out of device %s", user_id, device_id)
        return "Logged out successfully"

    def logout_all(self, user_id: str) -> str:
        count = self._store.delete_all_sessions(user_id)
        logger.info("User %s logged out of %d device(s)", user_id, count)
        return "Logged out from all devices successfully"

    def logout_device(self, user_id: str, device_id: str) -> str:
        """Remove every session the user holds for one named device.

        Raises:
            DeviceSessionNotFound: The user has no session for that device.
        """
        if self._store.delete_sessions_for_device(user_id, device_id) == 0:
            raise DeviceSessionNotFound()
        logger.info("User %s removed device %s", user_id, device_id)
        return "Logged out from device successfully"

    def verify_email(self, token: str) -> str:
        """Mark the account holding `token` as verified and spend the token.

        Raises:
            InvalidVerificationToken: Unknown, spent, or expired token.
        """
        user = self._store.find_user_by_verification_token(token, self._clock())
        if user is None:
            raise InvalidVerificationToken()
        self._store.update_user(
            user,
            is_email_verified=True,
            email_verification_token=None,
            email_verification_expires=None,
        )
        logger.info("User %s verified their email", user.id)
        return "Email verified successfully"

    def forgot_password(self, email: str) -> str:
        """Issue a password reset token and mail it to the account owner.

        The reply is the same whether or not the email is registered.
        """
        message = "If the email exists, a password reset link has been sent"
        user = self._store.find_user_by_email(email)
        if user is None:
            return message

        reset_token = generate_email_token()
        self._store.update_user(
            user,
            password_reset_token=reset_token,
            password_reset_expires=self._clock() + timedelta(hours=settings.password_reset_ttl_hours),
        )
        self._notify(self._mailer.send_password_reset_email, user, reset_token)
        return message

    def reset_password(self, token: str, new_password: str) -> str:
        """Set a new password and end every device session of the account.

        Raises:
            InvalidResetToken: Unknown, spent, or expired token.
        """
        user = self._store.find_user_by_reset_token(token, self._clock())
        if user is None:
            raise InvalidResetToken()
        self._store.update_user(
            user,
            password_hash=hash_password(new_password),
            password_reset_token=None,
            password_reset_expires=None,
        )
        count = self._store.delete_all_sessions(user.id)
        logger.info("User %s reset their password; %d session(s) ended", user.id, count)
        return "Password reset successful. Please login with your new password."

    def list_sessions(self, user_id: str) -> list[DeviceSession]:
        """Return the user's live sessions, newest login first."""
        return self._store.list_active_sessions(user_id, self._clock())


__all__ = ["AuthResult", "AuthService", "DeviceInfo", "TokenPair"]
