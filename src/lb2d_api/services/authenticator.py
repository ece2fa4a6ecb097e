"""Bearer-token authentication bound to live device sessions.

An access token on its own is not enough: the device session named in its
claims must still exist and be unexpired, and the owning account must be
active. Refresh tokens are accepted only while they match the token stored on
the user's live session, so a rotated or foreign refresh token is rejected
even when its signature and expiry are fine.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from lb2d_api.core.errors import (
    AccountDeactivated,
    InvalidRefreshToken,
    RefreshTokenMissing,
    SessionExpiredOrInvalid,
    UserNotFound,
)
from lb2d_api.core.tokens import decode_access_token, decode_refresh_token
from lb2d_api.db.time import utcnow
from lb2d_api.repositories.device_session_repo import DeviceSessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """Identity resolved for one request; rebuilt on every request."""

    user_id: str
    email: str
    first_name: str
    last_name: str
    role: str
    is_email_verified: bool
    profile_photo: str | None
    phone: str | None
    device_id: str


@dataclass(frozen=True)
class RefreshClaims:
    """Claims needed to mint a fresh token pair for an existing device session."""

    user_id: str
    email: str
    role: str
    device_id: str
    refresh_token: str


class SessionAuthenticator:
    """Resolve access and refresh tokens against the device session store."""

    def __init__(
        self,
        store: DeviceSessionStore,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._clock = clock

    def authenticate(self, access_token: str) -> Principal:
        """Return the principal for a bearer access token.

        Checks run in order and the first failure is raised: token signature
        and expiry, user existence, account status, live device session.

        Raises:
            InvalidToken: Malformed, expired, or wrongly signed token.
            UserNotFound: The token subject no longer exists.
            AccountDeactivated: The account has been switched off.
            SessionExpiredOrInvalid: No live session for the token's device.
        """
        claims = decode_access_token(access_token)

        user = self._store.find_user(claims.subject_user_id)
        if user is None:
            raise UserNotFound()
        if not user.is_active:
            raise AccountDeactivated()

        now = self._clock()
        device_session = self._store.find_active_device_session(user.id, claims.device_id, now)
        if device_session is None:
            raise SessionExpiredOrInvalid()

        self._touch_activity(device_session.id, now)

        return Principal(
            user_id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role,
            is_email_verified=user.is_email_verified,
            profile_photo=user.profile_photo,
            phone=user.phone,
            device_id=claims.device_id,
        )

    def _touch_activity(self, session_id: str, now: datetime) -> None:
        # Activity timestamps are telemetry; a failed write never fails the request.
        try:
            self._store.touch_device_session(session_id, now)
        except Exception:
            logger.warning("Could not record activity for device session %s", session_id, exc_info=True)

    def validate_refresh(self, refresh_token: str | None) -> RefreshClaims:
        """Check a refresh token against the user's live device session.

        Raises:
            RefreshTokenMissing: No token was supplied.
            InvalidToken: Malformed, expired, or wrongly signed token.
            InvalidRefreshToken: The token is not the one stored on a live session.
            AccountDeactivated: The owning account has been switched off.
        """
        if not refresh_token or not refresh_token.strip():
            raise RefreshTokenMissing()

        claims = decode_refresh_token(refresh_token)

        device_session = self._store.find_active_device_session_by_refresh_token(
            claims.subject_user_id, refresh_token, self._clock()
        )
        if device_session is None:
            raise InvalidRefreshToken()

        user = device_session.user
        if not user.is_active:
            raise AccountDeactivated()

        return RefreshClaims(
            user_id=user.id,
            email=user.email,
            role=user.role,
            device_id=device_session.device_id,
            refresh_token=refresh_token,
        )


__all__ = ["Principal", "RefreshClaims", "SessionAuthenticator"]
