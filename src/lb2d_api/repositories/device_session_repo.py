"""Data access helpers for users and their device sessions."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Session

from lb2d_api.models import DeviceSession, User

__all__ = ["DeviceSessionStore"]


class DeviceSessionStore:
    """Thin wrapper around database access for users and device sessions.

    The `find_*` and `touch_device_session` methods form the read contract the
    authenticator relies on; the remaining helpers serve the account flows.
    Every write commits immediately because each call is a single-row change.
    """

    def __init__(self, session: Session) -> None:
        """Initialize the store with a SQLAlchemy session."""
        self.session = session

    # --- Authenticator contract -------------------------------------------------
    def find_user(self, user_id: str) -> User | None:
        """Return a user by identifier."""
        return self.session.query(User).filter(User.id == user_id).first()

    def find_active_device_session(
        self, user_id: str, device_id: str, now: datetime
    ) -> DeviceSession | None:
        """Return the live session for `(user_id, device_id)`, if any."""
        return (
            self.session.query(DeviceSession)
            .filter(
                DeviceSession.user_id == user_id,
                DeviceSession.device_id == device_id,
                DeviceSession.expires_at > now,
            )
            .order_by(DeviceSession.login_time.desc())
            .first()
        )

    def find_active_device_session_by_refresh_token(
        self, user_id: str, refresh_token: str, now: datetime
    ) -> DeviceSession | None:
        """Return the live session of `user_id` that stores exactly `refresh_token`."""
        return (
            self.session.query(DeviceSession)
            .filter(
                DeviceSession.user_id == user_id,
                DeviceSession.refresh_token == refresh_token,
                DeviceSession.expires_at > now,
            )
            .first()
        )

    def touch_device_session(self, session_id: str, now: datetime) -> None:
        """Record activity on a session.

        The session is rolled back before re-raising so callers that ignore
        the failure can keep using it.
        """
        try:
            self.session.query(DeviceSession).filter(DeviceSession.id == session_id).update(
                {DeviceSession.last_activity_at: now},
                synchronize_session="fetch",
            )
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    # --- Account flows ----------------------------------------------------------
    def find_user_by_email(self, email: str) -> User | None:
        """Return a user by (case-insensitive) email address."""
        return self.session.query(User).filter(User.email == email.lower()).first()

    def create_user(self, **fields: object) -> User:
        """Persist a new user and return it."""
        user = User(**fields)
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def find_user_by_verification_token(self, token: str, now: datetime) -> User | None:
        """Return the user holding an unexpired email verification token."""
        return (
            self.session.query(User)
            .filter(User.email_verification_token == token, User.email_verification_expires > now)
            .first()
        )

    def find_user_by_reset_token(self, token: str, now: datetime) -> User | None:
        """Return the user holding an unexpired password reset token."""
        return (
            self.session.query(User)
            .filter(User.password_reset_token == token, User.password_reset_expires > now)
            .first()
        )

    def update_user(self, user: User, **fields: object) -> User:
        """Apply column changes to a user and commit them."""
        for name, value in fields.items():
            setattr(user, name, value)
        self.session.commit()
        return user

    def record_login(self, user: User, now: datetime) -> None:
        """Stamp the user's last successful login."""
        user.last_login_at = now
        self.session.commit()

    def list_active_sessions(self, user_id: str, now: datetime) -> list[DeviceSession]:
        """Return the user's live sessions, most recent login first."""
        return (
            self.session.query(DeviceSession)
            .filter(DeviceSession.user_id == user_id, DeviceSession.expires_at > now)
            .order_by(DeviceSession.login_time.desc())
            .all()
        )

    def create_session(self, **fields: object) -> DeviceSession:
        """Persist a new device session and return it."""
        device_session = DeviceSession(**fields)
        self.session.add(device_session)
        self.session.commit()
        self.session.refresh(device_session)
        return device_session

    def rotate_refresh_token(
        self,
        device_session: DeviceSession,
        refresh_token: str,
        *,
        expires_at: datetime,
        now: datetime,
    ) -> DeviceSession:
        """Replace the stored refresh token and extend the session lifetime."""
        device_session.refresh_token = refresh_token
        device_session.expires_at = expires_at
        device_session.last_activity_at = now
        self.session.commit()
        return device_session

    def delete_session(self, device_session: DeviceSession) -> None:
        """Remove a single session."""
        self.session.delete(device_session)
        self.session.commit()

    def delete_sessions_for_device(self, user_id: str, device_id: str) -> int:
        """Remove every session of a user on one device and return the count."""
        deleted = (
            self.session.query(DeviceSession)
            .filter(DeviceSession.user_id == user_id, DeviceSession.device_id == device_id)
            .delete(synchronize_session="fetch")
        )
        self.session.commit()
        return deleted

    def delete_all_sessions(self, user_id: str) -> int:
        """Remove every session of a user and return the count."""
        deleted = (
            self.session.query(DeviceSession)
            .filter(DeviceSession.user_id == user_id)
            .delete(synchronize_session="fetch")
        )
        self.session.commit()
        return deleted
