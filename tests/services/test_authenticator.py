# tests/services/test_authenticator.py
"""Tests for session-bound access and refresh token validation."""

from __future__ import annotations

import logging
from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from lb2d_api.core.errors import (
    AccountDeactivated,
    InvalidRefreshToken,
    InvalidToken,
    RefreshTokenMissing,
    SessionExpiredOrInvalid,
    UserNotFound,
)
from lb2d_api.core.tokens import TokenClaims, create_access_token, create_refresh_token
from lb2d_api.db.time import utcnow
from lb2d_api.services.authenticator import Principal, RefreshClaims, SessionAuthenticator


@pytest.fixture()
def authenticator(store) -> SessionAuthenticator:
    return SessionAuthenticator(store)


class TestAuthenticate:
    """Access token → principal."""

    def test_returns_principal(self, authenticator, make_user, make_device_session):
        user = make_user(phone="+8801700000000", profile_photo="https://cdn.example.com/p.png")
        _, access_token, _ = make_device_session(user, "laptop")

        principal = authenticator.authenticate(access_token)

        assert principal == Principal(
            user_id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role="STUDENT",
            is_email_verified=True,
            profile_photo="https://cdn.example.com/p.png",
            phone="+8801700000000",
            device_id="laptop",
        )

    def test_touches_session_activity(self, store, make_user, make_device_session):
        user = make_user()
        device_session, access_token, _ = make_device_session(user)
        later = utcnow() + timedelta(minutes=5)

        with patch.object(store, "touch_device_session", wraps=store.touch_device_session) as touch:
            SessionAuthenticator(store, clock=lambda: later).authenticate(access_token)

        touch.assert_called_once_with(device_session.id, later)

    def test_invalid_token(self, authenticator):
        with pytest.raises(InvalidToken):
            authenticator.authenticate("garbage")

    def test_user_not_found(self, authenticator):
        token = create_access_token(
            TokenClaims(subject_user_id="missing", email="x@example.com", role="STUDENT", device_id="d")
        )
        with pytest.raises(UserNotFound) as exc_info:
            authenticator.authenticate(token)
        assert exc_info.value.detail == "User not found"

    def test_deactivated_user_rejected_even_with_live_session(
        self, authenticator, make_user, make_device_session
    ):
        user = make_user(is_active=False)
        _, access_token, _ = make_device_session(user)

        with pytest.raises(AccountDeactivated) as exc_info:
            authenticator.authenticate(access_token)
        assert exc_info.value.detail == "Account has been deactivated"

    def test_deactivation_checked_before_session(self, store, make_user):
        user = make_user(is_active=False)
        token = create_access_token(
            TokenClaims(subject_user_id=user.id, email=user.email, role=user.role, device_id="none")
        )
        with patch.object(store, "find_active_device_session") as find_session:
            with pytest.raises(AccountDeactivated):
                SessionAuthenticator(store).authenticate(token)
        find_session.assert_not_called()

    def test_deleted_session_rejected(self, authenticator, store, make_user, make_device_session):
        user = make_user()
        device_session, access_token, _ = make_device_session(user)
        store.delete_session(device_session)

        with pytest.raises(SessionExpiredOrInvalid) as exc_info:
            authenticator.authenticate(access_token)
        assert exc_info.value.detail == "Session expired or invalid"

    def test_expired_session_rejected_while_token_still_valid(
        self, authenticator, make_user, make_device_session
    ):
        user = make_user()
        _, access_token, _ = make_device_session(user, expires_at=utcnow() - timedelta(seconds=1))

        with pytest.raises(SessionExpiredOrInvalid):
            authenticator.authenticate(access_token)

    def test_session_expiring_exactly_now_is_rejected(self, store, make_user, make_device_session):
        user = make_user()
        expires_at = utcnow() + timedelta(hours=1)
        _, access_token, _ = make_device_session(user, expires_at=expires_at)

        with pytest.raises(SessionExpiredOrInvalid):
            SessionAuthenticator(store, clock=lambda: expires_at).authenticate(access_token)

    def test_session_of_another_device_does_not_count(
        self, authenticator, make_user, make_device_session
    ):
        user = make_user()
        make_device_session(user, "phone")
        token = create_access_token(
            TokenClaims(subject_user_id=user.id, email=user.email, role=user.role, device_id="tablet")
        )
        with pytest.raises(SessionExpiredOrInvalid):
            authenticator.authenticate(token)

    def test_touch_failure_does_not_fail_request(
        self, store, make_user, make_device_session, caplog
    ):
        user = make_user()
        _, access_token, _ = make_device_session(user)

        failure = OperationalError("UPDATE device_sessions", {}, Exception("database is locked"))
        with patch.object(store, "touch_device_session", side_effect=failure):
            with caplog.at_level(logging.WARNING, logger="lb2d_api.services.authenticator"):
                principal = SessionAuthenticator(store).authenticate(access_token)

        assert principal.user_id == user.id
        assert "Could not record activity" in caplog.text


class TestValidateRefresh:
    """Refresh token → claims for minting a new pair."""

    def test_returns_claims(self, authenticator, make_user, make_device_session):
        user = make_user()
        _, _, refresh_token = make_device_session(user, "laptop")

        claims = authenticator.validate_refresh(refresh_token)

        assert claims == RefreshClaims(
            user_id=user.id,
            email=user.email,
            role=user.role,
            device_id="laptop",
            refresh_token=refresh_token,
        )

    @pytest.mark.parametrize("token", [None, "", "   "])
    def test_missing_token(self, authenticator, token):
        with pytest.raises(RefreshTokenMissing) as exc_info:
            authenticator.validate_refresh(token)
        assert exc_info.value.detail == "Refresh token not found"

    def test_access_token_is_not_a_refresh_token(
        self, authenticator, make_user, make_device_session
    ):
        user = make_user()
        _, access_token, _ = make_device_session(user)
        with pytest.raises(InvalidToken):
            authenticator.validate_refresh(access_token)

    def test_refresh_token_of_another_device_rejected(
        self, authenticator, make_user, make_device_session
    ):
        user = make_user()
        make_device_session(user, "laptop")
        make_device_session(user, "phone")
        # Well-formed and unexpired, names the laptop, but was never stored.
        forged = create_refresh_token(
            TokenClaims(subject_user_id=user.id, email=user.email, role=user.role, device_id="laptop")
        )
        with pytest.raises(InvalidRefreshToken) as exc_info:
            authenticator.validate_refresh(forged)
        assert exc_info.value.detail == "Invalid refresh token"

    def test_refresh_token_of_another_user_rejected(
        self, authenticator, make_user, make_device_session
    ):
        owner = make_user()
        intruder = make_user()
        make_device_session(intruder, "d")
        _, _, owner_refresh = make_device_session(owner, "d")
        # Same signing key, but the subject must match the stored session's user.
        with patch(
            "lb2d_api.services.authenticator.decode_refresh_token",
            return_value=TokenClaims(
                subject_user_id=intruder.id, email=intruder.email, role="STUDENT", device_id="d"
            ),
        ):
            with pytest.raises(InvalidRefreshToken):
                authenticator.validate_refresh(owner_refresh)

    def test_expired_session_rejected(self, authenticator, make_user, make_device_session):
        user = make_user()
        _, _, refresh_token = make_device_session(user, expires_at=utcnow() - timedelta(seconds=1))
        with pytest.raises(InvalidRefreshToken):
            authenticator.validate_refresh(refresh_token)

    def test_deactivated_user_rejected(self, authenticator, make_user, make_device_session):
        user = make_user(is_active=False)
        _, _, refresh_token = make_device_session(user)
        with pytest.raises(AccountDeactivated):
            authenticator.validate_refresh(refresh_token)
