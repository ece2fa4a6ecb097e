"""JWT minting and verification for access and refresh tokens.

Access and refresh tokens carry the same claim set but are signed with
separate secrets, so one can never be presented in place of the other.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from lb2d_api.core.errors import InvalidToken
from lb2d_api.core.settings import settings


@dataclass(frozen=True)
class TokenClaims:
    """Verified payload shared by access and refresh tokens."""

    subject_user_id: str
    email: str
    role: str
    device_id: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "sub": self.subject_user_id,
            "email": self.email,
            "role": self.role,
            "deviceId": self.device_id,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> TokenClaims:
        """Build claims from a decoded payload, rejecting missing fields."""
        values = [payload.get(name) for name in ("sub", "email", "role", "deviceId")]
        if not all(isinstance(value, str) and value for value in values):
            raise InvalidToken()
        subject, email, role, device_id = values
        return cls(subject_user_id=subject, email=email, role=role, device_id=device_id)


def _encode(claims: TokenClaims, secret: str, lifetime: timedelta, **extra: Any) -> str:
    issued_at = datetime.now(UTC)
    to_encode: dict[str, Any] = claims.to_payload()
    to_encode.update(extra)
    to_encode["iat"] = issued_at
    to_encode["exp"] = issued_at + lifetime
    encoded_jwt: str = jwt.encode(to_encode, secret, algorithm=settings.jwt_algorithm)
    return encoded_jwt


def _decode(token: str, secret: str) -> TokenClaims:
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.jwt_algorithm])
    except JWTError as err:
        raise InvalidToken() from err
    return TokenClaims.from_payload(payload)


def create_access_token(claims: TokenClaims) -> str:
    """Create a short-lived access token signed with `JWT_SECRET`."""
    return _encode(
        claims,
        settings.jwt_secret,
        timedelta(minutes=settings.access_token_expire_minutes),
    )


def create_refresh_token(claims: TokenClaims) -> str:
    """Create a refresh token signed with `JWT_REFRESH_SECRET`.

    A random `jti` keeps every refresh token unique, which the device session
    table relies on when rotating tokens minted within the same second.
    """
    return _encode(
        claims,
        settings.jwt_refresh_secret,
        timedelta(days=settings.refresh_token_expire_days),
        jti=secrets.token_hex(16),
    )


def decode_access_token(token: str) -> TokenClaims:
    """Verify an access token's signature and expiry.

    Raises:
        InvalidToken: If the token is malformed, expired, signed with another
            key, or lacks one of the required claims.
    """
    return _decode(token, settings.jwt_secret)


def decode_refresh_token(token: str) -> TokenClaims:
    """Verify a refresh token's signature and expiry against the refresh secret."""
    return _decode(token, settings.jwt_refresh_secret)


__all__ = [
    "TokenClaims",
    "create_access_token",
    "create_refresh_token",
    "decode_access_token",
    "decode_refresh_token",
]
