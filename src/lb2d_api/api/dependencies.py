"""Shared API dependencies for authentication and common functionality."""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from lb2d_api.core.errors import InvalidToken
from lb2d_api.db.session import get_db
from lb2d_api.repositories.device_session_repo import DeviceSessionStore
from lb2d_api.services.auth import AuthService
from lb2d_api.services.authenticator import Principal, SessionAuthenticator

# HTTP Bearer scheme; a missing header is reported as a 401 by get_current_principal
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_session_store(db: SessionDep) -> DeviceSessionStore:
    """Return the user/device session store bound to the request's DB session."""
    return DeviceSessionStore(db)


SessionStoreDep = Annotated[DeviceSessionStore, Depends(get_session_store)]


def get_authenticator(store: SessionStoreDep) -> SessionAuthenticator:
    return SessionAuthenticator(store)


def get_auth_service(store: SessionStoreDep) -> AuthService:
    return AuthService(store)


AuthenticatorDep = Annotated[SessionAuthenticator, Depends(get_authenticator)]
AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]


def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    authenticator: AuthenticatorDep,
) -> Principal:
    """Resolve the bearer access token into the request's principal.

    Args:
        credentials: HTTP Bearer token credentials, if the header was sent
        authenticator: Session-bound token authenticator

    Returns:
        Principal for the authenticated user and device

    Raises:
        AuthenticationError: If the header is missing or any check fails
    """
    if credentials is None or not credentials.credentials:
        raise InvalidToken()
    return authenticator.authenticate(credentials.credentials)


# Type alias for current principal dependency
CurrentPrincipalDep = Annotated[Principal, Depends(get_current_principal)]
