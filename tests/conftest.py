# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from datetime import datetime, timedelta
from itertools import count
from typing import Any

os.environ.setdefault("PYTEST_RUNNING", "true")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-access-secret")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from lb2d_api.core.security import hash_password
from lb2d_api.core.tokens import TokenClaims, create_access_token, create_refresh_token
from lb2d_api.db.session import Base
from lb2d_api.db.session import get_db as app_get_session
from lb2d_api.db.time import utcnow
from lb2d_api.main import app as fastapi_app
from lb2d_api.models import DeviceSession, User
from lb2d_api.repositories.device_session_repo import DeviceSessionStore
from lb2d_api.services import rate_limit as rate_limit_module

TEST_DB_URL = "sqlite://"
TEST_PASSWORD = "correct-horse-battery"

_USER_COUNTER = count(1)
# bcrypt is slow on purpose; hash the shared test password once.
_TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    session.begin_nested()

    @event.listens_for(session, "after_transaction_end")
    def restart_savepoint(sess: Session, trans) -> None:  # pragma: no cover - SQLAlchemy internals
        if trans.nested and not getattr(trans._parent, "nested", False):
            session.begin_nested()

    try:
        yield session
    finally:
        event.remove(session, "after_transaction_end", restart_savepoint)
        session.close()

        if transaction.is_active:
            transaction.rollback()
        connection.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture(autouse=True)
def fresh_rate_limit_store(monkeypatch: pytest.MonkeyPatch) -> rate_limit_module.InMemoryRateLimitStore:
    """Give every test its own process-wide limiter so windows never leak."""
    store = rate_limit_module.InMemoryRateLimitStore()
    monkeypatch.setattr(rate_limit_module, "_STORE", store)
    return store


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def store(db_session: Session) -> DeviceSessionStore:
    return DeviceSessionStore(db_session)


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Return a factory persisting users with the shared test password."""

    def _make_user(**overrides: Any) -> User:
        n = next(_USER_COUNTER)
        fields: dict[str, Any] = {
            "email": f"learner{n}@example.com",
            "password_hash": _TEST_PASSWORD_HASH,
            "first_name": "Test",
            "last_name": f"Learner{n}",
            "role": "STUDENT",
            "is_active": True,
            "is_email_verified": True,
        }
        fields.update(overrides)
        user = User(**fields)
        db_session.add(user)
        db_session.flush()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def make_device_session(db_session: Session) -> Callable[..., tuple[DeviceSession, str, str]]:
    """Return a factory creating a device session and its token pair.

    The factory returns `(device_session, access_token, refresh_token)`.
    """

    def _make_device_session(
        user: User,
        device_id: str = "device-a",
        *,
        expires_at: datetime | None = None,
    ) -> tuple[DeviceSession, str, str]:
        claims = TokenClaims(
            subject_user_id=user.id,
            email=user.email,
            role=user.role,
            device_id=device_id,
        )
        access_token = create_access_token(claims)
        refresh_token = create_refresh_token(claims)
        now = utcnow()
        device_session = DeviceSession(
            user_id=user.id,
            device_id=device_id,
            device_name="Test Browser",
            fingerprint=device_id,
            refresh_token=refresh_token,
            login_time=now,
            last_activity_at=now,
            expires_at=expires_at or now + timedelta(days=7),
        )
        db_session.add(device_session)
        db_session.flush()
        db_session.refresh(device_session)
        return device_session, access_token, refresh_token

    return _make_device_session


@pytest.fixture()
def test_user(make_user: Callable[..., User]) -> User:
    """Create and return the primary persisted test user."""
    return make_user(email="test.user@example.com", first_name="Test", last_name="User")


@pytest.fixture()
def auth_headers(test_user: User, make_device_session) -> dict[str, str]:
    """Return authorization headers for the primary test user on `device-a`."""
    _, access_token, _ = make_device_session(test_user, "device-a")
    return {"Authorization": f"Bearer {access_token}"}
