from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from caseflow.core.auth import AppRole
from caseflow.core.config import get_settings
from caseflow.db.base import Base
from caseflow.db.dependencies import get_db_session
import caseflow.models.entities  # noqa: F401
from caseflow.main import create_app
from factories import assign_role

SUPER_ADMIN_OID = "oid-super-admin"
SUPER_ADMIN_EMAIL = "super.admin@test.local"


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    # get_settings is lru_cached across tests.
    monkeypatch.setenv("BUSINESS_UTC_OFFSET_HOURS", "-5")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    # One shared in-memory connection so the app and the test see the same rows.
    test_engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Generator[Session, None, None]:
    session_factory = sessionmaker(bind=engine, autoflush=False, future=True)
    with session_factory() as session:
        yield session


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    app = create_app()
    app.dependency_overrides[get_db_session] = lambda: db_session
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def admin_headers(db_session: Session) -> dict[str, str]:
    assign_role(
        db_session,
        oid=SUPER_ADMIN_OID,
        email=SUPER_ADMIN_EMAIL,
        display_name="Super Admin",
        role=AppRole.SUPER_ADMIN,
        client_id=None,
    )
    return auth_headers()


def auth_headers(
    *,
    oid: str = SUPER_ADMIN_OID,
    email: str = SUPER_ADMIN_EMAIL,
    display_name: str = "Super Admin",
) -> dict[str, str]:
    """Trusted identity headers as injected by the fronting proxy."""

    return {
        "X-MS-OID": oid,
        "X-MS-EMAIL": email,
        "X-MS-DISPLAY-NAME": display_name,
    }
