import os
import tempfile
from collections.abc import Generator
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

_TMP = Path(tempfile.mkdtemp(prefix="freshstock-tests-"))
os.environ.setdefault("FRESHSTOCK_DB", str(_TMP / "app.sqlite3"))
os.environ.setdefault("FRESHSTOCK_LOG_FILE", str(_TMP / "freshstock.log"))
os.environ.setdefault("FRESHSTOCK_SECRET", "test-secret")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from freshstock_admin import crud, models, schemas  # noqa: E402
from freshstock_admin.app import create_app  # noqa: E402
from freshstock_admin.auth import OperatorContext  # noqa: E402
from freshstock_admin.clock import FixedClock  # noqa: E402
from freshstock_admin.database import Base  # noqa: E402
from freshstock_admin.dependencies import get_clock, get_db  # noqa: E402

ADMIN_PASSWORD = "s3cret-pass"


@pytest.fixture(name="db_engine")
def db_engine_fixture(tmp_path) -> Generator[Any, None, None]:
    engine = create_engine(f"sqlite:///{tmp_path / 'test.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(name="session_factory")
def session_factory_fixture(db_engine):
    return sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)


@pytest.fixture(name="session")
def session_fixture(session_factory) -> Generator[Session, None, None]:
    with session_factory() as session:
        yield session


@pytest.fixture(name="clock")
def clock_fixture() -> FixedClock:
    return FixedClock(datetime(2024, 3, 10, 9, 30, tzinfo=timezone.utc))


@pytest.fixture(name="items")
def items_fixture(session: Session, clock: FixedClock) -> list[models.CatalogItem]:
    return [
        crud.create_catalog_item(session, schemas.CatalogItemCreate(name=name, rate=rate), clock)
        for name, rate in (("Rohu", 240.0), ("Prawns", 520.0), ("Pomfret", 680.0))
    ]


@pytest.fixture(name="admin")
def admin_fixture(session: Session) -> models.Operator:
    return crud.create_operator(
        session,
        schemas.OperatorCreate(username="admin", password=ADMIN_PASSWORD, is_superuser=True),
    )


@pytest.fixture(name="admin_context")
def admin_context_fixture(admin: models.Operator) -> OperatorContext:
    return OperatorContext.from_operator(admin)


@pytest.fixture(name="client")
def client_fixture(session_factory, clock: FixedClock) -> Generator[TestClient, None, None]:
    app = create_app()

    def get_db_override() -> Generator[Session, None, None]:
        with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = get_db_override
    app.dependency_overrides[get_clock] = lambda: clock

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture(name="admin_client")
def admin_client_fixture(client: TestClient, admin: models.Operator) -> TestClient:
    response = client.post("/auth/login", json={"username": admin.username, "password": ADMIN_PASSWORD})
    assert response.status_code == 200, response.text
    client.headers["Authorization"] = f"Bearer {response.json()['access_token']}"
    return client
