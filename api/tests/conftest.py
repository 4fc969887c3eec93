import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from marketwatch.store.db import build_session_factory, create_schema
from marketwatch_api.db.session import get_db
from marketwatch_api.main import app


@pytest.fixture()
def session() -> Session:
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    create_schema(engine)
    SessionLocal = build_session_factory(engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture()
def api_app(session: Session):
    def _get_db() -> Session:
        return session

    app.dependency_overrides[get_db] = _get_db
    yield app
    app.dependency_overrides.clear()


@pytest.fixture()
def client(api_app) -> TestClient:
    # Not entered as a context manager so startup does not touch the configured database.
    return TestClient(api_app)
