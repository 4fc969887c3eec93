from collections.abc import Iterator

from sqlalchemy.orm import Session

from marketwatch.store.db import build_engine, build_session_factory
from marketwatch_api.core.config import get_settings

engine = build_engine(get_settings().database_url)
SessionLocal = build_session_factory(engine)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
