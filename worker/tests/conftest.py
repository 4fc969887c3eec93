import json
from collections.abc import Callable, Sequence
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from marketwatch.errors import UploadFailure
from marketwatch.extraction.normalizer import CanonicalRecord
from marketwatch.store.db import build_session_factory, create_schema
from marketwatch.upload.client import UploadResult


class FakeUploader:
    """Records every upload; fails on chosen titles or refuses every call."""

    def __init__(self, fail_titles: Sequence[str] = (), refuse: bool = False) -> None:
        self.fail_titles = set(fail_titles)
        self.refuse = refuse
        self.calls: list[list[CanonicalRecord]] = []

    async def upload(self, records: Sequence[CanonicalRecord]) -> UploadResult:
        self.calls.append(list(records))
        if self.refuse:
            raise UploadFailure("Connection refused by http://upload.test/api/scrape", connection_refused=True)
        if any(record.title in self.fail_titles for record in records):
            raise UploadFailure("HTTP 500: store unavailable", status_code=500)
        return UploadResult(processed=len(records))


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture()
def session() -> Session:
    engine = create_engine("sqlite:///:memory:")
    create_schema(engine)
    SessionLocal = build_session_factory(engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture()
def data_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "scraped-data"
    directory.mkdir()
    return directory


@pytest.fixture()
def write_json() -> Callable[[Path, str, object], Path]:
    def _write(directory: Path, name: str, payload: object) -> Path:
        path = directory / name
        path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
        return path

    return _write


@pytest.fixture()
def uploader_factory() -> Callable[..., FakeUploader]:
    return FakeUploader


@pytest.fixture()
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()
