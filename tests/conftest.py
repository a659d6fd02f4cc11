# tests/conftest.py
# Test setup: temporary SQLite DB, dependency override for sessions, and
# an in-memory repository container for service-level tests.

import sys
from datetime import date
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

# Ensure repo root on sys.path so "import ledger" works
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import ledger.models as _models  # noqa: F401,E402  # registers tables on SQLModel.metadata
from ledger import cache  # noqa: E402
from ledger.db import build_engine, create_db_and_tables, get_session  # noqa: E402
from ledger.main import app as fastapi_app  # noqa: E402
from ledger.repositories.container import build_repositories  # noqa: E402
from ledger.services.categories import seed_default_categories  # noqa: E402


class FakeCalendar:
    """Holiday calendar backed by plain sets (no DB, no HTTP)."""

    def __init__(self, holidays=(), workdays=()):
        self.holidays = set(holidays)
        self.workdays = set(workdays)  # official make-up working days

    def is_holiday(self, d: date) -> bool:
        return d in self.holidays

    def is_working_day(self, d: date) -> bool:
        if d in self.holidays:
            return False
        if d in self.workdays:
            return True
        return d.weekday() < 5


@pytest.fixture(autouse=True)
def _fresh_cache():
    # the tagged cache is process-wide
    cache.cache.clear()
    yield
    cache.cache.clear()


@pytest.fixture()
def tmp_db_path(tmp_path: Path) -> Path:
    return tmp_path / "test_ledger.db"


@pytest.fixture()
def test_engine(tmp_db_path: Path):
    # File-based SQLite so multiple connections share the same DB
    url = f"sqlite:///{tmp_db_path}"
    engine = build_engine(url)
    create_db_and_tables(engine)  # tables from ledger.models
    try:
        yield engine
    finally:
        engine.dispose()
        if tmp_db_path.exists():
            try:
                tmp_db_path.unlink()
            except OSError:
                pass


@pytest.fixture()
def client(test_engine):
    # Override the app's DB session to use our test engine
    def _get_test_session():
        with Session(test_engine) as s:
            yield s

    fastapi_app.dependency_overrides[get_session] = _get_test_session
    with TestClient(fastapi_app) as c:  # lifespan seeds the default categories
        yield c
    fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def repos(test_engine):
    """Repository container on the temp DB with default categories seeded."""
    with Session(test_engine) as s:
        r = build_repositories(s)
        seed_default_categories(r)
        yield r


@pytest.fixture()
def make_calendar():
    return FakeCalendar
