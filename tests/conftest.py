"""Shared pytest fixtures."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from src.abuse_control.clock import FakeClock
from src.abuse_control.gate import AbuseGate
from src.api.main import create_app
from src.common.config import Settings, get_settings
from src.common.duckdb_backend import DuckDBStore

ADMIN_TOKEN = "test-admin-token-0123456789"
ADMIN_EMAIL = "moderator@scamguard.my"


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gate(clock: FakeClock) -> AbuseGate:
    return AbuseGate(clock=clock)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        env="test",
        db_path=":memory:",
        ai_api_key=None,
        admin_secret_token=ADMIN_TOKEN,
        admin_emails=(ADMIN_EMAIL,),
        evidence_dir=str(tmp_path / "evidence"),
    )


@pytest.fixture
def store() -> DuckDBStore:
    db = DuckDBStore(":memory:")
    yield db
    db.close()


@pytest.fixture
def app(settings: Settings, gate: AbuseGate, store: DuckDBStore):
    return create_app(settings, gate=gate, store=store)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
