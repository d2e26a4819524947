"""Smoke tests for local API app wiring."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from src.abuse_control import AbuseGate, ActionCategory
from src.api.main import app, build_gate
from src.common.config import Settings

pytestmark = pytest.mark.smoke


def test_module_app_serves_health():
    client = TestClient(app)
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Response-Time-Ms" in response.headers


def test_module_app_wires_the_gate():
    assert isinstance(app.state.gate, AbuseGate)
    routes = {route.path for route in app.routes}
    for path in ("/api/search", "/api/submit", "/api/dispute", "/api/extract", "/api/analyze-report"):
        assert path in routes


def test_build_gate_reads_policy_file(tmp_path):
    policy_file = tmp_path / "policies.yaml"
    policy_file.write_text("policies:\n  search:\n    limit: 5\n    window_seconds: 60\n    ban_after: 10\n")
    gate = build_gate(Settings(abuse_policy_file=str(policy_file), abuse_ban_seconds=600))
    assert gate.policies[ActionCategory.SEARCH].limit == 5
    assert gate.ban_seconds == 600
