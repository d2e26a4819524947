"""Abuse control as seen by HTTP clients."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from src.abuse_control.gate import AbuseGate
from src.abuse_control.policies import ActionCategory, ActionPolicy
from src.api.main import create_app

pytestmark = pytest.mark.integration

RESET_MS = str(int((1_767_225_600 + 3_600) * 1000))
DISPUTE = {"disputedInfo": "0123456789", "reason": "Not a scammer", "contactEmail": "me@example.com"}


def _client(settings, store, gate) -> TestClient:
    return TestClient(create_app(settings, gate=gate, store=store))


def test_allowed_responses_carry_rate_limit_headers(client: TestClient):
    response = client.post("/api/dispute", json=DISPUTE)
    assert response.status_code == 200
    assert response.headers["X-RateLimit-Limit"] == "3"
    assert response.headers["X-RateLimit-Remaining"] == "2"
    assert response.headers["X-RateLimit-Reset"] == RESET_MS


def test_quota_exhaustion_returns_429(client: TestClient):
    remaining = [client.post("/api/dispute", json=DISPUTE).headers["X-RateLimit-Remaining"] for _ in range(3)]
    assert remaining == ["2", "1", "0"]

    response = client.post("/api/dispute", json=DISPUTE)
    assert response.status_code == 429
    assert response.json() == {
        "error": "Too many requests",
        "message": "Rate limit exceeded. Please try again in 60 minutes.",
        "retryAfter": 3600,
    }
    assert response.headers["Retry-After"] == "3600"
    assert response.headers["X-RateLimit-Limit"] == "3"
    assert response.headers["X-RateLimit-Remaining"] == "0"
    assert response.headers["X-RateLimit-Reset"] == RESET_MS


def test_rejected_requests_do_not_reach_the_handler(client: TestClient, settings):
    for _ in range(4):
        client.post("/api/dispute", json=DISPUTE)
    stats = client.get("/api/admin/stats", params={"token": settings.admin_secret_token}).json()
    assert stats["pendingModeration"] == 3


def test_ban_blocks_every_endpoint(settings, store, clock):
    gate = AbuseGate(
        {
            ActionCategory.SEARCH: ActionPolicy(limit=1, window_seconds=60, ban_after=2),
            ActionCategory.EXTRACT: ActionPolicy(limit=20, window_seconds=3600, ban_after=50),
        },
        clock=clock,
    )
    client = _client(settings, store, gate)
    body = {"inputs": [{"type": "phone", "value": "012-345 6789"}]}

    assert client.post("/api/search", json=body).status_code == 200
    issued = client.post("/api/search", json=body)
    assert issued.status_code == 403
    assert issued.json() == {
        "error": "Access blocked",
        "message": (
            "Your access has been blocked due to excessive requests. "
            "This may indicate automated abuse."
        ),
        "retryAfter": 86400,
    }
    assert issued.headers["Retry-After"] == "86400"
    assert "X-RateLimit-Limit" not in issued.headers

    clock.advance(100)
    blocked = client.post("/api/extract", json={"text": "call 012-345 6789 now please"})
    assert blocked.status_code == 403
    assert blocked.json()["error"] == "Access temporarily blocked"
    assert blocked.json()["retryAfter"] == 86300

    assert client.get("/api/stats").status_code == 200


def test_submit_cooldown(client: TestClient):
    body = {"scamType": "other", "dataPoints": [{"type": "email", "value": "scam@example.com"}]}
    assert client.post("/api/submit", json=body).status_code == 200

    response = client.post("/api/submit", json=body)
    assert response.status_code == 429
    assert response.json() == {
        "error": "Cooldown active",
        "message": "Please wait 60 seconds before submitting another report.",
        "retryAfter": 60,
    }
    assert response.headers["Retry-After"] == "60"


def test_extract_is_accounted(client: TestClient):
    response = client.post("/api/extract", json={"text": "WhatsApp 012-345 6789 asked for deposit"})
    assert response.status_code == 200
    assert response.headers["X-RateLimit-Limit"] == "20"
    assert response.headers["X-RateLimit-Remaining"] == "19"


@pytest.mark.parametrize("path", ["/health", "/api/health", "/api/stats"])
def test_exempt_paths_have_no_rate_limit_headers(client: TestClient, path):
    response = client.get(path)
    assert response.status_code == 200
    assert "X-RateLimit-Limit" not in response.headers


def test_admin_paths_are_not_rate_limited(client: TestClient, settings):
    for _ in range(100):
        response = client.get("/api/admin/verify", params={"token": settings.admin_secret_token})
        assert response.status_code == 200
    assert "X-RateLimit-Limit" not in response.headers


def test_forwarded_addresses_are_separate_clients(client: TestClient):
    first = client.post("/api/dispute", json=DISPUTE, headers={"X-Forwarded-For": "198.51.100.7, 10.0.0.1"})
    second = client.post("/api/dispute", json=DISPUTE, headers={"X-Forwarded-For": "198.51.100.8"})
    again = client.post("/api/dispute", json=DISPUTE, headers={"X-Forwarded-For": "198.51.100.7"})
    assert first.headers["X-RateLimit-Remaining"] == "2"
    assert second.headers["X-RateLimit-Remaining"] == "2"
    assert again.headers["X-RateLimit-Remaining"] == "1"


class _BrokenGate(AbuseGate):
    def check(self, path, method, headers, client_host=None):
        raise RuntimeError("state store unavailable")


def test_gate_failure_fails_open(settings, store, clock):
    client = _client(settings, store, _BrokenGate(clock=clock))
    response = client.post("/api/extract", json={"text": "WhatsApp 012-345 6789 asked for deposit"})
    assert response.status_code == 200
    assert "X-RateLimit-Limit" not in response.headers


def test_health_reports_abuse_state(client: TestClient):
    client.post("/api/dispute", json=DISPUTE)
    payload = client.get("/api/health").json()
    assert payload["abuse_control"] == {"tracked_windows": 1, "active_bans": 0}
