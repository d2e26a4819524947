"""Unit tests for the composed abuse gate."""

import pytest

from src.abuse_control.engine import window_key
from src.abuse_control.errors import (
    AbuseControlError,
    BanIssued,
    ClientBanned,
    CooldownActive,
    RateLimitExceeded,
)
from src.abuse_control.gate import AbuseGate
from src.abuse_control.identity import hash_identity
from src.abuse_control.policies import ActionCategory, ActionPolicy

pytestmark = pytest.mark.unit

CLIENT_X = {"x-forwarded-for": "203.0.113.10"}
CLIENT_Y = {"x-forwarded-for": "203.0.113.11"}
CLIENT_Z = {"x-forwarded-for": "203.0.113.12"}


def _search(gate, headers):
    return gate.check("/api/search", "POST", headers)


def _expect(exc_type, call, *args):
    with pytest.raises(exc_type) as info:
        call(*args)
    return info.value


def test_scenario_a_search_quota(gate, clock):
    first = _search(gate, CLIENT_X)
    assert first.limit == 60
    assert first.remaining == 59
    assert first.reset_at_ms == int((1_767_225_600 + 3_600) * 1000)

    clock.advance(600)
    for expected_remaining in range(58, -1, -1):
        assert _search(gate, CLIENT_X).remaining == expected_remaining

    exc = _expect(RateLimitExceeded, _search, gate, CLIENT_X)
    assert exc.status_code == 429
    assert exc.retry_after == 3_000
    assert exc.headers["Retry-After"] == "3000"
    assert exc.headers["X-RateLimit-Limit"] == "60"
    assert exc.headers["X-RateLimit-Remaining"] == "0"
    assert exc.headers["X-RateLimit-Reset"] == str(first.reset_at_ms)
    assert exc.payload() == {
        "error": "Too many requests",
        "message": "Rate limit exceeded. Please try again in 50 minutes.",
        "retryAfter": 3_000,
    }


def test_scenario_b_sustained_hammering_bans(gate, clock):
    outcomes = []
    for _ in range(200):
        try:
            _search(gate, CLIENT_Y)
            outcomes.append("ok")
        except BanIssued:
            outcomes.append("ban")
        except RateLimitExceeded:
            outcomes.append("limited")

    assert outcomes[:60] == ["ok"] * 60
    assert outcomes[60:199] == ["limited"] * 139
    assert outcomes[199] == "ban"

    banned = _expect(ClientBanned, _search, gate, CLIENT_Y)
    assert banned.status_code == 403
    assert banned.retry_after == 86_400
    assert not isinstance(banned, BanIssued)

    clock.advance(23 * 3600)
    assert _expect(ClientBanned, _search, gate, CLIENT_Y).retry_after == 3_600

    clock.advance(3_600)
    assert _search(gate, CLIENT_Y).remaining == 59


def test_new_ban_response_shape(clock):
    gate = AbuseGate({ActionCategory.SEARCH: ActionPolicy(limit=1, window_seconds=60, ban_after=2)}, clock=clock)
    _search(gate, CLIENT_X)
    exc = _expect(BanIssued, _search, gate, CLIENT_X)
    assert exc.status_code == 403
    assert exc.retry_after == 86_400
    assert exc.headers == {"Retry-After": "86400"}
    assert exc.payload()["error"] == "Access blocked"


def test_ban_applies_to_every_action(clock):
    gate = AbuseGate(
        {
            ActionCategory.SEARCH: ActionPolicy(limit=1, window_seconds=60, ban_after=2),
            ActionCategory.DISPUTE: ActionPolicy(limit=3, window_seconds=3600, ban_after=15),
        },
        clock=clock,
    )
    _search(gate, CLIENT_X)
    _expect(BanIssued, _search, gate, CLIENT_X)

    _expect(ClientBanned, gate.check, "/api/dispute", "POST", CLIENT_X)
    _expect(ClientBanned, gate.check, "/api/not-configured", "GET", CLIENT_X)
    assert gate.check("/api/dispute", "POST", CLIENT_Z).remaining == 2


def test_banned_requests_touch_no_counters_and_do_not_extend(clock):
    gate = AbuseGate({ActionCategory.SEARCH: ActionPolicy(limit=1, window_seconds=60, ban_after=2)}, clock=clock)
    identity = hash_identity("203.0.113.10")
    _search(gate, CLIENT_X)
    _expect(BanIssued, _search, gate, CLIENT_X)
    expiry = gate.bans.get(identity)
    window = gate.windows.get(window_key(identity, ActionCategory.SEARCH))

    for _ in range(10):
        clock.advance(10)
        _expect(ClientBanned, _search, gate, CLIENT_X)

    assert gate.bans.get(identity) == expiry
    assert gate.windows.get(window_key(identity, ActionCategory.SEARCH)) == window
    assert _expect(ClientBanned, _search, gate, CLIENT_X).retry_after == 86_400 - 100


def test_scenario_c_submit_cooldown(gate, clock):
    submit = gate.check("/api/submit", "POST", CLIENT_Z)
    assert submit.remaining == 4

    clock.advance(10)
    exc = _expect(CooldownActive, gate.check, "/api/submit", "POST", CLIENT_Z)
    assert exc.status_code == 429
    assert exc.retry_after == 50
    assert exc.payload()["message"] == "Please wait 50 seconds before submitting another report."

    identity = hash_identity("203.0.113.12")
    assert gate.windows.get(window_key(identity, ActionCategory.SUBMIT)).count == 1

    clock.advance(50)
    assert gate.check("/api/submit", "POST", CLIENT_Z).remaining == 3


def test_cooldown_skips_non_post(gate, clock):
    gate.check("/api/submit", "POST", CLIENT_Z)
    clock.advance(1)
    assert gate.check("/api/submit", "GET", CLIENT_Z).remaining == 3


def test_exempt_and_unknown_paths_are_not_accounted(gate):
    assert gate.check("/api/stats", "GET", CLIENT_X) is None
    assert gate.check("/api/admin/reports", "GET", CLIENT_X) is None
    assert gate.check("/health", "GET", CLIENT_X) is None
    assert gate.check("/api/unknown", "POST", CLIENT_X) is None
    assert len(gate.windows) == 0


def test_missing_policy_fails_open(clock):
    gate = AbuseGate({ActionCategory.SUBMIT: ActionPolicy(limit=1, window_seconds=60, ban_after=2)}, clock=clock)
    for _ in range(5):
        assert _search(gate, CLIENT_X) is None


def test_identity_falls_back_to_socket_peer(gate):
    gate.check("/api/dispute", "POST", {}, "192.0.2.1")
    assert gate.check("/api/dispute", "POST", {}, "192.0.2.1").remaining == 1
    assert gate.check("/api/dispute", "POST", {}, "192.0.2.2").remaining == 2


def test_housekeeping_runs_inside_check(clock):
    gate = AbuseGate(
        {ActionCategory.SEARCH: ActionPolicy(limit=2, window_seconds=60, ban_after=5)},
        clock=clock,
        sweep_interval_seconds=300,
        retention_seconds=300,
    )
    _search(gate, CLIENT_X)
    clock.advance(700)
    _search(gate, CLIENT_Y)
    assert len(gate.windows) == 1
    assert gate.housekeeper.last_swept_at == clock.monotonic()


def test_reset_drops_all_state(gate):
    _search(gate, CLIENT_X)
    gate.ban_engine.ban("ip_1", 60)
    gate.reset()
    assert len(gate.windows) == 0
    assert len(gate.bans) == 0


def test_errors_share_payload_contract():
    for exc in (ClientBanned(5), BanIssued(86_400), CooldownActive(3), RateLimitExceeded(61, 10, 0)):
        assert isinstance(exc, AbuseControlError)
        payload = exc.payload()
        assert set(payload) == {"error", "message", "retryAfter"}
        assert payload["message"]
        assert exc.headers["Retry-After"] == str(payload["retryAfter"])
    assert "2 minutes" in RateLimitExceeded(61, 10, 0).message
