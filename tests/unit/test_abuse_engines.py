"""Unit tests for the ban, rate-window, cooldown and housekeeping engines."""

import pytest

from src.abuse_control.clock import FakeClock
from src.abuse_control.engine import (
    BanEngine,
    CooldownGuard,
    Housekeeper,
    RateAccountant,
    window_key,
)
from src.abuse_control.policies import ActionCategory, ActionPolicy
from src.abuse_control.store import InMemoryStateStore

pytestmark = pytest.mark.unit

POLICY = ActionPolicy(limit=3, window_seconds=100, ban_after=6)
COOLDOWN_POLICY = ActionPolicy(limit=5, window_seconds=3600, ban_after=20, cooldown_seconds=60)


@pytest.fixture
def windows(clock: FakeClock) -> InMemoryStateStore:
    return InMemoryStateStore(clock)


@pytest.fixture
def accountant(windows: InMemoryStateStore, clock: FakeClock) -> RateAccountant:
    return RateAccountant(windows, clock)


class TestRateAccountant:
    def test_limit_requests_allowed_then_rejected(self, accountant):
        results = [accountant.check_and_increment("ip_1", ActionCategory.SEARCH, POLICY) for _ in range(4)]
        assert [r.allowed for r in results] == [True, True, True, False]
        assert [r.remaining for r in results] == [2, 1, 0, 0]
        assert results[-1].count == 4

    def test_rejected_requests_still_count_toward_ban(self, accountant):
        results = [accountant.check_and_increment("ip_1", ActionCategory.SEARCH, POLICY) for _ in range(6)]
        assert [r.crossed_ban_threshold for r in results] == [False] * 5 + [True]

    def test_window_resets_after_duration(self, accountant, clock):
        for _ in range(5):
            accountant.check_and_increment("ip_1", ActionCategory.SEARCH, POLICY)
        clock.advance(100)
        still_open = accountant.check_and_increment("ip_1", ActionCategory.SEARCH, POLICY)
        assert still_open.count == 6

        clock.advance(1)
        fresh = accountant.check_and_increment("ip_1", ActionCategory.SEARCH, POLICY)
        assert fresh.count == 1
        assert fresh.allowed
        assert fresh.reset_at == clock.monotonic() + POLICY.window_seconds

    def test_counters_are_per_identity_and_action(self, accountant):
        accountant.check_and_increment("ip_1", ActionCategory.SEARCH, POLICY)
        accountant.check_and_increment("ip_1", ActionCategory.SEARCH, POLICY)
        assert accountant.check_and_increment("ip_2", ActionCategory.SEARCH, POLICY).count == 1
        assert accountant.check_and_increment("ip_1", ActionCategory.DISPUTE, POLICY).count == 1

    def test_reset_at_is_window_start_plus_duration(self, accountant, clock):
        first = accountant.check_and_increment("ip_1", ActionCategory.SEARCH, POLICY)
        clock.advance(30)
        second = accountant.check_and_increment("ip_1", ActionCategory.SEARCH, POLICY)
        assert first.reset_at == second.reset_at == 1_000.0 + 100

    def test_window_state_tracks_last_request(self, accountant, windows, clock):
        accountant.check_and_increment("ip_1", ActionCategory.SEARCH, POLICY)
        clock.advance(12)
        accountant.check_and_increment("ip_1", ActionCategory.SEARCH, POLICY)
        window = windows.get(window_key("ip_1", ActionCategory.SEARCH))
        assert window.window_start == 1_000.0
        assert window.last_request == 1_012.0
        assert window.count == 2


class TestBanEngine:
    def test_ban_lifecycle(self, clock):
        store = InMemoryStateStore(clock)
        bans = BanEngine(store, clock)
        assert not bans.is_banned("ip_1").banned

        bans.ban("ip_1", 86_400)
        status = bans.is_banned("ip_1")
        assert status.banned
        assert status.retry_after == 86_400

        clock.advance(86_399.5)
        assert bans.is_banned("ip_1").retry_after == 1

        clock.advance(0.5)
        assert not bans.is_banned("ip_1").banned
        assert store.get("ip_1") is None

    def test_stale_entry_is_evicted_on_check(self, clock):
        store = InMemoryStateStore(clock)
        bans = BanEngine(store, clock, retention_seconds=300)
        bans.ban("ip_1", 10)
        clock.advance(11)
        assert len(store) == 1
        assert not bans.is_banned("ip_1").banned
        assert len(store) == 0

    def test_reban_overwrites_expiry(self, clock):
        store = InMemoryStateStore(clock)
        bans = BanEngine(store, clock)
        bans.ban("ip_1", 1_000)
        clock.advance(100)
        bans.ban("ip_1", 50)
        assert bans.is_banned("ip_1").retry_after == 50

    def test_ban_reissued_during_expiry_check_survives(self, clock):
        class _ReissuingStore(InMemoryStateStore):
            """Returns the stale expiry, then lets another worker re-ban before eviction."""

            def __init__(self, clock):
                super().__init__(clock)
                self.reissue = False

            def get(self, key):
                value = super().get(key)
                if self.reissue:
                    self.reissue = False
                    self.set(key, clock.monotonic() + 500, 800)
                return value

        store = _ReissuingStore(clock)
        bans = BanEngine(store, clock)
        bans.ban("ip_1", 10)
        clock.advance(11)
        store.reissue = True

        assert not bans.is_banned("ip_1").banned
        assert store.get("ip_1") == clock.monotonic() + 500
        status = bans.is_banned("ip_1")
        assert status.banned
        assert status.retry_after == 500


class TestCooldownGuard:
    def test_wait_is_measured_from_last_request(self, accountant, windows, clock):
        guard = CooldownGuard(windows, clock)
        assert guard.check("ip_1", ActionCategory.SUBMIT, COOLDOWN_POLICY).allowed

        accountant.check_and_increment("ip_1", ActionCategory.SUBMIT, COOLDOWN_POLICY)
        clock.advance(10)
        check = guard.check("ip_1", ActionCategory.SUBMIT, COOLDOWN_POLICY)
        assert not check.allowed
        assert check.wait_seconds == 50

        clock.advance(50)
        assert guard.check("ip_1", ActionCategory.SUBMIT, COOLDOWN_POLICY).allowed

    def test_policy_without_cooldown_always_allows(self, accountant, windows, clock):
        guard = CooldownGuard(windows, clock)
        accountant.check_and_increment("ip_1", ActionCategory.SEARCH, POLICY)
        assert guard.check("ip_1", ActionCategory.SEARCH, POLICY).allowed


class TestHousekeeper:
    def test_sweeps_only_after_interval(self, clock):
        store = InMemoryStateStore(clock)
        store.set("old", 1, ttl_seconds=10)
        keeper = Housekeeper(clock, interval_seconds=300)

        clock.advance(100)
        assert not keeper.due()
        assert keeper.maybe_sweep(store) == 0
        assert len(store) == 1

        clock.advance(201)
        assert keeper.due()
        assert keeper.maybe_sweep(store) == 1
        assert len(store) == 0
        assert keeper.last_swept_at == clock.monotonic()
        assert not keeper.due()

    def test_window_survives_until_retention_passes(self, accountant, windows, clock):
        keeper = Housekeeper(clock, interval_seconds=300)
        accountant.check_and_increment("ip_1", ActionCategory.SEARCH, POLICY)

        # window ends at +100, retention keeps it until +400
        clock.advance(350)
        assert keeper.maybe_sweep(windows) == 0
        assert len(windows) == 1

        clock.advance(301)
        assert keeper.maybe_sweep(windows) == 1
        assert len(windows) == 0

    def test_sweep_is_skipped_while_another_is_running(self, clock):
        store = InMemoryStateStore(clock)
        store.set("old", 1, ttl_seconds=1)
        keeper = Housekeeper(clock, interval_seconds=1)
        clock.advance(5)

        keeper._sweeping.acquire()
        try:
            assert keeper.maybe_sweep(store) == 0
        finally:
            keeper._sweeping.release()
        assert keeper.maybe_sweep(store) == 1
