"""Ban, rate-window, cooldown and housekeeping engines.

State layout:
    windows: "<identity>:<action>" -> RateWindow
    bans:    "<identity>"          -> expiry (monotonic seconds)

Every read-modify-write on a window goes through ``StateStore.update`` so
concurrent increments on one key never lose updates.  No operation spans
more than one key.
"""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from typing import Optional

import structlog

from src.abuse_control.clock import Clock
from src.abuse_control.policies import ActionCategory, ActionPolicy
from src.abuse_control.store import StateStore

logger = structlog.get_logger()


@dataclass(frozen=True)
class RateWindow:
    count: int
    window_start: float
    last_request: float


@dataclass(frozen=True)
class RateCheck:
    allowed: bool
    limit: int
    remaining: int
    count: int
    reset_at: float
    crossed_ban_threshold: bool


@dataclass(frozen=True)
class BanStatus:
    banned: bool
    retry_after: int = 0


@dataclass(frozen=True)
class CooldownCheck:
    allowed: bool
    wait_seconds: int = 0


def window_key(identity: str, action: ActionCategory) -> str:
    return f"{identity}:{action.value}"


class BanEngine:
    def __init__(self, store: StateStore, clock: Clock, retention_seconds: float = 300):
        self.store = store
        self.clock = clock
        self.retention_seconds = retention_seconds

    def is_banned(self, identity: str) -> BanStatus:
        expiry = self.store.get(identity)
        if expiry is None:
            return BanStatus(banned=False)

        now = self.clock.monotonic()
        if now < expiry:
            return BanStatus(banned=True, retry_after=int(math.ceil(expiry - now)))

        # A ban re-issued since the read above must survive.
        self.store.delete_if(identity, lambda current: current <= now)
        return BanStatus(banned=False)

    def ban(self, identity: str, duration_seconds: float, action: Optional[ActionCategory] = None) -> float:
        """Ban ``identity``; an existing ban is overwritten, never extended."""
        expiry = self.clock.monotonic() + duration_seconds
        self.store.set(identity, expiry, duration_seconds + self.retention_seconds)
        logger.warning(
            "client_banned",
            identity=identity,
            action=action.value if action else None,
            duration_seconds=duration_seconds,
            expires_at=round(self.clock.to_wall(expiry), 3),
        )
        return expiry


class RateAccountant:
    """Fixed-window counters per identity and action."""

    def __init__(self, store: StateStore, clock: Clock, retention_seconds: float = 300):
        self.store = store
        self.clock = clock
        self.retention_seconds = retention_seconds

    def check_and_increment(
        self, identity: str, action: ActionCategory, policy: ActionPolicy
    ) -> RateCheck:
        def mutate(current: Optional[RateWindow]) -> tuple[RateWindow, float]:
            now = self.clock.monotonic()
            if current is None or now - current.window_start > policy.window_seconds:
                current = RateWindow(count=0, window_start=now, last_request=now)
            # Rejected requests still count so sustained hammering reaches ban_after.
            updated = RateWindow(
                count=current.count + 1,
                window_start=current.window_start,
                last_request=now,
            )
            return updated, self._ttl(updated, policy, now)

        window: RateWindow = self.store.update(window_key(identity, action), mutate)
        return RateCheck(
            allowed=window.count <= policy.limit,
            limit=policy.limit,
            remaining=max(0, policy.limit - window.count),
            count=window.count,
            reset_at=window.window_start + policy.window_seconds,
            crossed_ban_threshold=window.count >= policy.ban_after,
        )

    def _ttl(self, window: RateWindow, policy: ActionPolicy, now: float) -> float:
        horizon = max(
            window.window_start + policy.window_seconds,
            window.last_request + (policy.cooldown_seconds or 0),
        )
        return horizon + self.retention_seconds - now


class CooldownGuard:
    """Minimum spacing between requests, read from the action's RateWindow."""

    def __init__(self, store: StateStore, clock: Clock):
        self.store = store
        self.clock = clock

    def check(self, identity: str, action: ActionCategory, policy: ActionPolicy) -> CooldownCheck:
        if not policy.cooldown_seconds:
            return CooldownCheck(allowed=True)

        window: Optional[RateWindow] = self.store.get(window_key(identity, action))
        if window is None:
            return CooldownCheck(allowed=True)

        elapsed = self.clock.monotonic() - window.last_request
        if elapsed < policy.cooldown_seconds:
            return CooldownCheck(
                allowed=False,
                wait_seconds=int(math.ceil(policy.cooldown_seconds - elapsed)),
            )
        return CooldownCheck(allowed=True)


class Housekeeper:
    """Time-gated eviction of stale windows and bans.

    Checked on every request, acts at most once per ``interval_seconds``.
    A sweep already in progress makes concurrent callers skip the cycle.
    """

    def __init__(self, clock: Clock, interval_seconds: float = 300):
        self.clock = clock
        self.interval_seconds = interval_seconds
        self.last_swept_at = clock.monotonic()
        self._sweeping = threading.Lock()

    def due(self) -> bool:
        return self.clock.monotonic() - self.last_swept_at > self.interval_seconds

    def maybe_sweep(self, *stores: StateStore) -> int:
        if not self.due():
            return 0
        if not self._sweeping.acquire(blocking=False):
            return 0
        try:
            self.last_swept_at = self.clock.monotonic()
            evicted = sum(store.purge_expired() for store in stores)
        finally:
            self._sweeping.release()
        if evicted:
            logger.info("abuse_state_swept", evicted=evicted)
        return evicted
