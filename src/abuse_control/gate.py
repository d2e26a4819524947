"""Request gate composing classification, identity, bans, cooldowns and rate windows."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

import structlog

from src.abuse_control.clock import Clock
from src.abuse_control.engine import BanEngine, CooldownGuard, Housekeeper, RateAccountant
from src.abuse_control.errors import BanIssued, ClientBanned, CooldownActive, RateLimitExceeded
from src.abuse_control.identity import resolve_identity
from src.abuse_control.policies import (
    DEFAULT_POLICIES,
    ActionCategory,
    ActionPolicy,
    classify_request,
    cooldown_applies,
)
from src.abuse_control.store import InMemoryStateStore, StateStore

logger = structlog.get_logger()

DEFAULT_BAN_SECONDS = 24 * 60 * 60


@dataclass(frozen=True)
class RateLimitHeaders:
    limit: int
    remaining: int
    reset_at_ms: int

    def as_dict(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at_ms),
        }


class AbuseGate:
    """Single-instance abuse control.

    Order per request: sweep (time-gated), classify, resolve identity, ban
    check, cooldown (POST on the cooldown action only), rate window, escalate.
    Banned requests are rejected before any counter is touched.
    """

    def __init__(
        self,
        policies: Optional[Mapping[ActionCategory, ActionPolicy]] = None,
        *,
        clock: Optional[Clock] = None,
        windows: Optional[StateStore] = None,
        bans: Optional[StateStore] = None,
        ban_seconds: int = DEFAULT_BAN_SECONDS,
        sweep_interval_seconds: float = 300,
        retention_seconds: float = 300,
    ):
        self.clock = clock or Clock()
        self.policies = dict(DEFAULT_POLICIES if policies is None else policies)
        self.ban_seconds = ban_seconds
        self.windows = windows if windows is not None else InMemoryStateStore(self.clock)
        self.bans = bans if bans is not None else InMemoryStateStore(self.clock)
        self.ban_engine = BanEngine(self.bans, self.clock, retention_seconds)
        self.accountant = RateAccountant(self.windows, self.clock, retention_seconds)
        self.cooldowns = CooldownGuard(self.windows, self.clock)
        self.housekeeper = Housekeeper(self.clock, sweep_interval_seconds)

    def check(
        self,
        path: str,
        method: str,
        headers: Mapping[str, str],
        client_host: Optional[str] = None,
    ) -> Optional[RateLimitHeaders]:
        """Admit the request or raise an ``AbuseControlError``.

        Returns the rate-limit headers for accounted actions, ``None`` otherwise.
        """
        self.housekeeper.maybe_sweep(self.windows, self.bans)

        classification = classify_request(path, method)
        if classification.exempt:
            return None

        identity = resolve_identity(headers, client_host)
        ban = self.ban_engine.is_banned(identity)
        if ban.banned:
            logger.info("banned_request_rejected", identity=identity, path=path)
            raise ClientBanned(ban.retry_after)

        action = classification.action
        if action is None:
            return None

        policy = self.policies.get(action)
        if policy is None:
            logger.warning("abuse_policy_missing", action=action.value)
            return None

        if cooldown_applies(method, policy):
            cooldown = self.cooldowns.check(identity, action, policy)
            if not cooldown.allowed:
                logger.info("cooldown_active", identity=identity, wait_seconds=cooldown.wait_seconds)
                raise CooldownActive(cooldown.wait_seconds)

        rate = self.accountant.check_and_increment(identity, action, policy)
        if rate.crossed_ban_threshold:
            self.ban_engine.ban(identity, self.ban_seconds, action=action)
            raise BanIssued(self.ban_seconds)

        reset_at_ms = int(self.clock.to_wall(rate.reset_at) * 1000)
        if not rate.allowed:
            logger.info(
                "rate_limit_exceeded",
                identity=identity,
                action=action.value,
                count=rate.count,
                limit=rate.limit,
            )
            raise RateLimitExceeded(
                rate.reset_at - self.clock.monotonic(),
                limit=rate.limit,
                reset_at_ms=reset_at_ms,
            )

        return RateLimitHeaders(limit=rate.limit, remaining=rate.remaining, reset_at_ms=reset_at_ms)

    def reset(self) -> None:
        """Drop all accounting state (restart semantics)."""
        self.windows.clear()
        self.bans.clear()
