"""Action policies and the request classifier.

Only actions with a configured policy are gated; every other API path is
either exempt or protected by the ban check alone.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional

import yaml


class ActionCategory(str, Enum):
    SEARCH = "search"
    SUBMIT = "submit"
    DISPUTE = "dispute"
    EXTRACT = "extract"
    ANALYZE_REPORT = "analyze-report"


@dataclass(frozen=True)
class ActionPolicy:
    limit: int
    window_seconds: int
    ban_after: int
    cooldown_seconds: Optional[int] = None

    def __post_init__(self) -> None:
        if self.limit < 1:
            raise ValueError("limit must be at least 1")
        if self.window_seconds < 1:
            raise ValueError("window_seconds must be at least 1")
        if self.ban_after <= self.limit:
            raise ValueError("ban_after must be greater than limit")
        if self.cooldown_seconds is not None and self.cooldown_seconds < 1:
            raise ValueError("cooldown_seconds must be positive when set")


HOUR = 60 * 60

DEFAULT_POLICIES: dict[ActionCategory, ActionPolicy] = {
    ActionCategory.SEARCH: ActionPolicy(limit=60, window_seconds=HOUR, ban_after=200),
    ActionCategory.SUBMIT: ActionPolicy(limit=5, window_seconds=HOUR, ban_after=20, cooldown_seconds=60),
    ActionCategory.DISPUTE: ActionPolicy(limit=3, window_seconds=HOUR, ban_after=15),
    ActionCategory.EXTRACT: ActionPolicy(limit=20, window_seconds=HOUR, ban_after=50),
    ActionCategory.ANALYZE_REPORT: ActionPolicy(limit=10, window_seconds=HOUR, ban_after=30),
}

API_PREFIX = "/api/"

# Health and stats are public read-only; admin routes carry their own token check.
EXEMPT_PREFIXES = ("/api/stats", "/api/health", "/api/admin")


@dataclass(frozen=True)
class Classification:
    exempt: bool
    action: Optional[ActionCategory] = None


EXEMPT = Classification(exempt=True)


def classify_request(path: str, method: str) -> Classification:
    """Map a request onto an action category, or mark it exempt."""
    _ = method
    if not path.startswith(API_PREFIX):
        return EXEMPT
    if any(path.startswith(prefix) for prefix in EXEMPT_PREFIXES):
        return EXEMPT

    segments = path.split("/")
    name = segments[2] if len(segments) > 2 else ""
    try:
        action = ActionCategory(name)
    except ValueError:
        action = None
    return Classification(exempt=False, action=action)


def cooldown_applies(method: str, policy: ActionPolicy) -> bool:
    return policy.cooldown_seconds is not None and method.upper() == "POST"


def validate_policies(policies: Mapping[ActionCategory, ActionPolicy]) -> list[str]:
    """Return table-level problems; per-policy checks run at construction."""
    errors: list[str] = []
    with_cooldown = [action.value for action, policy in policies.items() if policy.cooldown_seconds]
    if len(with_cooldown) > 1:
        errors.append(
            "cooldown_seconds may be set on at most one action, found: " + ", ".join(sorted(with_cooldown))
        )
    return errors


def _optional_int(value: object) -> Optional[int]:
    return None if value is None else int(value)


def load_policies(path: str | Path | None) -> dict[ActionCategory, ActionPolicy]:
    """Load the policy table, applying YAML overrides on top of the defaults."""
    policies = dict(DEFAULT_POLICIES)
    if path is None:
        return policies

    with open(path) as handle:
        raw_config = yaml.safe_load(handle) or {}

    overrides = raw_config.get("policies", {})
    if not isinstance(overrides, dict):
        raise ValueError("'policies' must be a mapping of action name to policy")

    for name, values in overrides.items():
        try:
            action = ActionCategory(name)
        except ValueError as exc:
            raise ValueError(f"Unknown action in policy file: {name}") from exc
        base = policies[action]
        values = values or {}
        policies[action] = ActionPolicy(
            limit=int(values.get("limit", base.limit)),
            window_seconds=int(values.get("window_seconds", base.window_seconds)),
            ban_after=int(values.get("ban_after", base.ban_after)),
            cooldown_seconds=_optional_int(values.get("cooldown_seconds", base.cooldown_seconds)),
        )

    errors = validate_policies(policies)
    if errors:
        raise ValueError("; ".join(errors))
    return policies
