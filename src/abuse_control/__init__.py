"""In-process abuse control: rate windows, cooldowns and escalating bans."""

from src.abuse_control.errors import AbuseControlError
from src.abuse_control.gate import AbuseGate, RateLimitHeaders
from src.abuse_control.policies import DEFAULT_POLICIES, ActionCategory, ActionPolicy

__all__ = [
    "AbuseControlError",
    "AbuseGate",
    "ActionCategory",
    "ActionPolicy",
    "DEFAULT_POLICIES",
    "RateLimitHeaders",
]
