"""Rejections raised by the abuse gate and rendered by the middleware."""

from __future__ import annotations

import math
from typing import Any


class AbuseControlError(Exception):
    status_code = 429
    error = "Request rejected"

    def __init__(self, message: str, retry_after: float, headers: dict[str, str] | None = None):
        super().__init__(message)
        self.message = message
        self.retry_after = max(0, int(math.ceil(retry_after)))
        self.headers = {"Retry-After": str(self.retry_after), **(headers or {})}

    def payload(self) -> dict[str, Any]:
        return {"error": self.error, "message": self.message, "retryAfter": self.retry_after}


class ClientBanned(AbuseControlError):
    status_code = 403
    error = "Access temporarily blocked"

    def __init__(self, retry_after: float):
        super().__init__(
            "Your access has been temporarily restricted due to suspicious activity. "
            "Please try again later.",
            retry_after,
        )


class BanIssued(ClientBanned):
    """The request that crossed an abuse threshold."""

    error = "Access blocked"

    def __init__(self, ban_seconds: int):
        AbuseControlError.__init__(
            self,
            "Your access has been blocked due to excessive requests. "
            "This may indicate automated abuse.",
            ban_seconds,
        )


class CooldownActive(AbuseControlError):
    error = "Cooldown active"

    def __init__(self, wait_seconds: int):
        super().__init__(
            f"Please wait {wait_seconds} seconds before submitting another report.",
            wait_seconds,
        )


class RateLimitExceeded(AbuseControlError):
    error = "Too many requests"

    def __init__(self, retry_after: float, limit: int, reset_at_ms: int):
        minutes = int(math.ceil(max(retry_after, 0) / 60))
        super().__init__(
            f"Rate limit exceeded. Please try again in {minutes} minutes.",
            retry_after,
            headers={
                "X-RateLimit-Limit": str(limit),
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(reset_at_ms),
            },
        )
