"""Abuse-control middleware: bans, cooldowns and per-action rate windows."""

from __future__ import annotations

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from src.abuse_control.errors import AbuseControlError
from src.abuse_control.gate import AbuseGate

logger = structlog.get_logger()


class AbuseControlMiddleware(BaseHTTPMiddleware):
    """Run every request through the gate.

    Rejections become JSON responses; any other failure inside the gate lets
    the request through.
    """

    def __init__(self, app: ASGIApp, gate: AbuseGate):
        super().__init__(app)
        self.gate = gate

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        limits = None
        try:
            limits = self.gate.check(
                request.url.path,
                request.method,
                request.headers,
                request.client.host if request.client else None,
            )
        except AbuseControlError as exc:
            return JSONResponse(exc.payload(), status_code=exc.status_code, headers=exc.headers)
        except Exception as exc:
            logger.error(
                "abuse_gate_failed_open",
                path=request.url.path,
                error=type(exc).__name__,
                detail=str(exc),
            )

        response = await call_next(request)
        if limits is not None:
            for name, value in limits.as_dict().items():
                response.headers[name] = value
        return response
