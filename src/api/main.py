"""REST API for ScamGuard community scam reporting."""

from __future__ import annotations

import time
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.abuse_control.clock import Clock
from src.abuse_control.gate import AbuseGate
from src.abuse_control.policies import load_policies
from src.agents.extraction import DataPointExtractor
from src.agents.llm_client import LLMClient
from src.agents.report_analyzer import ReportAnalyzer
from src.agents.search_analyzer import SearchRiskAnalyzer
from src.api.middleware.rate_limiter import AbuseControlMiddleware
from src.api.routes import admin, ai, reports
from src.common.config import Settings, get_settings
from src.common.duckdb_backend import DuckDBStore
from src.observability.logging import AuditLogger
from src.reports.evidence import EvidenceStore
from src.reports.service import ReportService

logger = structlog.get_logger()

VERSION = "1.0.0"
PROD_ORIGINS = ["https://scamguard.my"]


def build_gate(settings: Settings, clock: Optional[Clock] = None) -> AbuseGate:
    return AbuseGate(
        load_policies(settings.abuse_policy_file),
        clock=clock,
        ban_seconds=settings.abuse_ban_seconds,
        sweep_interval_seconds=settings.abuse_sweep_interval_seconds,
        retention_seconds=settings.abuse_retention_seconds,
    )


def create_app(
    settings: Optional[Settings] = None,
    *,
    gate: Optional[AbuseGate] = None,
    store: Optional[DuckDBStore] = None,
    llm: Optional[LLMClient] = None,
) -> FastAPI:
    settings = settings or get_settings()
    gate = gate or build_gate(settings)
    store = store or DuckDBStore(settings.db_path)
    llm = llm or LLMClient(settings)

    app = FastAPI(
        title="ScamGuard API",
        description="Community scam reporting with AI-assisted extraction",
        version=VERSION,
    )
    app.state.settings = settings
    app.state.gate = gate
    app.state.store = store
    app.state.extractor = DataPointExtractor(llm)
    app.state.report_analyzer = ReportAnalyzer(llm)
    app.state.report_service = ReportService(
        store,
        AuditLogger(store),
        SearchRiskAnalyzer(llm),
        EvidenceStore(settings),
    )

    app.add_middleware(AbuseControlMiddleware, gate=gate)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=PROD_ORIGINS if settings.is_prod else ["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
        expose_headers=["Retry-After", "X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            {"error": exc.detail},
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.middleware("http")
    async def add_timing_header(request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        duration_ms = round((time.time() - start) * 1000, 2)
        response.headers["X-Response-Time-Ms"] = str(duration_ms)
        logger.info(
            "request_completed",
            path=request.url.path,
            method=request.method,
            status_code=response.status_code,
            duration_ms=duration_ms,
        )
        return response

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "version": VERSION}

    @app.get("/api/health")
    async def api_health():
        try:
            store.scalar("SELECT 1")
            database = "ok"
        except Exception as exc:
            logger.error("health_database_failed", error=str(exc))
            database = "unavailable"
        return {
            "status": "healthy" if database == "ok" else "degraded",
            "version": VERSION,
            "database": database,
            "ai_enabled": settings.ai_enabled,
            "abuse_control": {
                "tracked_windows": len(gate.windows),
                "active_bans": len(gate.bans),
            },
        }

    app.include_router(reports.router)
    app.include_router(ai.router)
    app.include_router(admin.router)

    logger.info("app_created", env=settings.env, ai_enabled=settings.ai_enabled, db_path=settings.db_path)
    return app


app = create_app()
