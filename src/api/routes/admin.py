"""Moderation endpoints behind the admin token."""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from src.api.dependencies import get_report_service
from src.api.middleware.auth import is_admin_email, require_admin
from src.reports.service import ReportService

logger = structlog.get_logger()

router = APIRouter(prefix="/api/admin", tags=["admin"])


class AccessRequest(BaseModel):
    email: Optional[str] = None


class ReportAction(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    report_id: Optional[str] = None
    verified: Optional[bool] = None


@router.get("/verify", dependencies=[Depends(require_admin)])
async def verify_token():
    return {"authorized": True}


@router.post("/check-access")
async def check_access(body: AccessRequest, request: Request):
    if not body.email:
        raise HTTPException(status_code=400, detail="Email required")
    if not is_admin_email(body.email, request.app.state.settings):
        logger.info("admin_access_denied")
        raise HTTPException(status_code=403, detail="Not authorized")
    logger.info("admin_access_granted")
    return {"authorized": True}


@router.get("/reports", dependencies=[Depends(require_admin)])
async def list_reports(service: ReportService = Depends(get_report_service)):
    return service.list_reports()


@router.post("/verify-report", dependencies=[Depends(require_admin)])
async def verify_report(body: ReportAction, service: ReportService = Depends(get_report_service)):
    if not body.report_id or body.verified is None:
        raise HTTPException(status_code=400, detail="Invalid request")
    if not service.set_verified(body.report_id, body.verified):
        raise HTTPException(status_code=404, detail="Report not found")
    return {"success": True}


@router.post("/delete-report", dependencies=[Depends(require_admin)])
async def delete_report(body: ReportAction, service: ReportService = Depends(get_report_service)):
    if not body.report_id:
        raise HTTPException(status_code=400, detail="Invalid request")
    if not service.delete_report(body.report_id):
        raise HTTPException(status_code=404, detail="Report not found")
    return {"success": True}


@router.get("/stats", dependencies=[Depends(require_admin)])
async def admin_stats(service: ReportService = Depends(get_report_service)):
    return service.admin_stats()
