"""Public report endpoints: search, submit, dispute and stats."""

from __future__ import annotations

import json
from typing import Any, List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel
from starlette.datastructures import UploadFile

from src.api.dependencies import get_report_service
from src.reports.service import EvidenceUpload, ReportService, Submission

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["reports"])


class DataPointInput(BaseModel):
    type: str
    value: str


class SearchRequest(BaseModel):
    inputs: List[DataPointInput] = Field(default_factory=list)


class SubmitRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    scam_type: Optional[str] = None
    platform: Optional[str] = None
    description: Optional[str] = None
    amount_lost: Optional[float] = Field(default=None, ge=0)
    data_points: List[DataPointInput] = Field(default_factory=list)


class DisputeRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    disputed_info: Optional[str] = None
    reason: Optional[str] = None
    contact_email: Optional[str] = None


def _internal_error(event: str, exc: Exception) -> HTTPException:
    logger.error(event, error=str(exc))
    return HTTPException(status_code=500, detail="Internal server error")


async def _parse_submission(request: Request) -> Submission:
    content_type = request.headers.get("content-type", "")
    evidence = None

    if "multipart/form-data" in content_type:
        form = await request.form()
        try:
            raw: dict[str, Any] = {
                "scamType": form.get("scamType"),
                "platform": form.get("platform") or None,
                "description": form.get("description") or None,
                "amountLost": form.get("amountLost") or None,
                "dataPoints": json.loads(str(form.get("dataPoints") or "[]")),
            }
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="dataPoints must be a JSON array") from exc

        upload = form.get("evidence")
        if isinstance(upload, UploadFile) and upload.filename:
            content = await upload.read()
            if content:
                evidence = EvidenceUpload(upload.filename, content, upload.content_type)
    else:
        try:
            raw = await request.json()
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Request body must be JSON") from exc

    try:
        body = SubmitRequest.model_validate(raw)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors()) from exc

    return Submission(
        scam_type=body.scam_type or "",
        platform=body.platform,
        description=body.description,
        amount_lost=body.amount_lost or None,
        data_points=[point.model_dump() for point in body.data_points],
        evidence=evidence,
    )


@router.get("/stats")
async def platform_stats(service: ReportService = Depends(get_report_service)):
    return service.stats()


@router.post("/search")
async def search_reports(body: SearchRequest, service: ReportService = Depends(get_report_service)):
    inputs = [item.model_dump() for item in body.inputs]
    try:
        return await service.search(inputs)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        raise _internal_error("search_failed", exc) from exc


@router.post("/submit")
async def submit_report(request: Request, service: ReportService = Depends(get_report_service)):
    submission = await _parse_submission(request)
    try:
        return service.submit(submission)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        raise _internal_error("submit_failed", exc) from exc


@router.post("/dispute")
async def dispute_report(body: DisputeRequest, service: ReportService = Depends(get_report_service)):
    try:
        return service.dispute(body.disputed_info or "", body.reason or "", body.contact_email or "")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        raise _internal_error("dispute_failed", exc) from exc
