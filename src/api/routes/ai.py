"""AI-assisted extraction endpoints; both always answer, falling back to heuristics."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from src.agents.extraction import DataPointExtractor
from src.agents.report_analyzer import ReportAnalyzer
from src.api.dependencies import get_extractor, get_report_analyzer

router = APIRouter(prefix="/api", tags=["ai"])

EXTRACT_MIN_CHARS = 10
EXTRACT_MAX_CHARS = 10_000
ANALYZE_MIN_CHARS = 20
ANALYZE_MAX_CHARS = 15_000


class TextRequest(BaseModel):
    text: Optional[str] = None


def _require_text(text: Optional[str], minimum: int, maximum: int, too_short: str) -> str:
    if not text or not isinstance(text, str):
        raise HTTPException(status_code=400, detail="Text is required")
    if len(text) < minimum:
        raise HTTPException(status_code=400, detail=too_short)
    if len(text) > maximum:
        raise HTTPException(status_code=400, detail=f"Text too long. Maximum {maximum:,} characters.")
    return text


@router.post("/extract")
async def extract(body: TextRequest, extractor: DataPointExtractor = Depends(get_extractor)):
    text = _require_text(
        body.text, EXTRACT_MIN_CHARS, EXTRACT_MAX_CHARS, "Text too short. Please provide more details."
    )
    result = await extractor.extract(text)
    count = len(result.data_points)
    return {
        "success": True,
        **result.model_dump(by_alias=True),
        "message": (
            f"Found {count} data point(s). Please review and correct if needed."
            if count
            else "No data points found. Try adding more details or enter manually."
        ),
    }


@router.post("/analyze-report")
async def analyze_report(body: TextRequest, analyzer: ReportAnalyzer = Depends(get_report_analyzer)):
    text = _require_text(
        body.text,
        ANALYZE_MIN_CHARS,
        ANALYZE_MAX_CHARS,
        "Please provide more details about the scam incident.",
    )
    result = await analyzer.analyze(text)
    count = len(result.data_points)
    return {
        "success": True,
        **result.model_dump(by_alias=True),
        "message": (
            f"Extracted {count} data point(s). Please review and correct if needed."
            if count
            else "Could not extract data points. Please enter them manually."
        ),
    }
