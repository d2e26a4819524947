"""Result shapes shared by the AI path and the deterministic fallbacks."""

from __future__ import annotations

import math
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.common.constants import DATA_POINT_TYPES, DEFAULT_CURRENCY


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ExtractedDataPoint(CamelModel):
    type: str
    value: str
    confidence: int = Field(default=80, ge=0, le=100)


class ExtractionResult(CamelModel):
    data_points: List[ExtractedDataPoint] = Field(default_factory=list)
    suggested_scam_type: Optional[str] = None
    raw_analysis: Optional[str] = Field(default=None, exclude=True)
    source: Literal["ai", "fallback"] = Field(default="fallback", exclude=True)


class ReportAnalysis(CamelModel):
    data_points: List[ExtractedDataPoint] = Field(default_factory=list)
    scam_type: Optional[str] = None
    scam_type_confidence: int = 0
    platform: Optional[str] = None
    amount_lost: Optional[float] = None
    currency: str = DEFAULT_CURRENCY
    summary: str = ""
    key_details: List[str] = Field(default_factory=list)
    source: Literal["ai", "fallback"] = Field(default="fallback", exclude=True)


class RiskFactor(BaseModel):
    factor: str
    impact: Literal["positive", "negative", "neutral"]


class SearchAnalysis(BaseModel):
    status: Literal["suspicious", "no_known_info", "clear"]
    confidence: int
    summary: str
    matched_fields: List[str] = Field(default_factory=list)
    factors: List[RiskFactor] = Field(default_factory=list)


def clamp_confidence(value: Any, default: int) -> int:
    try:
        number = float(value) if value else float(default)
    except (TypeError, ValueError):
        number = float(default)
    if not math.isfinite(number):
        number = float(default)
    return max(0, min(100, int(number)))


def sanitize_data_points(raw: Any) -> list[ExtractedDataPoint]:
    """Keep well-formed points of a known type; confidence clamped to 0..100."""
    if not isinstance(raw, list):
        return []
    points = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        point_type = item.get("type")
        value = item.get("value")
        if not point_type or not value or point_type not in DATA_POINT_TYPES:
            continue
        points.append(
            ExtractedDataPoint(
                type=point_type,
                value=str(value).strip(),
                confidence=clamp_confidence(item.get("confidence"), 80),
            )
        )
    return points
