"""Risk assessment for search matches (AI with rule-based fallback)."""

from __future__ import annotations

from typing import Any, Optional

import structlog

from src.agents.llm_client import AIServiceUnavailableError, LLMClient
from src.agents.schemas import RiskFactor, SearchAnalysis, clamp_confidence
from src.common.constants import RESULT_STATUSES

logger = structlog.get_logger()

SYSTEM_PROMPT = """You are a fraud risk analyst for ScamGuard Malaysia. Analyze search results and provide risk assessments.

- Use neutral, non-accusatory language
- State facts, not accusations
- "Suspicious" means matching reports exist, not confirmed fraud
- Always explain the factors that influenced your assessment"""

NO_MATCHES = SearchAnalysis(
    status="no_known_info",
    confidence=95,
    summary="No matching reports were found in our database for the information you provided.",
    matched_fields=[],
    factors=[RiskFactor(factor="No matching data points found in database", impact="neutral")],
)


def _matched_types(matched_reports: list[dict[str, Any]]) -> list[str]:
    types: list[str] = []
    for report in matched_reports:
        for point in report.get("matched_points", []):
            if point["type"] not in types:
                types.append(point["type"])
    return types


def rule_based_analysis(matched_reports: list[dict[str, Any]]) -> SearchAnalysis:
    """Score starts at 50 and is adjusted per observed evidence, clamped to 0..100."""
    if not matched_reports:
        return NO_MATCHES.model_copy(deep=True)

    matched_types = _matched_types(matched_reports)
    report_count = len(matched_reports)
    verified = sum(1 for report in matched_reports if report.get("is_verified"))
    disputed = sum(1 for report in matched_reports if report.get("is_disputed"))

    confidence = 50
    factors: list[RiskFactor] = []
    if report_count >= 3:
        confidence += 20
        factors.append(RiskFactor(factor=f"Found in {report_count} separate reports", impact="negative"))
    else:
        confidence += 10
        factors.append(RiskFactor(factor=f"Found in {report_count} report(s)", impact="negative"))

    if verified:
        confidence += 15
        factors.append(RiskFactor(factor=f"{verified} verified report(s) with evidence", impact="negative"))

    if disputed:
        confidence -= 10
        factors.append(RiskFactor(factor=f"{disputed} report(s) have been disputed", impact="positive"))

    if len(matched_types) >= 2:
        confidence += 10
        factors.append(
            RiskFactor(
                factor=f"Multiple data types matched ({', '.join(matched_types)})",
                impact="negative",
            )
        )

    return SearchAnalysis(
        status="suspicious",
        confidence=max(0, min(100, confidence)),
        summary=(
            f"The information you searched has appeared in {report_count} previous report(s). "
            "Please exercise caution."
        ),
        matched_fields=matched_types,
        factors=factors,
    )


def _build_prompt(inputs: list[dict[str, str]], matched_reports: list[dict[str, Any]]) -> str:
    searched = "\n".join(f"- {item['type']}: {item['value']}" for item in inputs)
    matches = []
    for index, report in enumerate(matched_reports, start=1):
        points = ", ".join(point["type"] for point in report.get("matched_points", []))
        verified = "(verified)" if report.get("is_verified") else "(unverified)"
        disputed = "(disputed)" if report.get("is_disputed") else ""
        created = report.get("created_at")
        date = created.date().isoformat() if hasattr(created, "date") else str(created)
        matches.append(
            f"{index}. Scam type: {report.get('scam_type')} {verified} {disputed}\n"
            f"   Matched: {points}\n   Date: {date}"
        )
    verified_count = sum(1 for report in matched_reports if report.get("is_verified"))
    disputed_count = sum(1 for report in matched_reports if report.get("is_disputed"))
    return (
        "Analyze these search results and provide a fraud risk assessment.\n\n"
        f"USER SEARCHED FOR:\n{searched}\n\n"
        f"DATABASE MATCHES FOUND: {len(matched_reports)} report(s)\n" + "\n".join(matches) + "\n\n"
        f"ADDITIONAL CONTEXT:\n- Verified reports: {verified_count}\n- Disputed reports: {disputed_count}\n\n"
        'Respond in JSON format only:\n{"status": "suspicious" | "no_known_info" | "clear", '
        '"confidence": 0-100, "summary": "1-2 sentence factual explanation", '
        '"matched_fields": ["list of matched data types"], '
        '"factors": [{"factor": "description", "impact": "positive" | "negative" | "neutral"}]}'
    )


class SearchRiskAnalyzer:
    def __init__(self, llm: Optional[LLMClient] = None):
        self.llm = llm or LLMClient()

    async def analyze(
        self, inputs: list[dict[str, str]], matched_reports: list[dict[str, Any]]
    ) -> SearchAnalysis:
        if not matched_reports:
            return NO_MATCHES.model_copy(deep=True)

        try:
            parsed = await self.llm.complete_json(
                _build_prompt(inputs, matched_reports),
                model=self.llm.settings.ai_analysis_model,
                system=SYSTEM_PROMPT,
                temperature=0.3,
                max_tokens=500,
            )
            return self._from_ai(parsed, matched_reports)
        except AIServiceUnavailableError as exc:
            logger.info("ai_fallback_used", operation="search_analysis", reason=str(exc))
            return rule_based_analysis(matched_reports)

    @staticmethod
    def _from_ai(parsed: dict[str, Any], matched_reports: list[dict[str, Any]]) -> SearchAnalysis:
        status = parsed.get("status")
        if status not in RESULT_STATUSES:
            status = "suspicious" if matched_reports else "no_known_info"

        factors = []
        for item in parsed.get("factors") or []:
            if not isinstance(item, dict) or not item.get("factor"):
                continue
            impact = item.get("impact")
            factors.append(
                RiskFactor(
                    factor=str(item["factor"]),
                    impact=impact if impact in {"positive", "negative", "neutral"} else "neutral",
                )
            )

        matched_fields = parsed.get("matched_fields")
        if not isinstance(matched_fields, list):
            matched_fields = _matched_types(matched_reports)

        return SearchAnalysis(
            status=status,
            confidence=clamp_confidence(parsed.get("confidence"), 50),
            summary=str(parsed.get("summary") or ""),
            matched_fields=[str(field) for field in matched_fields],
            factors=factors,
        )
