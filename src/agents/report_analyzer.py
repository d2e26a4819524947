"""Structured analysis of a victim's scam narrative."""

from __future__ import annotations

import math
from typing import Any, Optional

import structlog

from src.agents.fallbacks import detect_platform, detect_scam_type, extract_data_points, largest_amount
from src.agents.llm_client import AIServiceUnavailableError, LLMClient
from src.agents.schemas import (
    ExtractedDataPoint,
    ReportAnalysis,
    clamp_confidence,
    sanitize_data_points,
)
from src.common.constants import DEFAULT_CURRENCY, SCAM_TYPES

logger = structlog.get_logger()

MAX_PROMPT_CHARS = 5000
MAX_SUMMARY_CHARS = 500
MAX_KEY_DETAILS = 5
MAX_KEY_DETAIL_CHARS = 200

SYSTEM_PROMPT = (
    "You are a helpful scam report analyst. Extract information accurately and respond only in JSON."
)

REPORT_PROMPT = """You are a compassionate scam report analyst for ScamGuard Malaysia.
Analyze the following text and extract ALL relevant information for a scam report.

1. DATA POINTS: phone, email, bank_account, whatsapp, telegram, ewallet, social_media, website,
   crypto_wallet, name, company.
2. SCAM TYPE: collectibles_scam, precious_metals_scam, ecommerce_scam, macau_scam, love_scam,
   investment_scam, parcel_scam, job_scam, loan_scam, mule_recruitment, phishing, other.
3. PLATFORM where the scam occurred: WhatsApp, Telegram, Facebook, Instagram, TikTok, Shopee, Lazada,
   Carousell, Mudah.my, Phone Call, SMS, Email, Website, Other.
4. AMOUNT LOST as a number, with its currency (default MYR).
5. SUMMARY: a 1-2 sentence factual summary of what happened.
6. KEY DETAILS: 2-4 important facts (dates, promises made, red flags noticed).

Respond ONLY in this JSON format:
{"dataPoints": [{"type": "phone", "value": "012-345 6789", "confidence": 95}],
 "scamType": "collectibles_scam", "scamTypeConfidence": 85, "platform": "Carousell",
 "amountLost": 500, "currency": "MYR",
 "summary": "Victim paid RM500 for cards that were never delivered.",
 "keyDetails": ["Seller stopped responding after payment"]}

If information is not found, use null. Always extract what you can.

TEXT TO ANALYZE:
"""


def fallback_analysis(text: str) -> ReportAnalysis:
    scam_type, scam_confidence = detect_scam_type(text)
    return ReportAnalysis(
        data_points=[ExtractedDataPoint(**point) for point in extract_data_points(text)],
        scam_type=scam_type,
        scam_type_confidence=scam_confidence,
        platform=detect_platform(text),
        amount_lost=largest_amount(text),
        currency=DEFAULT_CURRENCY,
        source="fallback",
    )


def _from_ai(parsed: dict[str, Any]) -> ReportAnalysis:
    result = ReportAnalysis(data_points=sanitize_data_points(parsed.get("dataPoints")), source="ai")

    scam_type = parsed.get("scamType")
    if scam_type in SCAM_TYPES:
        result.scam_type = scam_type
        result.scam_type_confidence = clamp_confidence(parsed.get("scamTypeConfidence"), 70)

    platform = parsed.get("platform")
    if isinstance(platform, str) and platform:
        result.platform = platform

    amount = parsed.get("amountLost")
    if (
        isinstance(amount, (int, float))
        and not isinstance(amount, bool)
        and math.isfinite(amount)
        and amount > 0
    ):
        result.amount_lost = float(amount)

    currency = parsed.get("currency")
    if isinstance(currency, str) and currency:
        result.currency = currency.upper()

    summary = parsed.get("summary")
    if isinstance(summary, str):
        result.summary = summary[:MAX_SUMMARY_CHARS]

    details = parsed.get("keyDetails")
    if isinstance(details, list):
        result.key_details = [
            detail[:MAX_KEY_DETAIL_CHARS] for detail in details if isinstance(detail, str)
        ][:MAX_KEY_DETAILS]
    return result


class ReportAnalyzer:
    def __init__(self, llm: Optional[LLMClient] = None):
        self.llm = llm or LLMClient()

    async def analyze(self, text: str) -> ReportAnalysis:
        try:
            parsed = await self.llm.complete_json(
                REPORT_PROMPT + text[:MAX_PROMPT_CHARS],
                model=self.llm.settings.ai_extraction_model,
                system=SYSTEM_PROMPT,
                temperature=0.1,
                max_tokens=1500,
            )
        except AIServiceUnavailableError as exc:
            logger.info("ai_fallback_used", operation="analyze_report", reason=str(exc))
            return fallback_analysis(text)
        return _from_ai(parsed)
