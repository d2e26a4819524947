"""Data-point extraction from free text (AI with regex fallback)."""

from __future__ import annotations

from typing import Optional

import structlog

from src.agents.fallbacks import extract_data_points
from src.agents.llm_client import AIServiceUnavailableError, LLMClient
from src.agents.schemas import ExtractedDataPoint, ExtractionResult, sanitize_data_points
from src.common.constants import SCAM_TYPES

logger = structlog.get_logger()

MAX_PROMPT_CHARS = 4000

EXTRACTION_PROMPT = """You are a data extraction assistant for a scam prevention platform in Malaysia.

Analyze the following text and extract ALL identifiable data points that could be used to track scammers:
Malaysian phone numbers (01X-XXX XXXX or +60...), email addresses, bank account numbers (usually 10-16 digits),
WhatsApp/Telegram usernames or numbers, website URLs, company or business names, person names or aliases,
e-wallet accounts (Touch n Go, GrabPay, etc.), crypto wallet addresses and social media profiles.

Use one of these types for each item: phone, email, bank_account, whatsapp, telegram, ewallet,
social_media, website, crypto_wallet, name, company.

Also suggest the most likely scam type from: collectibles_scam, precious_metals_scam, ecommerce_scam,
macau_scam, love_scam, investment_scam, parcel_scam, job_scam, loan_scam, mule_recruitment, phishing.

Respond ONLY in this JSON format (no markdown, no explanation):
{"dataPoints": [{"type": "phone", "value": "012-345 6789", "confidence": 95}], "suggestedScamType": "ecommerce_scam"}

If no data points found, return: {"dataPoints": [], "suggestedScamType": null}

TEXT TO ANALYZE:
"""


def fallback_extraction(text: str) -> ExtractionResult:
    points = [ExtractedDataPoint(**point) for point in extract_data_points(text)]
    return ExtractionResult(data_points=points, suggested_scam_type=None, source="fallback")


class DataPointExtractor:
    def __init__(self, llm: Optional[LLMClient] = None):
        self.llm = llm or LLMClient()

    async def extract(self, text: str) -> ExtractionResult:
        try:
            parsed = await self.llm.complete_json(
                EXTRACTION_PROMPT + text[:MAX_PROMPT_CHARS],
                model=self.llm.settings.ai_extraction_model,
                temperature=0.1,
                max_tokens=1000,
            )
        except AIServiceUnavailableError as exc:
            logger.info("ai_fallback_used", operation="extract", reason=str(exc))
            return fallback_extraction(text)

        suggested = parsed.get("suggestedScamType")
        return ExtractionResult(
            data_points=sanitize_data_points(parsed.get("dataPoints")),
            suggested_scam_type=suggested if suggested in SCAM_TYPES else None,
            raw_analysis=str(parsed),
            source="ai",
        )
