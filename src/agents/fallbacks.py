"""Deterministic extraction used whenever the AI collaborator is unavailable."""

from __future__ import annotations

import re
from typing import Optional

from src.common.constants import FALLBACK_PLATFORMS

PHONE_RE = re.compile(r"(?:\+?60|0)[1-9]\d{1,2}[-\s]?\d{3,4}[-\s]?\d{4}")
EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
BANK_ACCOUNT_RE = re.compile(r"\b\d{10,16}\b")
URL_RE = re.compile(r"https?://[^\s<>\"{}|\\^`\[\]]+", re.IGNORECASE)
# "@" must not be part of an email address.
TELEGRAM_RE = re.compile(r"(?<![\w.])@[a-zA-Z0-9_]{5,32}")
CRYPTO_RE = re.compile(r"\b(?:0x[a-fA-F0-9]{40}|[13][a-km-zA-HJ-NP-Z1-9]{25,34})\b")
AMOUNT_RE = re.compile(r"RM\s?(\d{1,3}(?:,?\d{3})*(?:\.\d{2})?)", re.IGNORECASE)

# (keywords, scam type, confidence), first match wins
SCAM_KEYWORDS: list[tuple[tuple[str, ...], str, int]] = [
    (("one piece", "pokemon", "tcg", "card"), "collectibles_scam", 75),
    (("gold", "silver", "emas"), "precious_metals_scam", 75),
    (("shopee", "lazada", "carousell"), "ecommerce_scam", 70),
]


def extract_data_points(text: str) -> list[dict]:
    """Regex extraction of identifiers, de-duplicated by (type, value)."""
    points: list[dict] = []

    phones = [match.group(0).strip() for match in PHONE_RE.finditer(text)]
    points.extend({"type": "phone", "value": phone, "confidence": 85} for phone in phones)

    points.extend(
        {"type": "email", "value": match.group(0).lower(), "confidence": 90}
        for match in EMAIL_RE.finditer(text)
    )

    phone_digits = [re.sub(r"[-\s]", "", phone) for phone in phones]
    for match in BANK_ACCOUNT_RE.finditer(text):
        account = match.group(0)
        if not any(account in digits for digits in phone_digits):
            points.append({"type": "bank_account", "value": account, "confidence": 70})

    points.extend(
        {"type": "website", "value": match.group(0), "confidence": 90}
        for match in URL_RE.finditer(text)
    )
    points.extend(
        {"type": "telegram", "value": match.group(0), "confidence": 75}
        for match in TELEGRAM_RE.finditer(text)
    )
    points.extend(
        {"type": "crypto_wallet", "value": match.group(0), "confidence": 85}
        for match in CRYPTO_RE.finditer(text)
    )

    seen: set[tuple[str, str]] = set()
    unique = []
    for point in points:
        key = (point["type"], point["value"])
        if key in seen:
            continue
        seen.add(key)
        unique.append(point)
    return unique


def largest_amount(text: str) -> Optional[float]:
    amounts = []
    for match in AMOUNT_RE.finditer(text):
        try:
            amounts.append(float(match.group(1).replace(",", "")))
        except ValueError:
            continue
    largest = max(amounts, default=0.0)
    return largest if largest > 0 else None


def detect_scam_type(text: str) -> tuple[Optional[str], int]:
    lowered = text.lower()
    for keywords, scam_type, confidence in SCAM_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return scam_type, confidence
    return None, 0


def detect_platform(text: str) -> Optional[str]:
    lowered = text.lower()
    for platform in FALLBACK_PLATFORMS:
        if platform.lower() in lowered:
            return platform
    return None
