"""Data-point normalization, validation and display masking."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from src.common.constants import MALAYSIA_COUNTRY_CODE

_LANDLINE_PREFIXES = ("03", "04", "05", "06", "07", "08", "09")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_ETH_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
_BTC_LEGACY_RE = re.compile(r"^[13][a-km-zA-HJ-NP-Z1-9]{25,34}$")
_BTC_BECH32_RE = re.compile(r"^bc1[a-z0-9]{39,59}$")
_TELEGRAM_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9_]{4,31}$")


def normalize_phone(phone: str) -> str:
    digits = re.sub(r"\D", "", phone)
    if digits.startswith(MALAYSIA_COUNTRY_CODE):
        return digits
    if digits.startswith("0"):
        return MALAYSIA_COUNTRY_CODE + digits[1:]
    return digits


def normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_bank_account(account: str) -> str:
    return re.sub(r"[\s-]", "", account)


def normalize_name(name: str) -> str:
    return re.sub(r"\s+", " ", name.strip().lower())


def normalize_data_point(point_type: str, value: str) -> str:
    if point_type in {"phone", "whatsapp"}:
        return normalize_phone(value)
    if point_type == "email":
        return normalize_email(value)
    if point_type == "bank_account":
        return normalize_bank_account(value)
    if point_type in {"name", "company"}:
        return normalize_name(value)
    # crypto wallets and everything else
    return value.strip().lower()


def is_valid_malaysian_phone(phone: str) -> bool:
    digits = re.sub(r"\D", "", phone)
    if digits.startswith("01"):
        return 10 <= len(digits) <= 11
    if digits.startswith(MALAYSIA_COUNTRY_CODE):
        return 11 <= len(digits) <= 12
    if digits.startswith(_LANDLINE_PREFIXES):
        return 9 <= len(digits) <= 10
    return False


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email))


def is_valid_url(url: str) -> bool:
    parsed = urlparse(url.strip())
    return bool(parsed.scheme) and bool(parsed.netloc or parsed.path)


def is_valid_crypto_wallet(wallet: str) -> bool:
    return any(pattern.match(wallet) for pattern in (_ETH_RE, _BTC_LEGACY_RE, _BTC_BECH32_RE))


def is_valid_telegram_username(username: str) -> bool:
    cleaned = username[1:] if username.startswith("@") else username
    return bool(_TELEGRAM_RE.match(cleaned))


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error: Optional[str] = None


def validate_data_point(point_type: str, value: str) -> ValidationResult:
    if not value or not value.strip():
        return ValidationResult(False, "Value is required")

    if point_type in {"phone", "whatsapp"} and not is_valid_malaysian_phone(value):
        return ValidationResult(False, "Please enter a valid Malaysian phone number")
    if point_type == "email" and not is_valid_email(value):
        return ValidationResult(False, "Please enter a valid email address")
    if point_type == "website" and not is_valid_url(value):
        return ValidationResult(False, "Please enter a valid URL")
    if point_type == "crypto_wallet" and not is_valid_crypto_wallet(value):
        return ValidationResult(False, "Please enter a valid wallet address")
    if point_type == "telegram" and not is_valid_telegram_username(value):
        return ValidationResult(False, "Please enter a valid Telegram username")
    return ValidationResult(True)


def mask_email(value: str) -> str:
    local, sep, domain = value.partition("@")
    if not sep or not local or not domain:
        return "***@***"
    return f"{local[:2]}***@{domain}"


def mask_value(point_type: str, value: str) -> str:
    """Render a data point for public display without exposing it in full."""
    if point_type in {"phone", "whatsapp"}:
        normalized = normalize_phone(value)
        if len(normalized) >= 8:
            return normalized[:4] + "****" + normalized[-4:]
        return "****" + normalized[-4:]
    if point_type == "email":
        return mask_email(value)
    if point_type == "bank_account":
        normalized = normalize_bank_account(value)
        return "****" + normalized[-4:] if len(normalized) >= 8 else "****"
    if point_type in {"name", "company"}:
        return " ".join(word[:1] + "***" for word in value.split(" "))
    return value[:4] + "****" if len(value) > 8 else "****"
