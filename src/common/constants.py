"""Domain vocabularies shared by the API, services and AI collaborators."""

from __future__ import annotations

SCAM_TYPES: dict[str, str] = {
    "collectibles_scam": "Collectibles Scam (TCG/Figurines/One Piece/Pokemon)",
    "precious_metals_scam": "Gold/Silver/Precious Metals Scam",
    "ecommerce_scam": "E-commerce Scam",
    "macau_scam": "Macau Scam (Phone Impersonation)",
    "love_scam": "Love/Romance Scam",
    "investment_scam": "Investment Scam (Forex/Crypto)",
    "parcel_scam": "Parcel/Delivery Scam",
    "job_scam": "Job Scam",
    "loan_scam": "Loan Scam",
    "mule_recruitment": "Money Mule Recruitment",
    "phishing": "Phishing/Fake Website",
    "other": "Other",
}

DATA_POINT_TYPES: dict[str, str] = {
    "phone": "Phone Number",
    "email": "Email Address",
    "bank_account": "Bank Account",
    "whatsapp": "WhatsApp Number",
    "telegram": "Telegram Username",
    "ewallet": "E-Wallet Account",
    "social_media": "Social Media Profile",
    "website": "Website/URL",
    "crypto_wallet": "Crypto Wallet",
    "name": "Name/Alias",
    "company": "Company Name",
}

PLATFORMS = [
    "WhatsApp",
    "Telegram",
    "Facebook",
    "Instagram",
    "TikTok",
    "Shopee",
    "Lazada",
    "Carousell",
    "Mudah.my",
    "Phone Call",
    "SMS",
    "Email",
    "Website",
    "Other",
]

# Platforms the keyword fallback looks for, in priority order.
FALLBACK_PLATFORMS = ["WhatsApp", "Telegram", "Facebook", "Instagram", "Carousell", "Shopee", "Lazada"]

RESULT_STATUSES = ("suspicious", "no_known_info", "clear")

REPORT_STATUS_ACTIVE = "active"
REPORT_STATUS_PENDING = "pending"
REPORT_STATUS_UNDER_REVIEW = "under_review"

DEFAULT_CURRENCY = "MYR"
MALAYSIA_COUNTRY_CODE = "60"
