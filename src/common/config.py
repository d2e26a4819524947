"""Environment-driven settings for ScamGuard."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional


def _load_local_env() -> None:
    """Load lightweight KEY=VALUE pairs from .env.local/.env if present."""
    for env_name in (".env.local", ".env"):
        path = Path(env_name)
        if not path.exists():
            continue
        for raw_line in path.read_text().splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip().strip('"').strip("'")
            if key and key not in os.environ:
                os.environ[key] = value


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value or default


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    env: str = "dev"
    db_path: str = ":memory:"

    ai_api_key: Optional[str] = None
    ai_base_url: str = "https://dashscope-intl.aliyuncs.com/compatible-mode/v1"
    ai_extraction_model: str = "qwen-plus"
    ai_analysis_model: str = "qwen-turbo"
    ai_timeout_seconds: int = 30

    abuse_policy_file: Optional[str] = None
    abuse_ban_seconds: int = 24 * 60 * 60
    abuse_sweep_interval_seconds: int = 300
    abuse_retention_seconds: int = 300

    admin_secret_token: Optional[str] = None
    admin_emails: tuple[str, ...] = field(default_factory=tuple)

    evidence_bucket: Optional[str] = None
    evidence_dir: str = "data/evidence"
    aws_region: str = "ap-southeast-1"

    @property
    def is_prod(self) -> bool:
        return self.env == "prod"

    @property
    def ai_enabled(self) -> bool:
        return bool(self.ai_api_key)


def load_settings() -> Settings:
    _load_local_env()
    admin_emails = tuple(
        email.strip().lower()
        for email in (_env("ADMIN_EMAILS", "") or "").split(",")
        if email.strip()
    )
    return Settings(
        env=(_env("SCAMGUARD_ENV", "dev") or "dev").lower(),
        db_path=_env("SCAMGUARD_DB_PATH", ":memory:") or ":memory:",
        ai_api_key=_env("DASHSCOPE_API_KEY"),
        ai_base_url=_env("AI_BASE_URL", Settings.ai_base_url) or Settings.ai_base_url,
        ai_extraction_model=_env("AI_EXTRACTION_MODEL", Settings.ai_extraction_model)
        or Settings.ai_extraction_model,
        ai_analysis_model=_env("AI_ANALYSIS_MODEL", Settings.ai_analysis_model)
        or Settings.ai_analysis_model,
        ai_timeout_seconds=_env_int("AI_TIMEOUT_SECONDS", Settings.ai_timeout_seconds),
        abuse_policy_file=_env("ABUSE_POLICY_FILE"),
        abuse_ban_seconds=_env_int("ABUSE_BAN_SECONDS", Settings.abuse_ban_seconds),
        abuse_sweep_interval_seconds=_env_int(
            "ABUSE_SWEEP_INTERVAL_SECONDS", Settings.abuse_sweep_interval_seconds
        ),
        abuse_retention_seconds=_env_int("ABUSE_RETENTION_SECONDS", Settings.abuse_retention_seconds),
        admin_secret_token=_env("ADMIN_SECRET_TOKEN"),
        admin_emails=admin_emails,
        evidence_bucket=_env("EVIDENCE_BUCKET"),
        evidence_dir=_env("EVIDENCE_DIR", Settings.evidence_dir) or Settings.evidence_dir,
        aws_region=_env("AWS_REGION", Settings.aws_region) or Settings.aws_region,
    )


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return load_settings()
