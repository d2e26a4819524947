"""Evidence uploads: S3 when a bucket is configured, local directory otherwise."""

from __future__ import annotations

import secrets
import time
from pathlib import Path
from typing import Optional

import boto3
import structlog

from src.common.config import Settings

logger = structlog.get_logger()

MAX_EVIDENCE_BYTES = 10 * 1024 * 1024


class EvidenceStore:
    def __init__(self, settings: Settings):
        self.bucket = settings.evidence_bucket
        self.local_dir = Path(settings.evidence_dir)
        self.s3 = boto3.client("s3", region_name=settings.aws_region) if self.bucket else None
        self.region = settings.aws_region

    @staticmethod
    def object_name(filename: str) -> str:
        suffix = Path(filename).suffix.lower().lstrip(".")
        name = f"{int(time.time() * 1000)}-{secrets.token_hex(4)}"
        return f"{name}.{suffix}" if suffix else name

    def save(self, filename: str, content: bytes, content_type: Optional[str] = None) -> Optional[str]:
        """Store one upload and return its URL, or ``None`` when storage failed."""
        if not content:
            return None
        if len(content) > MAX_EVIDENCE_BYTES:
            logger.warning("evidence_rejected", reason="too_large", size=len(content))
            return None

        key = self.object_name(filename)
        try:
            if self.s3:
                self.s3.put_object(
                    Bucket=self.bucket,
                    Key=f"evidence/{key}",
                    Body=content,
                    ContentType=content_type or "application/octet-stream",
                    CacheControl="max-age=3600",
                )
                return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/evidence/{key}"

            self.local_dir.mkdir(parents=True, exist_ok=True)
            path = self.local_dir / key
            path.write_bytes(content)
            return path.resolve().as_uri()
        except Exception as exc:
            logger.error("evidence_upload_failed", error=str(exc), backend="s3" if self.s3 else "local")
            return None
