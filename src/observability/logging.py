"""Structured logging and audit trail."""

from __future__ import annotations

from typing import Any, Optional

import structlog

from src.common.duckdb_backend import DuckDBStore

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.BoundLogger,
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
)

logger = structlog.get_logger()


class AuditLogger:
    """Append-only audit rows in the ``audit_logs`` table.

    Audit writes never fail the request that triggered them.
    """

    def __init__(self, store: DuckDBStore):
        self.store = store

    def log_search(self, input_types: list[str], match_count: int, result_status: str) -> None:
        self._write(
            "search",
            metadata={
                "input_count": len(input_types),
                "input_types": input_types,
                "match_count": match_count,
                "result_status": result_status,
            },
        )

    def log_submission(
        self,
        report_id: str,
        scam_type: str,
        data_point_count: int,
        has_evidence: bool,
        has_existing_reports: bool,
        max_report_count: int,
    ) -> None:
        self._write(
            "submit",
            entity_type="report",
            entity_id=report_id,
            metadata={
                "scam_type": scam_type,
                "data_point_count": data_point_count,
                "has_evidence": has_evidence,
                "has_existing_reports": has_existing_reports,
                "max_report_count": max_report_count,
            },
        )

    def log_dispute(self, disputed_info: str, found_matches: int) -> None:
        self._write(
            "dispute",
            metadata={"disputed_info": disputed_info[:200], "found_matches": found_matches},
        )

    def log_admin_action(self, action: str, report_id: str, details: dict[str, Any]) -> None:
        self._write(action, entity_type="report", entity_id=report_id, metadata=details)
        logger.info("admin_action", action=action, report_id=report_id)

    def _write(
        self,
        action: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        try:
            self.store.insert(
                "audit_logs",
                {
                    "action": action,
                    "entity_type": entity_type,
                    "entity_id": entity_id,
                    "metadata": metadata or {},
                },
            )
        except Exception as exc:
            logger.error("audit_write_failed", action=action, error=str(exc))
