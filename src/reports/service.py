"""Report search, submission, dispute and statistics over the persistence backend."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timezone
from typing import Any, Optional

import structlog

from src.agents.search_analyzer import SearchRiskAnalyzer
from src.common.constants import (
    DATA_POINT_TYPES,
    DEFAULT_CURRENCY,
    REPORT_STATUS_ACTIVE,
    REPORT_STATUS_PENDING,
    REPORT_STATUS_UNDER_REVIEW,
    SCAM_TYPES,
)
from src.common.duckdb_backend import DuckDBStore
from src.governance.pii_masking import normalize_data_point, validate_data_point
from src.observability.logging import AuditLogger
from src.reports.evidence import EvidenceStore

logger = structlog.get_logger()

FUZZY_TYPES = {"name", "company"}
MAX_DISPUTE_MATCHES = 5


@dataclass
class EvidenceUpload:
    filename: str
    content: bytes
    content_type: Optional[str] = None


@dataclass
class Submission:
    scam_type: str
    data_points: list[dict[str, str]]
    platform: Optional[str] = None
    description: Optional[str] = None
    amount_lost: Optional[float] = None
    evidence: Optional[EvidenceUpload] = None


@dataclass
class DuplicateTracking:
    has_existing_reports: bool = False
    max_existing_report_count: int = 0
    data_points: list[dict[str, Any]] = field(default_factory=list)

    @property
    def confidence_score(self) -> int:
        return min(100, 50 + self.max_existing_report_count * 10)

    @property
    def heat_level(self) -> str:
        count = self.max_existing_report_count
        if count >= 10:
            return "CRITICAL"
        if count >= 5:
            return "HIGH"
        if count >= 3:
            return "MEDIUM"
        return "LOW"


def _like_pattern(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _iso(value: Any) -> Any:
    if hasattr(value, "isoformat"):
        if getattr(value, "tzinfo", None) is None and hasattr(value, "replace"):
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    return value


def empty_stats() -> dict[str, Any]:
    return {"totalReports": 0, "verifiedReports": 0, "totalSearches": 0, "totalAmountLost": 0}


class ReportService:
    def __init__(
        self,
        store: DuckDBStore,
        audit: AuditLogger,
        analyzer: SearchRiskAnalyzer,
        evidence: EvidenceStore,
    ):
        self.store = store
        self.audit = audit
        self.analyzer = analyzer
        self.evidence = evidence

    def _find_matches(self, point_type: str, value: str, normalized: str) -> list[dict[str, Any]]:
        sql = """
        SELECT
            dp.type,
            dp.value,
            dp.report_id,
            r.scam_type,
            r.platform,
            r.status,
            r.is_verified,
            r.is_disputed,
            r.created_at
        FROM data_points dp
        JOIN reports r ON r.id = dp.report_id
        WHERE dp.type = ?
        """
        if point_type in FUZZY_TYPES:
            sql += " AND (dp.normalized_value ILIKE ? ESCAPE '\\' OR dp.value ILIKE ? ESCAPE '\\')"
            params = [point_type, _like_pattern(normalized), _like_pattern(value.strip())]
        else:
            sql += " AND dp.normalized_value = ?"
            params = [point_type, normalized]
        return self.store.query_records(sql, params)

    def match_reports(self, inputs: list[dict[str, str]]) -> list[dict[str, Any]]:
        """Active reports containing any searched data point, matched points grouped per report."""
        reports: dict[str, dict[str, Any]] = {}
        for item in inputs:
            normalized = normalize_data_point(item["type"], item["value"])
            for row in self._find_matches(item["type"], item["value"], normalized):
                if row["status"] != REPORT_STATUS_ACTIVE:
                    continue
                report = reports.setdefault(
                    row["report_id"],
                    {
                        "id": row["report_id"],
                        "scam_type": row["scam_type"],
                        "platform": row["platform"],
                        "is_verified": bool(row["is_verified"]),
                        "is_disputed": bool(row["is_disputed"]),
                        "created_at": row["created_at"],
                        "matched_points": [],
                    },
                )
                report["matched_points"].append({"type": row["type"], "value": row["value"]})
        return list(reports.values())

    async def search(self, inputs: list[dict[str, str]]) -> dict[str, Any]:
        if not inputs:
            raise ValueError("No search inputs provided")

        matched = self.match_reports(inputs)
        analysis = await self.analyzer.analyze(inputs, matched)

        date_range = None
        if matched:
            dates = [report["created_at"] for report in matched]
            date_range = {"earliest": _iso(min(dates)), "latest": _iso(max(dates))}

        self.audit.log_search(
            input_types=[item["type"] for item in inputs],
            match_count=len(matched),
            result_status=analysis.status,
        )
        return {
            "analysis": analysis.model_dump(),
            "reportCount": len(matched),
            "dateRange": date_range,
            "verifiedCount": sum(1 for report in matched if report["is_verified"]),
            "disputedCount": sum(1 for report in matched if report["is_disputed"]),
        }

    @staticmethod
    def validate_submission(submission: Submission) -> None:
        if not submission.scam_type or submission.scam_type not in SCAM_TYPES:
            raise ValueError("Invalid scam type")
        if not submission.data_points:
            raise ValueError("At least one data point is required")
        for point in submission.data_points:
            point_type = point.get("type")
            if point_type not in DATA_POINT_TYPES:
                raise ValueError(f"Invalid data point type: {point_type}")
            result = validate_data_point(point_type, point.get("value") or "")
            if not result.valid:
                raise ValueError(result.error)

    def _track_duplicates(self, report_id: str, data_points: list[dict[str, str]]) -> DuplicateTracking:
        tracking = DuplicateTracking()
        with self.store.batch():
            for point in data_points:
                normalized = normalize_data_point(point["type"], point["value"])
                existing = self.store.select(
                    "data_points",
                    {"type": point["type"], "normalized_value": normalized},
                    limit=1,
                )
                current = int(existing[0]["report_count"] or 0) if existing else 0
                new_count = current + 1

                self.store.insert(
                    "data_points",
                    {
                        "report_id": report_id,
                        "type": point["type"],
                        "value": point["value"],
                        "normalized_value": normalized,
                        "report_count": new_count,
                    },
                )
                if existing:
                    tracking.has_existing_reports = True
                    tracking.max_existing_report_count = max(tracking.max_existing_report_count, current)
                    self.store.update(
                        "data_points",
                        {"report_count": new_count},
                        {"type": point["type"], "normalized_value": normalized},
                    )
                tracking.data_points.append(
                    {"value": point["value"], "reportCount": new_count, "isNew": not existing}
                )
        return tracking

    def submit(self, submission: Submission) -> dict[str, Any]:
        self.validate_submission(submission)

        evidence_url = None
        if submission.evidence is not None:
            evidence_url = self.evidence.save(
                submission.evidence.filename,
                submission.evidence.content,
                submission.evidence.content_type,
            )
        is_verified = evidence_url is not None

        report = self.store.insert(
            "reports",
            {
                "scam_type": submission.scam_type,
                "platform": submission.platform,
                "description": submission.description,
                "evidence_url": evidence_url,
                "amount_lost": submission.amount_lost,
                "currency": DEFAULT_CURRENCY if submission.amount_lost else None,
                "is_verified": is_verified,
                "is_disputed": False,
                "status": REPORT_STATUS_ACTIVE,
            },
        )
        tracking = self._track_duplicates(report["id"], submission.data_points)

        self.audit.log_submission(
            report_id=report["id"],
            scam_type=submission.scam_type,
            data_point_count=len(submission.data_points),
            has_evidence=is_verified,
            has_existing_reports=tracking.has_existing_reports,
            max_report_count=tracking.max_existing_report_count + 1,
        )
        logger.info(
            "report_submitted",
            report_id=report["id"],
            scam_type=submission.scam_type,
            heat_level=tracking.heat_level,
        )

        if tracking.has_existing_reports:
            message = (
                f"This scammer has been reported {tracking.max_existing_report_count} time(s) before. "
                "Your report adds to the evidence."
            )
        else:
            message = "Thank you for being the first to report this scammer."
        return {
            "success": True,
            "reportId": report["id"],
            "isVerified": is_verified,
            "duplicateInfo": {
                "hasExistingReports": tracking.has_existing_reports,
                "totalPreviousReports": tracking.max_existing_report_count,
                "confidenceScore": tracking.confidence_score,
                "heatLevel": tracking.heat_level,
                "message": message,
                "dataPoints": tracking.data_points,
            },
        }

    def dispute(self, disputed_info: str, reason: str, contact_email: str) -> dict[str, Any]:
        if not disputed_info or not disputed_info.strip():
            raise ValueError("Disputed information is required")
        if not reason or not reason.strip():
            raise ValueError("Reason is required")
        if not contact_email or "@" not in contact_email:
            raise ValueError("Valid email is required")

        needle = disputed_info.lower().replace(" ", "").replace("-", "")
        matches = self.store.query_records(
            "SELECT report_id FROM data_points WHERE normalized_value ILIKE ? ESCAPE '\\' LIMIT ?",
            [_like_pattern(needle), MAX_DISPUTE_MATCHES],
        )
        report_ids = list(dict.fromkeys(row["report_id"] for row in matches))

        with self.store.batch():
            if report_ids:
                for report_id in report_ids:
                    self._open_dispute(report_id, reason, contact_email)
                    self.store.update("reports", {"is_disputed": True}, {"id": report_id})
            else:
                placeholder = self.store.insert(
                    "reports",
                    {
                        "scam_type": "other",
                        "description": f"Dispute filed for: {disputed_info}",
                        "status": REPORT_STATUS_UNDER_REVIEW,
                        "is_verified": False,
                        "is_disputed": True,
                    },
                )
                self._open_dispute(placeholder["id"], reason, contact_email)

        self.audit.log_dispute(disputed_info, found_matches=len(matches))
        return {"success": True, "message": "Dispute submitted successfully"}

    def _open_dispute(self, report_id: str, reason: str, contact_email: str) -> None:
        self.store.insert(
            "disputes",
            {
                "report_id": report_id,
                "reason": reason.strip(),
                "contact_email": contact_email.strip(),
                "status": "pending",
            },
        )

    def stats(self) -> dict[str, Any]:
        try:
            amount = self.store.scalar(
                "SELECT COALESCE(SUM(amount_lost), 0) FROM reports WHERE status = ?",
                [REPORT_STATUS_ACTIVE],
            )
            return {
                "totalReports": self.store.count("reports"),
                "verifiedReports": self.store.count("reports", {"is_verified": True}),
                "totalSearches": self.store.count("audit_logs", {"action": "search"}),
                "totalAmountLost": float(amount or 0),
            }
        except Exception as exc:
            logger.warning("stats_unavailable", error=str(exc))
            return empty_stats()

    def list_reports(self) -> list[dict[str, Any]]:
        reports = self.store.select("reports", order_by="created_at", descending=True)
        if not reports:
            return []
        points = self.store.select("data_points", {"report_id": [report["id"] for report in reports]})
        by_report: dict[str, list[dict[str, Any]]] = {}
        for point in points:
            by_report.setdefault(point["report_id"], []).append(
                {"id": point["id"], "type": point["type"], "value": point["value"]}
            )
        return [
            {
                "id": report["id"],
                "scam_type": report["scam_type"],
                "platform": report["platform"],
                "description": report["description"],
                "status": report["status"],
                "is_verified": bool(report["is_verified"]),
                "is_disputed": bool(report["is_disputed"]),
                "created_at": _iso(report["created_at"]),
                "evidence_url": report["evidence_url"],
                "amount_lost": report["amount_lost"],
                "currency": report["currency"],
                "data_points": by_report.get(report["id"], []),
            }
            for report in reports
        ]

    def set_verified(self, report_id: str, verified: bool) -> bool:
        updated = self.store.update(
            "reports",
            {
                "is_verified": verified,
                "status": REPORT_STATUS_ACTIVE if verified else REPORT_STATUS_PENDING,
            },
            {"id": report_id},
        )
        if not updated:
            return False
        self.audit.log_admin_action(
            "admin_verify" if verified else "admin_unverify", report_id, {"verified": verified}
        )
        return True

    def delete_report(self, report_id: str) -> bool:
        with self.store.batch():
            self.store.delete("data_points", {"report_id": report_id})
            self.store.delete("disputes", {"report_id": report_id})
            deleted = self.store.delete("reports", {"id": report_id})
        if not deleted:
            return False
        self.audit.log_admin_action("admin_delete", report_id, {"deleted": True})
        return True

    def admin_stats(self) -> dict[str, Any]:
        return {
            "totalReports": self.store.count("reports"),
            "verifiedReports": self.store.count("reports", {"is_verified": True}),
            "totalSearches": self.store.count("audit_logs", {"action": "search"}),
            "pendingModeration": self.store.count("disputes", {"status": "pending"}),
        }
