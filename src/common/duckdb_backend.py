"""DuckDB persistence backend for reports, data points, disputes and audit logs."""

from __future__ import annotations

import json
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional

import duckdb
import structlog

logger = structlog.get_logger()


class DuckDBUnavailableError(RuntimeError):
    """Raised when the DuckDB database cannot be opened."""


SCHEMA: dict[str, dict[str, str]] = {
    "reports": {
        "id": "VARCHAR PRIMARY KEY",
        "scam_type": "VARCHAR NOT NULL",
        "platform": "VARCHAR",
        "description": "VARCHAR",
        "evidence_url": "VARCHAR",
        "amount_lost": "DOUBLE",
        "currency": "VARCHAR",
        "is_verified": "BOOLEAN DEFAULT FALSE",
        "is_disputed": "BOOLEAN DEFAULT FALSE",
        "status": "VARCHAR DEFAULT 'active'",
        "created_at": "TIMESTAMP",
    },
    "data_points": {
        "id": "VARCHAR PRIMARY KEY",
        "report_id": "VARCHAR NOT NULL",
        "type": "VARCHAR NOT NULL",
        "value": "VARCHAR NOT NULL",
        "normalized_value": "VARCHAR NOT NULL",
        "report_count": "INTEGER DEFAULT 1",
        "created_at": "TIMESTAMP",
    },
    "disputes": {
        "id": "VARCHAR PRIMARY KEY",
        "report_id": "VARCHAR NOT NULL",
        "reason": "VARCHAR NOT NULL",
        "contact_email": "VARCHAR NOT NULL",
        "status": "VARCHAR DEFAULT 'pending'",
        "created_at": "TIMESTAMP",
    },
    "audit_logs": {
        "id": "VARCHAR PRIMARY KEY",
        "action": "VARCHAR NOT NULL",
        "entity_type": "VARCHAR",
        "entity_id": "VARCHAR",
        "metadata": "VARCHAR",
        "created_at": "TIMESTAMP",
    },
}

_JSON_COLUMNS = {("audit_logs", "metadata")}


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the TIMESTAMP column type."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class DuckDBStore:
    """Thread-safe access to a single DuckDB connection.

    Table and column names are checked against ``SCHEMA`` so callers can pass
    plain dicts for filters and values; every value is bound as a parameter.
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._lock = threading.RLock()
        self._conn = self._connect()
        self.ensure_schema()

    def _connect(self):
        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            return duckdb.connect(self.db_path)
        except (duckdb.Error, OSError) as exc:
            raise DuckDBUnavailableError(f"Unable to open DuckDB database at {self.db_path}") from exc

    def ensure_schema(self) -> None:
        with self._lock:
            for table, columns in SCHEMA.items():
                ddl = ", ".join(f"{name} {column_type}" for name, column_type in columns.items())
                self._conn.execute(f"CREATE TABLE IF NOT EXISTS {table} ({ddl})")

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @contextmanager
    def batch(self) -> Iterator[DuckDBStore]:
        """Hold the connection lock across several calls (read-then-write sequences)."""
        with self._lock:
            yield self

    @staticmethod
    def _columns(table: str, names: Iterable[str]) -> list[str]:
        if table not in SCHEMA:
            raise ValueError(f"Unknown table: {table}")
        columns = list(names)
        unknown = [name for name in columns if name not in SCHEMA[table]]
        if unknown:
            raise ValueError(f"Unknown column(s) for {table}: {', '.join(unknown)}")
        return columns

    @staticmethod
    def _encode(table: str, column: str, value: Any) -> Any:
        if (table, column) in _JSON_COLUMNS and value is not None and not isinstance(value, str):
            return json.dumps(value, default=str)
        return value

    @staticmethod
    def _decode(table: str, record: dict[str, Any]) -> dict[str, Any]:
        for t, column in _JSON_COLUMNS:
            if t == table and isinstance(record.get(column), str):
                try:
                    record[column] = json.loads(record[column])
                except ValueError:
                    pass
        return record

    def _where(self, table: str, filters: Optional[dict[str, Any]]) -> tuple[str, list[Any]]:
        if not filters:
            return "", []
        columns = self._columns(table, filters.keys())
        clauses = []
        params: list[Any] = []
        for column in columns:
            value = filters[column]
            if value is None:
                clauses.append(f"{column} IS NULL")
            elif isinstance(value, (list, tuple, set)):
                values = list(value)
                if not values:
                    clauses.append("FALSE")
                    continue
                clauses.append(f"{column} IN ({', '.join('?' for _ in values)})")
                params.extend(values)
            else:
                clauses.append(f"{column} = ?")
                params.append(value)
        return " WHERE " + " AND ".join(clauses), params

    def query_records(self, sql: str, params: list[Any] | None = None) -> list[dict[str, Any]]:
        with self._lock:
            cursor = self._conn.execute(sql, params or [])
            names = [column[0] for column in cursor.description or []]
            rows = cursor.fetchall()
        return [dict(zip(names, row)) for row in rows]

    def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        row = {"id": str(uuid.uuid4()), "created_at": utcnow(), **record}
        columns = self._columns(table, row.keys())
        sql = (
            f"INSERT INTO {table} ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)})"
        )
        with self._lock:
            self._conn.execute(sql, [self._encode(table, c, row[c]) for c in columns])
        return row

    def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        where, params = self._where(table, filters)
        sql = f"SELECT * FROM {table}{where}"
        if order_by:
            self._columns(table, [order_by])
            sql += f" ORDER BY {order_by} {'DESC' if descending else 'ASC'}"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
        return [self._decode(table, record) for record in self.query_records(sql, params)]

    def get(self, table: str, record_id: str) -> Optional[dict[str, Any]]:
        rows = self.select(table, {"id": record_id}, limit=1)
        return rows[0] if rows else None

    def count(self, table: str, filters: Optional[dict[str, Any]] = None) -> int:
        where, params = self._where(table, filters)
        with self._lock:
            row = self._conn.execute(f"SELECT COUNT(*) FROM {table}{where}", params).fetchone()
        return int(row[0]) if row else 0

    def update(self, table: str, values: dict[str, Any], filters: dict[str, Any]) -> int:
        if not filters:
            raise ValueError("update requires at least one filter")
        columns = self._columns(table, values.keys())
        where, params = self._where(table, filters)
        assignments = ", ".join(f"{column} = ?" for column in columns)
        with self._lock:
            affected = self.count(table, filters)
            self._conn.execute(
                f"UPDATE {table} SET {assignments}{where}",
                [self._encode(table, c, values[c]) for c in columns] + params,
            )
        return affected

    def delete(self, table: str, filters: dict[str, Any]) -> int:
        if not filters:
            raise ValueError("delete requires at least one filter")
        where, params = self._where(table, filters)
        with self._lock:
            affected = self.count(table, filters)
            self._conn.execute(f"DELETE FROM {table}{where}", params)
        return affected

    def scalar(self, sql: str, params: list[Any] | None = None) -> Any:
        with self._lock:
            row = self._conn.execute(sql, params or []).fetchone()
        return row[0] if row else None
