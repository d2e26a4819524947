"""Common utilities and backend adapters."""

from src.common.duckdb_backend import DuckDBStore, DuckDBUnavailableError

__all__ = ["DuckDBStore", "DuckDBUnavailableError"]
