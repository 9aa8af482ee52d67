"""Analytical engine contract and the embedded DuckDB implementation."""

from __future__ import annotations

from blockflow.engine.base import AnalyticalEngine
from blockflow.engine.duckdb_engine import DuckDBEngine, validate_table_name

__all__ = [
    "AnalyticalEngine",
    "DuckDBEngine",
    "validate_table_name",
]
