"""Blockflow -- typed block pipelines compiled to SQL and run on DuckDB."""

__version__ = "0.1.0"
