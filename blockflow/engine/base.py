"""Abstract interface for the analytical engine the core compiles SQL for.

The orchestrator only talks to the engine through :class:`AnalyticalEngine`,
so tests can substitute a recording fake and a different embedded engine
can be slotted in without touching the execution core.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol

from blockflow.models.result import BlockResult, ColumnInfo


class AnalyticalEngine(Protocol):
    """Structural interface for the embedded analytical engine.

    Implementations are **not** required to subclass this protocol; they only
    need to expose methods with matching signatures (duck typing).  Every
    failure is reported as :class:`~blockflow.errors.EngineExecutionError`.
    """

    async def execute(self, sql: str) -> list[dict[str, Any]]:
        """Run one statement and return its rows as dicts (empty for DDL)."""
        ...

    async def register_source_file(
        self,
        table_name: str,
        content: str | bytes,
        file_name: str | None = None,
    ) -> list[ColumnInfo]:
        """Ingest CSV *content* as table *table_name* and return its schema.

        Parameters
        ----------
        table_name:
            Name of the source table to create or replace.
        content:
            Raw CSV text or bytes.
        file_name:
            Original file name, used only for logging and diagnostics.
        """
        ...

    async def register_csv_path(self, table_name: str, path: Path) -> list[ColumnInfo]:
        """Ingest the CSV file at *path* as table *table_name*."""
        ...

    async def describe_table(self, table_name: str) -> list[tuple[str, str]]:
        """Return ``(column name, engine type)`` pairs for a table or view.

        Raises ``EngineExecutionError`` when the table does not exist.
        """
        ...

    async def fetch_preview(self, table_name: str, limit: int) -> BlockResult:
        """Return the schema and at most *limit* rows of *table_name*."""
        ...

    async def row_count(self, table_name: str) -> int:
        ...

    async def table_exists(self, table_name: str) -> bool:
        ...

    async def drop_table(self, table_name: str) -> None:
        """Drop a table or view if it exists."""
        ...

    def close(self) -> None:
        ...
