"""Embedded DuckDB engine.

Provides the zero-infrastructure execution backend for block pipelines.
One DuckDB database (in-memory by default) holds the session's table
namespace: ingested source tables plus the ``temp_<block_id>`` tables and
views materialised by executed blocks.

Each statement runs on a fresh cursor (open -> query -> close) under an
:class:`asyncio.Lock`, so two statements never interleave on the shared
connection even when several coroutines drive the same engine.
"""

from __future__ import annotations

import asyncio
import logging
import re
import shutil
import tempfile
import time
from pathlib import Path
from typing import Any

import duckdb

from blockflow.compiler.sql_compiler import preview_sql, quote_literal
from blockflow.errors import EngineExecutionError
from blockflow.models.result import BlockResult, ColumnInfo

logger = logging.getLogger(__name__)

# Source table names are interpolated bare into compiled SQL, so only plain
# identifiers are accepted at ingestion time.
_SAFE_TABLE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# DuckDB resolves identifiers case-insensitively; catalog lookups follow suit.
_DESCRIBE_SQL = (
    "SELECT column_name, data_type FROM information_schema.columns "
    "WHERE lower(table_name) = lower(?) ORDER BY ordinal_position"
)
_TABLE_TYPE_SQL = "SELECT table_type FROM information_schema.tables WHERE lower(table_name) = lower(?)"


def validate_table_name(name: str) -> str:
    """Validate that *name* is a safe bare table identifier.

    Raises
    ------
    ValueError
        If *name* contains characters outside the allowlist.
    """
    if not _SAFE_TABLE_NAME_RE.match(name):
        raise ValueError(f"Unsafe table name: {name!r}")
    return name


class DuckDBEngine:
    """Execute block statements against an embedded DuckDB database.

    Implements the :class:`~blockflow.engine.base.AnalyticalEngine`
    protocol.

    Parameters
    ----------
    db_path:
        ``":memory:"`` (default) for a session-scoped namespace, or a path
        to a database file whose parent directories are created on demand.
    """

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        self._db_path = str(db_path)
        self._connection: duckdb.DuckDBPyConnection | None = None
        self._lock = asyncio.Lock()
        self._staging_dir: Path | None = None

    # -- Connection management -----------------------------------------------

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        """Return (and lazily create) the DuckDB connection."""
        if self._connection is None:
            if self._db_path != ":memory:":
                Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
            logger.info("Opening DuckDB database at %s", self._db_path)
            self._connection = duckdb.connect(self._db_path)
        return self._connection

    def close(self) -> None:
        """Close the DuckDB connection and remove staged source files."""
        if self._connection is not None:
            try:
                self._connection.close()
            except duckdb.Error:
                logger.debug("Ignoring error while closing DuckDB connection")
            finally:
                self._connection = None
        if self._staging_dir is not None:
            shutil.rmtree(self._staging_dir, ignore_errors=True)
            self._staging_dir = None

    def __enter__(self) -> DuckDBEngine:
        return self

    def __exit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None, exc_tb: object) -> None:
        self.close()

    async def __aenter__(self) -> DuckDBEngine:
        return self

    async def __aexit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None, exc_tb: object) -> None:
        self.close()

    # -- Statement execution ---------------------------------------------------

    async def _run(self, sql: str, parameters: list[Any] | None = None) -> tuple[list[str], list[tuple[Any, ...]]]:
        """Run one statement on a fresh cursor and return (column names, rows)."""
        async with self._lock:
            cursor = self._get_connection().cursor()
            start_time = time.monotonic()
            try:
                if parameters:
                    cursor.execute(sql, parameters)
                else:
                    cursor.execute(sql)
                if cursor.description is None:
                    return [], []
                names = [column[0] for column in cursor.description]
                return names, cursor.fetchall()
            except duckdb.Error as exc:
                logger.error("Engine rejected statement: %s (%s)", exc, sql)
                raise EngineExecutionError(str(exc), sql=sql) from exc
            finally:
                cursor.close()
                logger.debug("Statement finished in %.3fs: %s", time.monotonic() - start_time, sql)

    async def execute(self, sql: str) -> list[dict[str, Any]]:
        names, rows = await self._run(sql)
        return [dict(zip(names, row)) for row in rows]

    # -- Ingestion -------------------------------------------------------------

    def _staging_path(self, table_name: str) -> Path:
        if self._staging_dir is None:
            self._staging_dir = Path(tempfile.mkdtemp(prefix="blockflow-"))
        return self._staging_dir / f"{table_name}.csv"

    async def register_source_file(
        self,
        table_name: str,
        content: str | bytes,
        file_name: str | None = None,
    ) -> list[ColumnInfo]:
        validate_table_name(table_name)
        path = self._staging_path(table_name)
        if isinstance(content, str):
            path.write_text(content, encoding="utf-8")
        else:
            path.write_bytes(content)
        logger.info(
            "Staged %s (%d bytes) for table %s",
            file_name or path.name,
            len(content),
            table_name,
        )
        return await self.register_csv_path(table_name, path)

    async def register_csv_path(self, table_name: str, path: Path) -> list[ColumnInfo]:
        validate_table_name(table_name)
        if not Path(path).is_file():
            raise EngineExecutionError(f"Source file not found: {path}")
        await self._run(
            f"CREATE OR REPLACE TABLE {table_name} AS "
            f"SELECT * FROM read_csv_auto({quote_literal(str(path))})"
        )
        columns = [ColumnInfo.from_engine(name, data_type) for name, data_type in await self.describe_table(table_name)]
        logger.info("Registered source table %s with %d column(s)", table_name, len(columns))
        return columns

    # -- Introspection ---------------------------------------------------------

    async def describe_table(self, table_name: str) -> list[tuple[str, str]]:
        _, rows = await self._run(_DESCRIBE_SQL, [table_name])
        if not rows:
            raise EngineExecutionError(f"Table '{table_name}' does not exist")
        return [(str(name), str(data_type)) for name, data_type in rows]

    async def fetch_preview(self, table_name: str, limit: int) -> BlockResult:
        columns = [ColumnInfo.from_engine(name, data_type) for name, data_type in await self.describe_table(table_name)]
        names, rows = await self._run(preview_sql(table_name, limit))
        records = [dict(zip(names, row)) for row in rows]
        return BlockResult(columns=columns, rows=records, row_count=len(records))

    async def row_count(self, table_name: str) -> int:
        _, rows = await self._run(f"SELECT COUNT(*) FROM {table_name}")
        return int(rows[0][0]) if rows else 0

    async def table_exists(self, table_name: str) -> bool:
        _, rows = await self._run(_TABLE_TYPE_SQL, [table_name])
        return bool(rows)

    async def drop_table(self, table_name: str) -> None:
        _, rows = await self._run(_TABLE_TYPE_SQL, [table_name])
        if not rows:
            return
        kind = "VIEW" if rows[0][0] == "VIEW" else "TABLE"
        await self._run(f"DROP {kind} IF EXISTS {table_name}")
        logger.info("Dropped %s %s", kind.lower(), table_name)
