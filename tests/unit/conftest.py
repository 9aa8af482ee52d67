"""Shared fixtures for unit tests.

``FakeEngine`` is an in-memory stand-in for the analytical engine.  It
understands exactly the statement shapes the compiler emits well enough to
materialise output tables as copies of their input, records every
statement, and lets tests inject failures or run a hook before a
statement executes.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from blockflow.errors import EngineExecutionError
from blockflow.models.result import BlockResult, ColumnInfo

_CREATE_RE = re.compile(r"^CREATE OR REPLACE (?:TABLE|VIEW) (\w+) AS SELECT .*? FROM (\w+)")


class FakeEngine:
    """Recording implementation of the AnalyticalEngine protocol."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.statements: list[str] = []
        self.fail_on: dict[str, str] = {}
        self.before_execute: Callable[[str], None] | None = None
        self.closed = False

    def add_table(self, name: str, rows: list[dict[str, Any]]) -> None:
        self.tables[name] = rows

    async def execute(self, sql: str) -> list[dict[str, Any]]:
        self.statements.append(sql)
        if self.before_execute is not None:
            self.before_execute(sql)
        match = _CREATE_RE.match(sql)
        if match is None:
            raise EngineExecutionError(f"Unsupported statement: {sql}", sql)
        output_table, input_table = match.groups()
        if output_table in self.fail_on:
            raise EngineExecutionError(self.fail_on[output_table], sql)
        if input_table not in self.tables:
            raise EngineExecutionError(f"Table '{input_table}' does not exist", sql)
        self.tables[output_table] = list(self.tables[input_table])
        return []

    async def register_source_file(
        self,
        table_name: str,
        content: str | bytes,
        file_name: str | None = None,
    ) -> list[ColumnInfo]:
        text = content.decode() if isinstance(content, bytes) else content
        header, *lines = text.strip().splitlines()
        names = header.split(",")
        self.tables[table_name] = [dict(zip(names, line.split(","))) for line in lines]
        return [ColumnInfo.from_engine(name, "VARCHAR") for name in names]

    async def register_csv_path(self, table_name: str, path: Path) -> list[ColumnInfo]:
        return await self.register_source_file(table_name, Path(path).read_text(), Path(path).name)

    async def describe_table(self, table_name: str) -> list[tuple[str, str]]:
        if table_name not in self.tables:
            raise EngineExecutionError(f"Table '{table_name}' does not exist")
        rows = self.tables[table_name]
        return [(name, "VARCHAR") for name in (rows[0] if rows else {})]

    async def fetch_preview(self, table_name: str, limit: int) -> BlockResult:
        columns = [ColumnInfo.from_engine(n, t) for n, t in await self.describe_table(table_name)]
        rows = self.tables[table_name][:limit]
        return BlockResult(columns=columns, rows=rows, row_count=len(rows))

    async def row_count(self, table_name: str) -> int:
        return len(self.tables.get(table_name, []))

    async def table_exists(self, table_name: str) -> bool:
        return table_name in self.tables

    async def drop_table(self, table_name: str) -> None:
        self.tables.pop(table_name, None)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_engine() -> FakeEngine:
    engine = FakeEngine()
    engine.add_table(
        "sales",
        [
            {"region": "north", "amount": 150},
            {"region": "south", "amount": 80},
            {"region": "north", "amount": 300},
        ],
    )
    return engine
