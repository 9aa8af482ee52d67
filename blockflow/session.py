"""Pipeline session -- the caller-owned context for one pipeline.

A :class:`PipelineSession` bundles the graph, result store, staleness
tracker, orchestrator, run history and analytical engine of a single
pipeline.  Nothing is global: any number of sessions can coexist in one
process, each with its own engine namespace.

This is the surface a presentation layer drives::

    async with PipelineSession() as session:
        await session.load_csv("sales", csv_text)
        load = session.add_block("load", {"table_name": "sales"})
        flt = session.add_block("filter", {"column": "amount", "operator": ">", "value": 100})
        session.connect(load, flt)
        await session.execute(load)
        preview = session.get_result(flt)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from blockflow.config import Settings, load_settings
from blockflow.engine.base import AnalyticalEngine
from blockflow.engine.duckdb_engine import DuckDBEngine
from blockflow.executor.orchestrator import ExecutionOrchestrator
from blockflow.executor.result_store import ResultStore
from blockflow.executor.staleness import StalenessTracker
from blockflow.graph.pipeline_graph import PipelineGraph
from blockflow.models.block import Block, BlockConfig, BlockType
from blockflow.models.result import BlockResult, ColumnInfo
from blockflow.models.run import ExecutionReport, RunRecord

logger = logging.getLogger(__name__)


class PipelineSession:
    """One editable, executable block pipeline.

    Parameters
    ----------
    settings:
        Configuration; loaded from the environment when omitted.
    engine:
        Analytical engine to use.  A :class:`DuckDBEngine` on
        ``settings.db_path`` is created (and owned) when omitted.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        engine: AnalyticalEngine | None = None,
    ) -> None:
        self.settings = settings or load_settings()
        self._owns_engine = engine is None
        self.engine: AnalyticalEngine = engine or DuckDBEngine(self.settings.db_path)
        self.graph = PipelineGraph()
        self.results = ResultStore()
        self.run_history: list[RunRecord] = []
        self.staleness = StalenessTracker(self.graph, self.settings.staleness_mode)
        self.orchestrator = ExecutionOrchestrator(
            self.graph,
            self.engine,
            self.results,
            preview_limit=self.settings.preview_limit,
            auto_cascade=self.settings.auto_cascade,
            sql_guard_enabled=self.settings.sql_guard_enabled,
            history=self.run_history,
        )

    # -- Lifecycle -------------------------------------------------------------

    def close(self) -> None:
        """Close the engine if this session created it."""
        if self._owns_engine:
            self.engine.close()

    async def __aenter__(self) -> PipelineSession:
        return self

    async def __aexit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None, exc_tb: object) -> None:
        self.close()

    # -- Graph editing ---------------------------------------------------------

    def add_block(
        self,
        block_type: BlockType | str,
        config: BlockConfig | Mapping[str, Any] | None = None,
        *,
        block_id: str | None = None,
        label: str | None = None,
    ) -> str:
        return self.graph.add_block(
            block_type,
            dict(config) if isinstance(config, Mapping) else config,
            block_id=block_id,
            label=label,
        )

    def connect(self, source: str, target: str) -> None:
        self.graph.connect(source, target)

    def disconnect(self, target: str) -> str | None:
        return self.graph.disconnect(target)

    def remove_block(self, block_id: str) -> None:
        """Delete a block, its connections and its cached result.

        Tables the block materialised stay in the engine namespace until
        the session closes (or :meth:`drop_output` is awaited first).
        """
        self.graph.remove_block(block_id)
        self.results.drop(block_id)

    async def drop_output(self, block_id: str) -> None:
        """Drop the derived table or view a block materialised, if any.

        Source tables referenced by Load blocks are never dropped.
        """
        block = self.graph.get_block(block_id)
        if block.output_table and block.type != BlockType.LOAD:
            await self.engine.drop_table(block.output_table)
        block.output_table = None

    def duplicate_block(self, block_id: str) -> str:
        return self.graph.duplicate_block(block_id)

    def move_block(self, block_id: str, position: int) -> None:
        self.graph.move_block(block_id, position)

    def update_config(self, block_id: str, partial_config: Mapping[str, Any] | None = None, **fields: Any) -> list[str]:
        """Merge a config edit into a block and mark affected blocks stale.

        Fields may be passed as a mapping, as keyword arguments, or both.
        Returns the ids of the blocks marked stale.
        """
        edit = {**(partial_config or {}), **fields}
        return self.staleness.on_config_update(block_id, edit)

    # -- Data ------------------------------------------------------------------

    async def load_csv(self, table_name: str, content: str | bytes, file_name: str | None = None) -> list[ColumnInfo]:
        """Ingest CSV content as a source table usable by Load blocks."""
        return await self.engine.register_source_file(table_name, content, file_name)

    async def load_csv_file(self, table_name: str, path: Path) -> list[ColumnInfo]:
        return await self.engine.register_csv_path(table_name, Path(path))

    # -- Execution -------------------------------------------------------------

    async def execute(self, block_id: str, *, cascade: bool | None = None) -> ExecutionReport:
        return await self.orchestrator.execute(block_id, cascade=cascade)

    async def run_all(self) -> ExecutionReport:
        return await self.orchestrator.run_all()

    # -- Reads -----------------------------------------------------------------

    def get_block(self, block_id: str) -> Block:
        return self.graph.get_block(block_id)

    @property
    def blocks(self) -> list[Block]:
        return self.graph.blocks

    def get_result(self, block_id: str) -> BlockResult | None:
        return self.results.get(block_id)
