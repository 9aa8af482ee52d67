"""Execution orchestrator -- validates, compiles, runs, caches and cascades.

The orchestrator is the only component that talks to the analytical
engine.  Running a block walks it through ``idle -> running -> success |
error``:

1. validate the configuration (failure: ``error``, nothing else happens);
2. resolve the input table from the upstream block (Load blocks are
   sources and use their registered table directly);
3. compile the statement for ``temp_<block_id>`` and execute it;
4. fetch schema and a bounded preview into the result store.

Every failure is attributed to the block that caused it and recorded on
that block's ``status`` / ``error`` fields; only an unknown block id is
raised to the caller.  On success the block's descendants are re-executed
one at a time in dependency order, each at most once per cascade, and a
descendant is skipped when its own input failed in the same cascade so
nothing below a failure changes state.
"""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime
from uuid import uuid4

from blockflow.compiler.sql_compiler import DEFAULT_PREVIEW_LIMIT, compile_block
from blockflow.compiler.sql_guard import UnsafeSQLError, assert_statement_safe
from blockflow.engine.base import AnalyticalEngine
from blockflow.errors import EngineExecutionError, MissingInputError
from blockflow.executor.result_store import ResultStore
from blockflow.graph.pipeline_graph import PipelineGraph
from blockflow.models.block import Block, BlockStatus, LoadConfig, output_table_name
from blockflow.models.run import ExecutionReport, RunRecord, RunStatus
from blockflow.validation.validator import check_block

logger = logging.getLogger(__name__)

RUN_ALL_TRIGGER = "all"


class ExecutionOrchestrator:
    """Run blocks of one pipeline against an analytical engine.

    Parameters
    ----------
    graph:
        Blocks and connections of the pipeline.
    engine:
        Engine that executes compiled statements.
    results:
        Store receiving the schema and preview of each successful run.
    preview_limit:
        Maximum number of preview rows cached per block.
    auto_cascade:
        Default for the ``cascade`` argument of :meth:`execute`.
    sql_guard_enabled:
        Whether compiled statements pass through the statement guard.
    history:
        Optional list that receives every :class:`RunRecord` produced.
    """

    def __init__(
        self,
        graph: PipelineGraph,
        engine: AnalyticalEngine,
        results: ResultStore,
        *,
        preview_limit: int = DEFAULT_PREVIEW_LIMIT,
        auto_cascade: bool = True,
        sql_guard_enabled: bool = True,
        history: list[RunRecord] | None = None,
    ) -> None:
        self._graph = graph
        self._engine = engine
        self._results = results
        self._preview_limit = preview_limit
        self._auto_cascade = auto_cascade
        self._sql_guard_enabled = sql_guard_enabled
        self._history = history if history is not None else []

    @property
    def history(self) -> list[RunRecord]:
        return self._history

    # -- Public API ------------------------------------------------------------

    async def execute(self, block_id: str, *, cascade: bool | None = None) -> ExecutionReport:
        """Execute *block_id* and, on success, everything downstream of it.

        Parameters
        ----------
        block_id:
            Block to run.
        cascade:
            Re-execute descendants after a success.  Defaults to the
            orchestrator's ``auto_cascade`` setting.

        Returns
        -------
        ExecutionReport
            One run record per executed block, in execution order.

        Raises
        ------
        BlockNotFoundError
            If *block_id* does not exist.
        """
        block = self._graph.get_block(block_id)
        if cascade is None:
            cascade = self._auto_cascade

        report = ExecutionReport(triggered_by=block_id)
        record = await self._run_block(block, triggered_by=block_id)
        report.runs.append(record)

        if record.status == RunStatus.SUCCESS and cascade:
            await self._cascade(block_id, report, visited={block_id})
        return report

    async def run_all(self) -> ExecutionReport:
        """Execute every Load block in position order, cascading from each.

        A block reached from an earlier source is not executed again.
        """
        report = ExecutionReport(triggered_by=RUN_ALL_TRIGGER)
        visited: set[str] = set()
        for source_id in self._graph.source_blocks():
            if source_id in visited:
                continue
            visited.add(source_id)
            block = self._graph.find_block(source_id)
            if block is None:
                continue
            record = await self._run_block(block, triggered_by=source_id)
            report.runs.append(record)
            if record.status == RunStatus.SUCCESS:
                await self._cascade(source_id, report, visited=visited)

        logger.info(
            "Run-all finished: %d block(s) executed, %d failed",
            len(report.runs),
            len(report.failed_block_ids),
        )
        return report

    # -- Cascade ---------------------------------------------------------------

    async def _cascade(self, root_id: str, report: ExecutionReport, visited: set[str]) -> None:
        """Re-execute the descendants of *root_id* in dependency order.

        *visited* is shared for the whole cascade so a block reachable along
        several paths runs once.  The descendant list is fixed up front;
        blocks removed while the cascade is awaiting the engine are skipped.
        """
        succeeded: set[str] = {root_id}
        for block_id in self._graph.downstream_of(root_id):
            if block_id in visited:
                continue
            visited.add(block_id)

            block = self._graph.find_block(block_id)
            if block is None:
                logger.info("Skipping %s: removed during cascade from %s", block_id, root_id)
                continue

            upstream_id = self._graph.upstream_of(block_id)
            if upstream_id not in succeeded:
                logger.info(
                    "Skipping %s: input %s did not succeed in cascade from %s",
                    block_id,
                    upstream_id,
                    root_id,
                )
                continue

            record = await self._run_block(block, triggered_by=root_id)
            report.runs.append(record)
            if record.status == RunStatus.SUCCESS:
                succeeded.add(block_id)

    # -- Single block ----------------------------------------------------------

    def _resolve_input_table(self, block: Block) -> str:
        upstream_id = self._graph.upstream_of(block.id)
        upstream = self._graph.find_block(upstream_id) if upstream_id is not None else None
        if upstream is None or not upstream.output_table:
            raise MissingInputError(block.id)
        return upstream.output_table

    async def _run_block(self, block: Block, *, triggered_by: str) -> RunRecord:
        """Run one block through validate -> compile -> execute -> cache."""
        run_id = str(uuid4())
        started_at = datetime.now(UTC)
        start_time = time.monotonic()
        sql: str | None = None
        log_extra = {"block_id": block.id, "run_id": run_id, "triggered_by": triggered_by}

        def _finish(status: RunStatus, error_message: str | None = None) -> RunRecord:
            record = RunRecord(
                run_id=run_id,
                block_id=block.id,
                block_type=block.type,
                triggered_by=triggered_by,
                status=status,
                started_at=started_at,
                finished_at=datetime.now(UTC),
                duration_ms=round((time.monotonic() - start_time) * 1000, 3),
                sql=sql or None,
                output_table=block.output_table if status == RunStatus.SUCCESS else None,
                error_message=error_message,
            )
            self._history.append(record)
            return record

        def _fail(message: str) -> RunRecord:
            # is_stale is left as it was: a stale block can also be in error.
            block.status = BlockStatus.ERROR
            block.error = message
            logger.warning("Block %s failed: %s", block.id, message, extra=log_extra)
            return _finish(RunStatus.ERROR, message)

        validation_message = check_block(block)
        if validation_message is not None:
            return _fail(validation_message)

        block.status = BlockStatus.RUNNING
        block.error = None
        logger.info("Executing %s block %s", block.type.value, block.id, extra=log_extra)

        try:
            if isinstance(block.config, LoadConfig):
                output_table = block.config.table_name
            else:
                input_table = self._resolve_input_table(block)
                output_table = output_table_name(block.id)
                sql = compile_block(block.config, input_table, output_table)
                if sql:
                    assert_statement_safe(sql, enabled=self._sql_guard_enabled)
                    await self._engine.execute(sql)
            result = await self._engine.fetch_preview(output_table, self._preview_limit)
            block.output_table = output_table
        except MissingInputError as exc:
            return _fail(exc.message)
        except (EngineExecutionError, UnsafeSQLError) as exc:
            return _fail(str(exc))

        if self._graph.find_block(block.id) is block:
            self._results.put(block.id, result)
        block.status = BlockStatus.SUCCESS
        block.is_stale = False
        logger.info(
            "Block %s succeeded -> %s (%d column(s), %d preview row(s))",
            block.id,
            output_table,
            len(result.columns),
            result.row_count,
            extra=log_extra,
        )
        return _finish(RunStatus.SUCCESS)
