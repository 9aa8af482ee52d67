"""Blockflow CLI application -- Typer-based interface to pipeline files.

Provides commands to print the SQL a pipeline compiles to and to execute
a pipeline against DuckDB.  Human-readable output goes to *stderr* via
Rich; ``--json`` output goes to *stdout* so it can be piped.
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape

from blockflow.cli.display import display_block_statuses, display_compiled_sql, display_preview
from blockflow.compiler.sql_compiler import compile_block
from blockflow.config import Settings, load_settings
from blockflow.errors import BlockflowError
from blockflow.loader.pipeline_loader import (
    PipelineDefinition,
    PipelineLoadError,
    build_session,
    ingest_sources,
    load_pipeline_file,
)
from blockflow.logging_config import configure_logging
from blockflow.models.block import Block, BlockStatus, LoadConfig, output_table_name
from blockflow.models.run import ExecutionReport
from blockflow.session import PipelineSession
from blockflow.validation.validator import check_block

# ---------------------------------------------------------------------------
# App & global state
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="blockflow",
    help="Blockflow - typed block pipelines compiled to SQL and run on DuckDB",
    no_args_is_help=True,
)
console = Console(stderr=True)

# Populated by the Typer callback.
_settings: Settings | None = None


# ---------------------------------------------------------------------------
# Callback -- global options
# ---------------------------------------------------------------------------


@app.callback()
def _global_options(
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help="Log level (DEBUG, INFO, WARNING, ...).",
    ),
    structured_logs: bool = typer.Option(
        False,
        "--structured-logs",
        help="Emit log records as JSON lines on stderr.",
    ),
    db_path: str | None = typer.Option(
        None,
        "--db-path",
        help="DuckDB database file; in-memory when omitted.",
    ),
) -> None:
    """Global options applied to every command."""
    global _settings  # noqa: PLW0603
    overrides: dict[str, Any] = {}
    if log_level is not None:
        overrides["log_level"] = log_level
    if structured_logs:
        overrides["structured_logging"] = True
    if db_path is not None:
        overrides["db_path"] = db_path
    try:
        _settings = load_settings(**overrides)
    except ValueError as exc:
        console.print(f"[red]Invalid settings: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
    configure_logging(_settings)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_definition(pipeline_path: Path) -> PipelineDefinition:
    try:
        return load_pipeline_file(pipeline_path)
    except PipelineLoadError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc


def _compile_preview(session: PipelineSession, block: Block) -> str:
    """Compile *block* as the orchestrator would, without touching the engine.

    Upstream output tables are predicted from the upstream block rather than
    read from it, so nothing has to be executed first.
    """
    message = check_block(block)
    if message is not None:
        return f"-- invalid: {message}"
    if isinstance(block.config, LoadConfig):
        return ""

    upstream_id = session.graph.upstream_of(block.id)
    if upstream_id is None:
        return "-- invalid: No input connected"
    upstream = session.get_block(upstream_id)
    if isinstance(upstream.config, LoadConfig):
        input_table = upstream.config.table_name
    else:
        input_table = output_table_name(upstream_id)
    return compile_block(block.config, input_table, output_table_name(block.id))


def _report_payload(session: PipelineSession, report: ExecutionReport) -> dict[str, Any]:
    return {
        "report": report.model_dump(mode="json"),
        "blocks": [
            {
                **block.model_dump(mode="json", exclude={"config"}),
                "preview": (
                    result.model_dump(mode="json") if (result := session.get_result(block.id)) is not None else None
                ),
            }
            for block in session.blocks
        ],
    }


async def _run_pipeline(
    definition: PipelineDefinition,
    settings: Settings | None,
    block_id: str | None,
) -> tuple[ExecutionReport, dict[str, Any], PipelineSession]:
    session = build_session(definition, settings)
    try:
        await ingest_sources(session, definition)
        if block_id is None:
            report = await session.run_all()
        else:
            report = await session.execute(block_id, cascade=True)
        return report, _report_payload(session, report), session
    finally:
        session.close()


# ---------------------------------------------------------------------------
# compile
# ---------------------------------------------------------------------------


@app.command(name="compile")
def compile_command(
    pipeline_path: Path = typer.Argument(
        ...,
        help="Path to a pipeline definition (JSON or YAML).",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
) -> None:
    """Print the SQL statement every block compiles to."""
    definition = _load_definition(pipeline_path)
    try:
        session = build_session(definition, _settings)
    except PipelineLoadError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc

    try:
        ordered = [session.get_block(block_id) for block_id in session.graph.topological_order()]
        compiled = [(block, _compile_preview(session, block)) for block in ordered]
    finally:
        session.close()

    display_compiled_sql(console, compiled)
    if any(sql.startswith("-- invalid") for _, sql in compiled):
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


@app.command()
def run(
    pipeline_path: Path = typer.Argument(
        ...,
        help="Path to a pipeline definition (JSON or YAML).",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    block: str | None = typer.Option(
        None,
        "--block",
        "-b",
        help="Execute only this block and its descendants.",
    ),
    json_mode: bool = typer.Option(
        False,
        "--json/--no-json",
        help="Emit the execution report as JSON on stdout.",
    ),
    preview: bool = typer.Option(
        True,
        "--preview/--no-preview",
        help="Print the preview rows of each successful block.",
    ),
) -> None:
    """Ingest sources and execute the pipeline.

    Exits with code 1 when any block ends in error.
    """
    definition = _load_definition(pipeline_path)

    try:
        report, payload, session = asyncio.run(_run_pipeline(definition, _settings, block))
    except (PipelineLoadError, BlockflowError, ValueError) as exc:
        console.print(f"[red]Error running pipeline: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc

    if json_mode:
        sys.stdout.write(json.dumps(payload, indent=2, default=str) + "\n")
    else:
        display_block_statuses(console, session.blocks, report)
        if preview:
            for executed in session.blocks:
                result = session.get_result(executed.id)
                if executed.status == BlockStatus.SUCCESS and result is not None:
                    display_preview(console, executed, result)

    if report.failed_block_ids:
        raise typer.Exit(code=1)


def main() -> None:
    app()
