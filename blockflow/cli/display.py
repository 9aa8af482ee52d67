"""Rich display helpers for the blockflow CLI.

All functions take a :class:`rich.console.Console` so the caller decides
where output goes (the CLI prints to *stderr*).
"""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from blockflow.models.block import Block
from blockflow.models.result import BlockResult
from blockflow.models.run import ExecutionReport

# ---------------------------------------------------------------------------
# Colour helpers
# ---------------------------------------------------------------------------

_STATUS_COLOURS: dict[str, str] = {
    "success": "green",
    "error": "red",
    "running": "yellow",
    "idle": "dim",
}

_MAX_CELL_WIDTH = 40


def _coloured_status(status: str) -> str:
    """Return a Rich markup string with the status colour-coded."""
    colour = _STATUS_COLOURS.get(status, "white")
    return f"[{colour}]{status.upper()}[/{colour}]"


def _format_cell(value: Any) -> str:
    if value is None:
        return "[dim]NULL[/dim]"
    text = str(value)
    if len(text) > _MAX_CELL_WIDTH:
        text = text[: _MAX_CELL_WIDTH - 3] + "..."
    return escape(text)


# ---------------------------------------------------------------------------
# Compiled SQL
# ---------------------------------------------------------------------------


def display_compiled_sql(console: Console, compiled: list[tuple[Block, str]]) -> None:
    """Print each block's compiled statement under a short header."""
    if not compiled:
        console.print("[dim]Pipeline has no blocks.[/dim]")
        return

    for block, sql in compiled:
        console.print(f"[bold]{block.id}[/bold] [dim]({block.type.value}, {escape(block.label)})[/dim]")
        if sql:
            console.print(f"  {sql}", highlight=False, markup=False, soft_wrap=True)
        else:
            console.print("  [dim](source table, no statement)[/dim]")


# ---------------------------------------------------------------------------
# Execution results
# ---------------------------------------------------------------------------


def display_block_statuses(console: Console, blocks: list[Block], report: ExecutionReport) -> None:
    """Render a status table for every block after an execution.

    Parameters
    ----------
    console:
        Rich console to write to.
    blocks:
        Blocks of the pipeline in position order.
    report:
        Report of the execution just performed; supplies run durations.
    """
    if not blocks:
        console.print("[dim]No blocks to display.[/dim]")
        return

    table = Table(
        title="Execution Results",
        show_lines=False,
        pad_edge=True,
        expand=False,
    )
    table.add_column("Block", style="bold")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Output")
    table.add_column("Duration", justify="right")
    table.add_column("Error")

    for block in blocks:
        record = report.run_for(block.id)
        duration = f"{record.duration_ms:.1f}ms" if record is not None else "-"
        table.add_row(
            block.id,
            block.type.value,
            _coloured_status(block.status.value),
            block.output_table or "-",
            duration,
            escape(block.error or ""),
        )

    console.print(table)

    failed = len(report.failed_block_ids)
    succeeded = len(report.runs) - failed
    console.print(
        f"\n[bold]Summary:[/bold] {len(report.runs)} run(s), [green]{succeeded} succeeded[/green], [red]{failed} failed[/red]"
    )


def display_preview(console: Console, block: Block, result: BlockResult) -> None:
    """Render the cached preview of one block as a table."""
    table = Table(
        title=f"{escape(block.label)} ({block.id})",
        show_lines=False,
        expand=False,
    )
    for column in result.columns:
        table.add_column(f"{escape(column.name)}\n[dim]{column.semantic_type.value}[/dim]")

    for row in result.rows:
        table.add_row(*(_format_cell(row.get(name)) for name in result.column_names))

    console.print(table)
    console.print(f"[dim]{result.row_count} preview row(s)[/dim]")
