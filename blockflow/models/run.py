"""Run records for block executions.

Each ``RunRecord`` captures one pass of a single block through the
orchestrator, whether it was triggered directly or reached by a cascade.
An :class:`ExecutionReport` groups the records produced by one call to
``execute`` or ``run_all``.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from blockflow.models.block import BlockType


class RunStatus(str, Enum):
    """Final outcome of a block run."""

    SUCCESS = "success"
    ERROR = "error"


class RunRecord(BaseModel):
    """Detailed record of a single block execution."""

    run_id: str = Field(
        ...,
        min_length=1,
        description="Unique identifier for this run.",
    )
    block_id: str = Field(
        ...,
        min_length=1,
        description="Block that was executed.",
    )
    block_type: BlockType = Field(
        ...,
        description="Type of the executed block.",
    )
    triggered_by: str = Field(
        ...,
        min_length=1,
        description="Block whose execution started the cascade this run belongs to.",
    )
    status: RunStatus = Field(
        ...,
        description="Outcome of the run.",
    )
    started_at: datetime = Field(
        ...,
        description="Timestamp when execution began.",
    )
    finished_at: datetime = Field(
        ...,
        description="Timestamp when execution completed or failed.",
    )
    duration_ms: float = Field(
        default=0.0,
        ge=0.0,
        description="Wall-clock duration of the run in milliseconds.",
    )
    sql: str | None = Field(
        default=None,
        description="Statement issued to the engine, if any.",
    )
    output_table: str | None = Field(
        default=None,
        description="Table or view the block produced.",
    )
    error_message: str | None = Field(
        default=None,
        description="Error message if the run failed.",
    )


class ExecutionReport(BaseModel):
    """All runs produced by one orchestrator call, in execution order."""

    triggered_by: str
    runs: list[RunRecord] = Field(default_factory=list)

    @property
    def executed_block_ids(self) -> list[str]:
        return [r.block_id for r in self.runs]

    @property
    def failed_block_ids(self) -> list[str]:
        return [r.block_id for r in self.runs if r.status == RunStatus.ERROR]

    @property
    def succeeded(self) -> bool:
        """True when every run in the report succeeded."""
        return all(r.status == RunStatus.SUCCESS for r in self.runs)

    def run_for(self, block_id: str) -> RunRecord | None:
        for record in self.runs:
            if record.block_id == block_id:
                return record
        return None
