"""Exception hierarchy for the block execution core.

Only :class:`BlockNotFoundError` and :class:`CyclicConnectionError` ever
reach the caller.  Validation, missing-input and engine failures are
attributed to a single block by the orchestrator and surfaced through that
block's ``status`` / ``error`` fields instead of propagating.
"""

from __future__ import annotations


class BlockflowError(Exception):
    """Base class for all blockflow errors."""


class BlockNotFoundError(BlockflowError, KeyError):
    """Raised when an operation references a block id that does not exist."""

    def __init__(self, block_id: str) -> None:
        self.block_id = block_id
        super().__init__(f"Block '{block_id}' not found")

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message.
        return self.args[0]


class CyclicConnectionError(BlockflowError):
    """Raised when a connection would introduce a cycle into the pipeline.

    Attributes
    ----------
    source, target:
        The rejected edge.
    path:
        The existing path from *target* back to *source* that the new edge
        would close, e.g. ``["b3", "b4", "b1"]``.
    """

    def __init__(self, source: str, target: str, path: list[str]) -> None:
        self.source = source
        self.target = target
        self.path = path
        loop = " -> ".join([source, *path]) if path else f"{source} -> {target}"
        super().__init__(f"Connecting '{source}' -> '{target}' would create a cycle: {loop}")


class BlockExecutionError(BlockflowError):
    """A failure attributed to exactly one block."""

    def __init__(self, block_id: str, message: str) -> None:
        self.block_id = block_id
        self.message = message
        super().__init__(message)


class ConfigValidationError(BlockExecutionError):
    """A required configuration field is missing or invalid."""


class MissingInputError(BlockExecutionError):
    """A non-source block has no resolvable upstream output table."""

    def __init__(self, block_id: str, message: str = "No input connected") -> None:
        super().__init__(block_id, message)


class EngineExecutionError(BlockflowError):
    """The analytical engine rejected a statement or failed to ingest a file.

    Attributes
    ----------
    sql:
        The statement that failed, if the failure came from a query.
    """

    def __init__(self, message: str, sql: str | None = None) -> None:
        self.sql = sql
        super().__init__(message)
