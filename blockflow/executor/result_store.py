"""Cache of the last successful result of each block.

Entries are overwritten on every successful execution and survive the
owning block going stale (so the last-good preview stays visible).  They
are dropped only when the block itself is removed.
"""

from __future__ import annotations

from collections.abc import Iterator

from blockflow.models.result import BlockResult


class ResultStore:
    """Block id -> :class:`BlockResult` mapping with an independent lifecycle."""

    def __init__(self) -> None:
        self._results: dict[str, BlockResult] = {}

    def put(self, block_id: str, result: BlockResult) -> None:
        self._results[block_id] = result

    def get(self, block_id: str) -> BlockResult | None:
        return self._results.get(block_id)

    def drop(self, block_id: str) -> BlockResult | None:
        """Remove and return the cached result for *block_id*, if any."""
        return self._results.pop(block_id, None)

    def clear(self) -> None:
        self._results.clear()

    def __contains__(self, block_id: object) -> bool:
        return block_id in self._results

    def __len__(self) -> int:
        return len(self._results)

    def __iter__(self) -> Iterator[str]:
        return iter(self._results)
