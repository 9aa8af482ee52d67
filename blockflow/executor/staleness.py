"""Staleness propagation on configuration edits.

Editing a block's configuration invalidates the results of blocks that
consume its output.  The tracker merges the edit into the block and flags
affected blocks with ``is_stale = True``; only the orchestrator clears the
flag again, when it runs that specific block successfully.

Which blocks count as "affected" depends on :class:`StalenessMode`:

* ``POSITION`` -- every block positioned after the edited block in the
  linear block list.  Exact for a single linear chain; in branching graphs
  it can flag unrelated later blocks and miss descendants that were moved
  above their ancestor.
* ``REACHABILITY`` -- exactly the blocks reachable through connections.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from blockflow.config import StalenessMode
from blockflow.graph.pipeline_graph import PipelineGraph

logger = logging.getLogger(__name__)


class StalenessTracker:
    """Applies configuration edits and marks affected blocks stale.

    Parameters
    ----------
    graph:
        The pipeline graph owning the blocks.
    mode:
        Strategy used to pick the blocks to mark.
    """

    def __init__(self, graph: PipelineGraph, mode: StalenessMode = StalenessMode.POSITION) -> None:
        self._graph = graph
        self._mode = StalenessMode(mode)

    @property
    def mode(self) -> StalenessMode:
        return self._mode

    def affected_by(self, block_id: str) -> list[str]:
        """Ids of the blocks an edit of *block_id* would mark stale."""
        if self._mode is StalenessMode.REACHABILITY:
            return self._graph.downstream_of(block_id)
        return self._graph.blocks_after(block_id)

    def on_config_update(self, block_id: str, partial_config: Mapping[str, Any]) -> list[str]:
        """Merge *partial_config* into the block's config and propagate staleness.

        The merged config is re-validated into the same variant, so the
        block's type cannot change through an edit.

        Returns
        -------
        list[str]
            Ids of the blocks that were marked stale.

        Raises
        ------
        BlockNotFoundError
            If *block_id* does not exist.
        ValueError
            If the edit tries to change the config variant or carries
            values the variant rejects (``pydantic.ValidationError``).
        """
        block = self._graph.get_block(block_id)
        current = block.config

        requested_type = partial_config.get("type")
        if requested_type is not None and requested_type != current.type:
            raise ValueError(
                f"Cannot change block '{block_id}' from '{current.type}' to '{requested_type}' via a config edit"
            )

        merged = {**current.model_dump(), **partial_config}
        block.config = type(current).model_validate(merged)

        affected = self.affected_by(block_id)
        for other_id in affected:
            self._graph.get_block(other_id).is_stale = True

        logger.info(
            "Config of %s updated (%s); %d block(s) marked stale",
            block_id,
            ", ".join(sorted(partial_config)) or "no fields",
            len(affected),
        )
        return affected
