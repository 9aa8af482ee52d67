"""Pipeline graph: block arena plus directed connections using NetworkX.

Blocks live in an insertion-ordered arena keyed by stable string ids; the
connections between them are kept in a :class:`networkx.DiGraph` whose
nodes are those same ids.  Nothing outside this module holds a reference
into the edge structure, so removing a block while a cascade is in flight
can never leave a dangling reference -- later lookups simply miss.

Two orderings exist side by side:

* **position** -- the linear order in which blocks were added (or moved to),
  mirroring the order the user sees in a vertical block list.
* **dependency** -- topological order over the connections.

Invariants maintained here:

* a block has at most one inbound connection;
* the connection set is acyclic (checked at :meth:`PipelineGraph.connect`).
"""

from __future__ import annotations

import heapq
import itertools
import logging
import re
from collections import deque
from collections.abc import Iterable

import networkx as nx

from blockflow.errors import BlockNotFoundError, CyclicConnectionError
from blockflow.models.block import Block, BlockConfig, BlockType, default_config

logger = logging.getLogger(__name__)

# Block ids are embedded bare in derived table names (temp_<id>).
_BLOCK_ID_RE = re.compile(r"^[A-Za-z0-9_]+$")


class PipelineGraph:
    """Owns the blocks of one pipeline and the connections between them.

    Parameters
    ----------
    id_prefix:
        Prefix for generated block ids.  Ids are ``<prefix><n>`` with a
        per-graph counter, so they are valid bare SQL identifiers when
        embedded in ``temp_<id>`` table names.
    """

    def __init__(self, id_prefix: str = "b") -> None:
        self._id_prefix = id_prefix
        self._counter = itertools.count(1)
        self._blocks: dict[str, Block] = {}
        self._order: list[str] = []
        self._edges = nx.DiGraph()

    # -- Blocks ----------------------------------------------------------------

    def _next_id(self) -> str:
        while True:
            candidate = f"{self._id_prefix}{next(self._counter)}"
            if candidate not in self._blocks:
                return candidate

    def add_block(
        self,
        block_type: BlockType | str,
        config: BlockConfig | dict | None = None,
        *,
        block_id: str | None = None,
        label: str | None = None,
        position: int | None = None,
    ) -> str:
        """Create an idle block and return its id.

        Parameters
        ----------
        block_type:
            Kind of block to create.
        config:
            Initial configuration, either a config model or a plain dict.
            Defaults to the empty configuration for *block_type*.
        block_id:
            Explicit id; generated when omitted.
        label:
            Display label; defaults to ``"<Type> Block"``.
        position:
            Index in the linear block order; appended when omitted.

        Raises
        ------
        ValueError
            If *block_id* is already in use or is not made of letters,
            digits and underscores.
        """
        block_type = BlockType(block_type)
        if block_id is None:
            block_id = self._next_id()
        elif not _BLOCK_ID_RE.match(block_id):
            raise ValueError(f"Invalid block id: {block_id!r}")
        elif block_id in self._blocks:
            raise ValueError(f"Block id '{block_id}' is already in use")

        block = Block(
            id=block_id,
            type=block_type,
            label=label or "",
            config=config if config is not None else default_config(block_type),
        )
        self._blocks[block_id] = block
        if position is None:
            self._order.append(block_id)
        else:
            self._order.insert(max(0, position), block_id)
        self._edges.add_node(block_id)
        logger.debug("Added %s block %s", block_type.value, block_id)
        return block_id

    def get_block(self, block_id: str) -> Block:
        """Return the block with *block_id* or raise :class:`BlockNotFoundError`."""
        try:
            return self._blocks[block_id]
        except KeyError:
            raise BlockNotFoundError(block_id) from None

    def find_block(self, block_id: str) -> Block | None:
        return self._blocks.get(block_id)

    def has_block(self, block_id: str) -> bool:
        return block_id in self._blocks

    def __contains__(self, block_id: object) -> bool:
        return block_id in self._blocks

    def __len__(self) -> int:
        return len(self._blocks)

    @property
    def blocks(self) -> list[Block]:
        """All blocks in position order."""
        return [self._blocks[block_id] for block_id in self._order]

    def remove_block(self, block_id: str) -> Block:
        """Delete a block together with every connection touching it.

        Returns the removed block.  Downstream blocks that lose their input
        are left as they are; they fail with a missing-input error the next
        time they are executed.
        """
        block = self.get_block(block_id)
        removed_edges = list(self._edges.in_edges(block_id)) + list(self._edges.out_edges(block_id))
        self._edges.remove_node(block_id)
        del self._blocks[block_id]
        self._order.remove(block_id)
        logger.debug("Removed block %s and %d connection(s)", block_id, len(removed_edges))
        return block

    def duplicate_block(self, block_id: str) -> str:
        """Copy a block's type, label and configuration into a new idle block.

        The copy is placed directly after the original in position order and
        has no connections.
        """
        original = self.get_block(block_id)
        return self.add_block(
            original.type,
            original.config.model_copy(deep=True),
            label=f"{original.label} (Copy)",
            position=self._order.index(block_id) + 1,
        )

    def move_block(self, block_id: str, position: int) -> None:
        """Move a block to *position* in the linear order.

        Connections are unaffected; only position-based staleness changes.
        """
        self.get_block(block_id)
        self._order.remove(block_id)
        position = max(0, min(position, len(self._order)))
        self._order.insert(position, block_id)

    def position_of(self, block_id: str) -> int:
        """Index of the block in the linear order."""
        self.get_block(block_id)
        return self._order.index(block_id)

    def blocks_after(self, block_id: str) -> list[str]:
        """Ids of every block positioned after *block_id*."""
        return list(self._order[self.position_of(block_id) + 1 :])

    def source_blocks(self) -> list[str]:
        """Ids of Load blocks, in position order."""
        return [b.id for b in self.blocks if b.type == BlockType.LOAD]

    # -- Connections -----------------------------------------------------------

    @property
    def connections(self) -> list[tuple[str, str]]:
        """All ``(source, target)`` pairs, ordered by target position."""
        return sorted(self._edges.edges(), key=lambda e: self._order.index(e[1]))

    def connect(self, source: str, target: str) -> None:
        """Connect *source*'s output to *target*'s input.

        Any existing inbound connection on *target* is replaced.

        Raises
        ------
        BlockNotFoundError
            If either block does not exist.
        CyclicConnectionError
            If the new edge would close a cycle.  The graph is left unchanged.
        """
        self.get_block(source)
        self.get_block(target)

        if source == target:
            raise CyclicConnectionError(source, target, [target])
        # Any path target -> source would be closed by the new edge.  Edges
        # into target never lie on such a path, so the edge about to be
        # replaced is irrelevant here.
        if nx.has_path(self._edges, target, source):
            path = nx.shortest_path(self._edges, target, source)
            raise CyclicConnectionError(source, target, path)

        previous = self.upstream_of(target)
        if previous is not None:
            self._edges.remove_edge(previous, target)
            if previous != source:
                logger.info(
                    "Replacing input of %s: %s -> %s",
                    target,
                    previous,
                    source,
                )
        self._edges.add_edge(source, target)

    def disconnect(self, target: str) -> str | None:
        """Remove *target*'s inbound connection and return the old source."""
        previous = self.upstream_of(target)
        if previous is not None:
            self._edges.remove_edge(previous, target)
        return previous

    # -- Traversal -------------------------------------------------------------

    def upstream_of(self, block_id: str) -> str | None:
        """Return the id of the block feeding *block_id*, if any."""
        self.get_block(block_id)
        predecessors = list(self._edges.predecessors(block_id))
        return predecessors[0] if predecessors else None

    def downstream_of(self, block_id: str) -> list[str]:
        """Return all blocks transitively downstream of *block_id*.

        Performs a breadth-first traversal following outbound connections,
        visiting each reachable block exactly once even in diamond shapes.
        The block itself is **not** included.  The result is in dependency
        order, ties broken by position.
        """
        self.get_block(block_id)
        visited: set[str] = set()
        queue: deque[str] = deque(self._edges.successors(block_id))

        while queue:
            current = queue.popleft()
            if current in visited:
                continue
            visited.add(current)
            queue.extend(self._edges.successors(current))

        return self._ordered(visited)

    def topological_order(self) -> list[str]:
        """Every block id in dependency order, ties broken by position."""
        return self._ordered(self._blocks)

    def _ordered(self, block_ids: Iterable[str]) -> list[str]:
        """Kahn's algorithm over the induced subgraph with a position-keyed heap."""
        subset = set(block_ids)
        subgraph = self._edges.subgraph(subset)
        rank = {block_id: index for index, block_id in enumerate(self._order)}
        in_degree = dict(subgraph.in_degree())
        heap = [(rank[n], n) for n, d in in_degree.items() if d == 0]
        heapq.heapify(heap)
        result: list[str] = []
        while heap:
            _, node = heapq.heappop(heap)
            result.append(node)
            for successor in subgraph.successors(node):
                in_degree[successor] -= 1
                if in_degree[successor] == 0:
                    heapq.heappush(heap, (rank[successor], successor))
        return result
