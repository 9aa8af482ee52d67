"""Unit tests for blockflow.executor.staleness."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from blockflow.config import StalenessMode
from blockflow.errors import BlockNotFoundError
from blockflow.executor import StalenessTracker
from blockflow.graph import PipelineGraph
from blockflow.models import FilterOperator

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _branching_graph() -> tuple[PipelineGraph, dict[str, str]]:
    """
    load -> filter -> sort
    load -> chart           (chart positioned last, not below filter)
    """
    graph = PipelineGraph()
    ids = {
        "load": graph.add_block("load", {"table_name": "sales"}),
        "filter": graph.add_block("filter", {"column": "amount", "operator": ">", "value": 100}),
        "sort": graph.add_block("sort", {"column": "amount"}),
        "chart": graph.add_block("chart", {"x_axis": "a", "y_axis": "b"}),
    }
    graph.connect(ids["load"], ids["filter"])
    graph.connect(ids["filter"], ids["sort"])
    graph.connect(ids["load"], ids["chart"])
    return graph, ids


def _stale_ids(graph: PipelineGraph) -> set[str]:
    return {b.id for b in graph.blocks if b.is_stale}


# ---------------------------------------------------------------------------
# Config merging
# ---------------------------------------------------------------------------


class TestConfigMerge:
    def test_partial_update_keeps_other_fields(self):
        graph, ids = _branching_graph()
        tracker = StalenessTracker(graph)
        tracker.on_config_update(ids["filter"], {"value": 250})
        config = graph.get_block(ids["filter"]).config
        assert config.value == 250
        assert config.column == "amount"
        assert config.operator == FilterOperator.GT

    def test_invalid_value_rejected(self):
        graph, ids = _branching_graph()
        tracker = StalenessTracker(graph)
        with pytest.raises(ValidationError):
            tracker.on_config_update(ids["filter"], {"operator": "between"})
        assert _stale_ids(graph) == set()

    def test_type_change_rejected(self):
        graph, ids = _branching_graph()
        tracker = StalenessTracker(graph)
        with pytest.raises(ValueError, match="Cannot change block"):
            tracker.on_config_update(ids["filter"], {"type": "sort"})

    def test_same_type_in_edit_allowed(self):
        graph, ids = _branching_graph()
        tracker = StalenessTracker(graph)
        tracker.on_config_update(ids["filter"], {"type": "filter", "value": 1})
        assert graph.get_block(ids["filter"]).config.value == 1

    def test_unknown_block(self):
        tracker = StalenessTracker(PipelineGraph())
        with pytest.raises(BlockNotFoundError):
            tracker.on_config_update("b1", {})


# ---------------------------------------------------------------------------
# Position mode
# ---------------------------------------------------------------------------


class TestPositionMode:
    def test_default_mode(self):
        assert StalenessTracker(PipelineGraph()).mode is StalenessMode.POSITION

    def test_marks_every_later_block(self):
        graph, ids = _branching_graph()
        tracker = StalenessTracker(graph)
        marked = tracker.on_config_update(ids["filter"], {"value": 5})
        assert marked == [ids["sort"], ids["chart"]]
        assert _stale_ids(graph) == {ids["sort"], ids["chart"]}

    def test_edited_block_not_marked(self):
        graph, ids = _branching_graph()
        StalenessTracker(graph).on_config_update(ids["filter"], {"value": 5})
        assert graph.get_block(ids["filter"]).is_stale is False

    def test_last_block_marks_nothing(self):
        graph, ids = _branching_graph()
        assert StalenessTracker(graph).on_config_update(ids["chart"], {"title": "Sales"}) == []

    def test_repeated_edit_is_idempotent(self):
        graph, ids = _branching_graph()
        tracker = StalenessTracker(graph)
        tracker.on_config_update(ids["filter"], {"value": 5})
        tracker.on_config_update(ids["filter"], {"value": 5})
        assert _stale_ids(graph) == {ids["sort"], ids["chart"]}


# ---------------------------------------------------------------------------
# Reachability mode
# ---------------------------------------------------------------------------


class TestReachabilityMode:
    def test_marks_only_descendants(self):
        graph, ids = _branching_graph()
        tracker = StalenessTracker(graph, StalenessMode.REACHABILITY)
        marked = tracker.on_config_update(ids["filter"], {"value": 5})
        assert marked == [ids["sort"]]
        assert _stale_ids(graph) == {ids["sort"]}

    def test_marks_descendant_positioned_above(self):
        graph, ids = _branching_graph()
        graph.move_block(ids["sort"], 0)
        tracker = StalenessTracker(graph, "reachability")
        assert tracker.affected_by(ids["filter"]) == [ids["sort"]]

    def test_root_marks_whole_tree(self):
        graph, ids = _branching_graph()
        tracker = StalenessTracker(graph, StalenessMode.REACHABILITY)
        tracker.on_config_update(ids["load"], {"table_name": "orders"})
        assert _stale_ids(graph) == {ids["filter"], ids["sort"], ids["chart"]}
