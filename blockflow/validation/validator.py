"""Per-block-type configuration rules.

Checks that a block's configuration is complete enough to compile.  The
rules are pure: they never consult the graph or the engine.  Dispatch is on
the config variant class and is exhaustive -- a variant without a rule is a
programming error, not a silently valid block.  Enum-typed fields (filter
operator, sort direction) are already enforced when the config is parsed.
"""

from __future__ import annotations

from collections.abc import Callable

from blockflow.errors import ConfigValidationError
from blockflow.models.block import (
    AggregateConfig,
    AggregateFunc,
    Block,
    ChartConfig,
    FilterConfig,
    InsightConfig,
    LoadConfig,
    SortConfig,
)


def _is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _check_load(config: LoadConfig) -> str | None:
    if _is_blank(config.table_name):
        return "Table name is required"
    return None


def _check_filter(config: FilterConfig) -> str | None:
    if _is_blank(config.column):
        return "Column is required"
    if _is_blank(config.value):
        return "Value is required"
    return None


def _check_aggregate(config: AggregateConfig) -> str | None:
    if not config.metrics:
        return "At least one metric is required"
    for metric in config.metrics:
        # COUNT compiles to COUNT(*) and ignores the column.
        if metric.func != AggregateFunc.COUNT and _is_blank(metric.column):
            return "Metric column is required"
    if any(_is_blank(column) for column in config.group_by):
        return "Group-by columns must not be empty"
    return None


def _check_sort(config: SortConfig) -> str | None:
    if _is_blank(config.column):
        return "Column is required"
    return None


def _check_chart(config: ChartConfig) -> str | None:
    if _is_blank(config.x_axis) or _is_blank(config.y_axis):
        return "X and Y axis are required"
    return None


def _check_insight(config: InsightConfig) -> str | None:
    return None


_RULES: dict[type, Callable[..., str | None]] = {
    LoadConfig: _check_load,
    FilterConfig: _check_filter,
    AggregateConfig: _check_aggregate,
    SortConfig: _check_sort,
    ChartConfig: _check_chart,
    InsightConfig: _check_insight,
}


def check_block(block: Block) -> str | None:
    """Return the first validation message for *block*, or ``None`` if valid.

    Raises
    ------
    TypeError
        If the block's config variant has no registered rule.
    """
    rule = _RULES.get(type(block.config))
    if rule is None:
        raise TypeError(f"No validation rule for config type {type(block.config).__name__}")
    return rule(block.config)


def validate_block(block: Block) -> None:
    """Raise :class:`ConfigValidationError` if *block* cannot be compiled."""
    message = check_block(block)
    if message is not None:
        raise ConfigValidationError(block.id, message)
