"""Per-block SQL generation.

Maps a block configuration plus an input and output table name onto the
single statement that materialises the block's output.  Generation is
template based and deterministic: identical inputs always yield an
identical string, and the engine is never consulted.

Table names are emitted bare (they are either registered source tables or
``temp_<block_id>``); column identifiers are always double-quoted and
string literals always escaped, so arbitrary column names and user-typed
filter values are safe to interpolate.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from blockflow.models.block import (
    AggregateConfig,
    AggregateFunc,
    AggregateMetric,
    ChartConfig,
    FilterConfig,
    FilterOperator,
    InsightConfig,
    LoadConfig,
    SortConfig,
)

logger = logging.getLogger(__name__)

DEFAULT_PREVIEW_LIMIT = 100


# ---------------------------------------------------------------------------
# Quoting helpers
# ---------------------------------------------------------------------------


def quote_identifier(name: str) -> str:
    """Double-quote an identifier, doubling any embedded double quotes."""
    return '"' + name.replace('"', '""') + '"'


def escape_literal(value: str) -> str:
    """Escape a value for use inside a single-quoted SQL string literal."""
    return value.replace("'", "''")


def quote_literal(value: str) -> str:
    return f"'{escape_literal(value)}'"


def format_value(value: str | int | float | bool | None) -> str:
    """Render a filter comparison value.

    Numbers are emitted bare, booleans as ``TRUE``/``FALSE``, ``None`` as
    ``NULL`` and everything else as an escaped string literal.
    """
    if value is None:
        return "NULL"
    # bool is a subclass of int and must be checked first.
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int | float):
        return repr(value)
    return quote_literal(str(value))


# ---------------------------------------------------------------------------
# Per-type generators
# ---------------------------------------------------------------------------


def _filter_condition(config: FilterConfig) -> str:
    column = quote_identifier(config.column)
    if config.operator == FilterOperator.CONTAINS:
        return f"{column} LIKE '%{escape_literal(str(config.value))}%'"
    if config.operator == FilterOperator.NOT_CONTAINS:
        return f"{column} NOT LIKE '%{escape_literal(str(config.value))}%'"
    return f"{column} {FilterOperator(config.operator).value} {format_value(config.value)}"


def _compile_filter(config: FilterConfig, input_table: str, output_table: str) -> str:
    return (
        f"CREATE OR REPLACE TABLE {output_table} AS "
        f"SELECT * FROM {input_table} WHERE {_filter_condition(config)}"
    )


def _metric_expression(metric: AggregateMetric) -> str:
    alias = quote_identifier(metric.output_name)
    if metric.func == AggregateFunc.COUNT:
        return f"COUNT(*) AS {alias}"
    func = AggregateFunc(metric.func).value.upper()
    return f"{func}({quote_identifier(metric.column)}) AS {alias}"


def _compile_aggregate(config: AggregateConfig, input_table: str, output_table: str) -> str:
    group_columns = [quote_identifier(col) for col in config.group_by]
    select_parts = group_columns + [_metric_expression(m) for m in config.metrics]

    sql = (
        f"CREATE OR REPLACE TABLE {output_table} AS "
        f"SELECT {', '.join(select_parts)} FROM {input_table}"
    )
    if group_columns:
        sql += f" GROUP BY {', '.join(group_columns)}"
    return sql


def _compile_sort(config: SortConfig, input_table: str, output_table: str) -> str:
    direction = "DESC" if config.direction == "desc" else "ASC"
    return (
        f"CREATE OR REPLACE TABLE {output_table} AS "
        f"SELECT * FROM {input_table} ORDER BY {quote_identifier(config.column)} {direction}"
    )


def _compile_passthrough(
    config: ChartConfig | InsightConfig,
    input_table: str,
    output_table: str,
) -> str:
    # Chart and Insight blocks only read their input.
    return f"CREATE OR REPLACE VIEW {output_table} AS SELECT * FROM {input_table}"


def _compile_load(config: LoadConfig, input_table: str, output_table: str) -> str:
    return ""


_GENERATORS: dict[type, Callable[..., str]] = {
    LoadConfig: _compile_load,
    FilterConfig: _compile_filter,
    AggregateConfig: _compile_aggregate,
    SortConfig: _compile_sort,
    ChartConfig: _compile_passthrough,
    InsightConfig: _compile_passthrough,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def compile_block(
    config: LoadConfig | FilterConfig | AggregateConfig | SortConfig | ChartConfig | InsightConfig,
    input_table: str,
    output_table: str,
) -> str:
    """Compile a block configuration into a single SQL statement.

    Parameters
    ----------
    config:
        A validated block configuration.
    input_table:
        Table or view holding the upstream block's output.  Ignored for
        Load blocks.
    output_table:
        Name of the table or view to create, normally ``temp_<block_id>``.

    Returns
    -------
    str
        The statement, or ``""`` for Load blocks which are sources rather
        than transforms.

    Raises
    ------
    TypeError
        If *config* is not a known config variant.
    """
    generator = _GENERATORS.get(type(config))
    if generator is None:
        raise TypeError(f"No SQL generator for config type {type(config).__name__}")
    sql = generator(config, input_table, output_table)
    logger.debug("Compiled %s config into: %s", config.type, sql or "(no statement)")
    return sql


def preview_sql(table_name: str, limit: int = DEFAULT_PREVIEW_LIMIT) -> str:
    """SELECT used to fetch a bounded preview of *table_name*."""
    return f"SELECT * FROM {table_name} LIMIT {int(limit)}"
