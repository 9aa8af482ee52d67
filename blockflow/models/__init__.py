"""Domain models for the blockflow execution core."""

from blockflow.models.block import (
    AggregateConfig,
    AggregateFunc,
    AggregateMetric,
    Block,
    BlockConfig,
    BlockStatus,
    BlockType,
    ChartConfig,
    ChartType,
    FilterConfig,
    FilterOperator,
    InsightConfig,
    LoadConfig,
    SortConfig,
    SortDirection,
    config_class_for,
    default_config,
    output_table_name,
)
from blockflow.models.result import BlockResult, ColumnInfo, SemanticType, classify_engine_type
from blockflow.models.run import ExecutionReport, RunRecord, RunStatus

__all__ = [
    "AggregateConfig",
    "AggregateFunc",
    "AggregateMetric",
    "Block",
    "BlockConfig",
    "BlockResult",
    "BlockStatus",
    "BlockType",
    "ChartConfig",
    "ChartType",
    "ColumnInfo",
    "ExecutionReport",
    "FilterConfig",
    "FilterOperator",
    "InsightConfig",
    "LoadConfig",
    "RunRecord",
    "RunStatus",
    "SemanticType",
    "SortConfig",
    "SortDirection",
    "classify_engine_type",
    "config_class_for",
    "default_config",
    "output_table_name",
]
