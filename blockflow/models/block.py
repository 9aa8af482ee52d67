"""Block and block-configuration models.

A block's configuration is a tagged union keyed by the ``type`` literal on
each variant, so pydantic picks the right variant when a config is parsed
from a plain dict and every consumer can dispatch on the variant class.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, model_validator


class BlockType(str, Enum):
    """The closed set of pipeline stage kinds."""

    LOAD = "load"
    FILTER = "filter"
    AGGREGATE = "aggregate"
    SORT = "sort"
    CHART = "chart"
    INSIGHT = "insight"


class BlockStatus(str, Enum):
    """Execution lifecycle of a block."""

    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


class FilterOperator(str, Enum):
    EQ = "="
    NE = "!="
    GT = ">"
    LT = "<"
    GE = ">="
    LE = "<="
    CONTAINS = "contains"
    NOT_CONTAINS = "not contains"


class AggregateFunc(str, Enum):
    SUM = "sum"
    AVG = "avg"
    COUNT = "count"
    MIN = "min"
    MAX = "max"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class ChartType(str, Enum):
    LINE = "line"
    BAR = "bar"
    PIE = "pie"
    SCATTER = "scatter"


# ---------------------------------------------------------------------------
# Config variants
# ---------------------------------------------------------------------------


class LoadConfig(BaseModel):
    """Source block: points at a table already registered with the engine."""

    type: Literal["load"] = "load"
    table_name: str = Field(default="", description="Registered source table.")
    file_name: str = Field(default="", description="Original file the table was ingested from.")


class FilterConfig(BaseModel):
    type: Literal["filter"] = "filter"
    column: str = ""
    operator: FilterOperator = FilterOperator.EQ
    value: str | int | float | bool | None = ""


class AggregateMetric(BaseModel):
    column: str = ""
    func: AggregateFunc = AggregateFunc.SUM
    alias: str | None = None

    @property
    def output_name(self) -> str:
        """Alias used in the compiled SELECT list."""
        return self.alias or f"{self.func.value}_{self.column}"


class AggregateConfig(BaseModel):
    """Whole-table aggregate when ``group_by`` is empty."""

    type: Literal["aggregate"] = "aggregate"
    group_by: list[str] = Field(default_factory=list)
    metrics: list[AggregateMetric] = Field(default_factory=list)


class SortConfig(BaseModel):
    type: Literal["sort"] = "sort"
    column: str = ""
    direction: SortDirection = SortDirection.ASC


class ChartConfig(BaseModel):
    type: Literal["chart"] = "chart"
    chart_type: ChartType = ChartType.BAR
    x_axis: str = ""
    y_axis: str = ""
    title: str | None = None


class InsightConfig(BaseModel):
    type: Literal["insight"] = "insight"
    prompt: str = ""


BlockConfig = Annotated[
    Union[LoadConfig, FilterConfig, AggregateConfig, SortConfig, ChartConfig, InsightConfig],
    Field(discriminator="type"),
]

_DEFAULT_CONFIGS: dict[BlockType, type[BaseModel]] = {
    BlockType.LOAD: LoadConfig,
    BlockType.FILTER: FilterConfig,
    BlockType.AGGREGATE: AggregateConfig,
    BlockType.SORT: SortConfig,
    BlockType.CHART: ChartConfig,
    BlockType.INSIGHT: InsightConfig,
}


def config_class_for(block_type: BlockType) -> type[BaseModel]:
    """Return the config variant class for *block_type*."""
    return _DEFAULT_CONFIGS[BlockType(block_type)]


def default_config(block_type: BlockType) -> BlockConfig:
    """Return a fresh, empty configuration for *block_type*."""
    return config_class_for(block_type)()  # type: ignore[return-value]


def output_table_name(block_id: str) -> str:
    """Deterministic name of the table or view a block materialises."""
    return f"temp_{block_id}"


# ---------------------------------------------------------------------------
# Block
# ---------------------------------------------------------------------------


class Block(BaseModel):
    """A typed pipeline stage with its configuration and execution state."""

    id: str = Field(..., min_length=1)
    type: BlockType
    label: str = ""
    config: BlockConfig
    status: BlockStatus = BlockStatus.IDLE
    error: str | None = Field(
        default=None,
        description="Message of the last failure; set only while status is ERROR.",
    )
    output_table: str | None = None
    is_stale: bool = False

    @model_validator(mode="before")
    @classmethod
    def _fill_defaults(cls, data: object) -> object:
        if isinstance(data, dict) and data.get("type") is not None:
            block_type = BlockType(data["type"])
            data = dict(data)
            config = data.get("config")
            if config is None:
                data["config"] = default_config(block_type)
            elif isinstance(config, dict) and "type" not in config:
                data["config"] = {**config, "type": block_type.value}
            if not data.get("label"):
                data["label"] = f"{block_type.value.capitalize()} Block"
        return data

    @model_validator(mode="after")
    def _config_matches_type(self) -> Block:
        if self.config.type != self.type:
            raise ValueError(
                f"Block '{self.id}' has type '{self.type.value}' but a "
                f"'{self.config.type}' configuration"
            )
        return self
