"""Cached execution results and column metadata."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class SemanticType(str, Enum):
    """Simplified column type used by the presentation layer."""

    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"


# Checked in order; the first matching group wins.
_TYPE_PATTERNS: tuple[tuple[SemanticType, tuple[str, ...]], ...] = (
    (SemanticType.NUMBER, ("int", "float", "double", "decimal", "numeric")),
    (SemanticType.DATE, ("date", "time")),
    (SemanticType.BOOLEAN, ("bool",)),
)


def classify_engine_type(engine_type: str) -> SemanticType:
    """Map an engine-native column type string onto a :class:`SemanticType`.

    Classification is by substring, so ``BIGINT``, ``DECIMAL(18,3)`` and
    ``TIMESTAMP WITH TIME ZONE`` all land in the expected bucket.  Anything
    unrecognised is treated as a string.
    """
    lowered = engine_type.lower()
    for semantic_type, fragments in _TYPE_PATTERNS:
        if any(fragment in lowered for fragment in fragments):
            return semantic_type
    return SemanticType.STRING


class ColumnInfo(BaseModel):
    """Description of a single column of a block's output."""

    name: str = Field(..., description="Column name.")
    semantic_type: SemanticType = Field(..., description="Simplified type for rendering.")
    engine_type: str = Field(default="", description="Type as reported by the engine.")

    @classmethod
    def from_engine(cls, name: str, engine_type: str) -> ColumnInfo:
        return cls(
            name=name,
            semantic_type=classify_engine_type(engine_type),
            engine_type=engine_type,
        )


class BlockResult(BaseModel):
    """Schema plus a bounded preview of a block's output table."""

    columns: list[ColumnInfo] = Field(default_factory=list)
    rows: list[dict[str, Any]] = Field(default_factory=list)
    row_count: int = Field(default=0, ge=0, description="Number of preview rows held.")

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]
