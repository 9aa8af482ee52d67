"""Load pipeline definitions from JSON or YAML files.

A definition lists the CSV sources to ingest, the blocks (with their
configuration) and the connections between them::

    sources:
      - table_name: sales
        path: data/sales.csv
    blocks:
      - id: load
        type: load
        config: {table_name: sales}
      - id: big
        type: filter
        config: {column: amount, operator: ">", value: 100}
    connections:
      - {source: load, target: big}

Relative source paths are resolved against the definition file's directory.

Typical usage::

    definition = load_pipeline_file(Path("pipeline.yaml"))
    session = build_session(definition)
    await ingest_sources(session, definition)
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, Field, ValidationError

from blockflow.config import Settings
from blockflow.errors import BlockflowError
from blockflow.models.block import BlockType
from blockflow.session import PipelineSession

logger = logging.getLogger(__name__)

_YAML_SUFFIXES: frozenset[str] = frozenset({".yaml", ".yml"})


class PipelineLoadError(Exception):
    """Raised when a pipeline definition file cannot be read or is invalid."""


class SourceDefinition(BaseModel):
    table_name: str = Field(..., min_length=1)
    path: Path


class BlockDefinition(BaseModel):
    id: str = Field(..., min_length=1)
    type: BlockType
    label: str | None = None
    config: dict[str, Any] = Field(default_factory=dict)


class ConnectionDefinition(BaseModel):
    source: str = Field(..., min_length=1)
    target: str = Field(..., min_length=1)


class PipelineDefinition(BaseModel):
    """Declarative description of a block pipeline."""

    name: str = "pipeline"
    sources: list[SourceDefinition] = Field(default_factory=list)
    blocks: list[BlockDefinition] = Field(default_factory=list)
    connections: list[ConnectionDefinition] = Field(default_factory=list)
    base_dir: Path | None = Field(
        default=None,
        exclude=True,
        description="Directory relative source paths are resolved against.",
    )

    def resolve_path(self, path: Path) -> Path:
        if path.is_absolute() or self.base_dir is None:
            return path
        return self.base_dir / path


def parse_pipeline(data: dict[str, Any], base_dir: Path | None = None) -> PipelineDefinition:
    """Validate raw definition data into a :class:`PipelineDefinition`."""
    try:
        definition = PipelineDefinition.model_validate(data)
    except ValidationError as exc:
        raise PipelineLoadError(f"Invalid pipeline definition: {exc}") from exc
    definition.base_dir = base_dir
    return definition


def load_pipeline_file(path: Path) -> PipelineDefinition:
    """Read a JSON or YAML pipeline definition from *path*.

    Raises
    ------
    PipelineLoadError
        If the file is missing, unparseable, or fails validation.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise PipelineLoadError(f"Cannot read pipeline file {path}: {exc}") from exc

    try:
        if path.suffix.lower() in _YAML_SUFFIXES:
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise PipelineLoadError(f"Cannot parse pipeline file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise PipelineLoadError(f"Pipeline file {path} must contain a mapping at the top level")

    definition = parse_pipeline(data, base_dir=path.parent)
    logger.info(
        "Loaded pipeline '%s' from %s: %d block(s), %d connection(s), %d source(s)",
        definition.name,
        path,
        len(definition.blocks),
        len(definition.connections),
        len(definition.sources),
    )
    return definition


def build_session(definition: PipelineDefinition, settings: Settings | None = None) -> PipelineSession:
    """Create a session holding the definition's blocks and connections.

    Sources are **not** ingested here; await :func:`ingest_sources` first
    when the session will be executed.

    Raises
    ------
    PipelineLoadError
        If a block config is invalid or a connection is rejected.
    """
    session = PipelineSession(settings=settings)
    try:
        for block_def in definition.blocks:
            session.add_block(
                block_def.type,
                block_def.config,
                block_id=block_def.id,
                label=block_def.label,
            )
        for conn in definition.connections:
            session.connect(conn.source, conn.target)
    except (ValueError, BlockflowError) as exc:
        session.close()
        raise PipelineLoadError(f"Invalid pipeline '{definition.name}': {exc}") from exc
    return session


async def ingest_sources(session: PipelineSession, definition: PipelineDefinition) -> None:
    """Register every source CSV of *definition* with the session's engine."""
    for source in definition.sources:
        await session.load_csv_file(source.table_name, definition.resolve_path(source.path))
