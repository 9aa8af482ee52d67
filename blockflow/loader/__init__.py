"""Pipeline definition files."""

from blockflow.loader.pipeline_loader import (
    PipelineDefinition,
    PipelineLoadError,
    build_session,
    ingest_sources,
    load_pipeline_file,
    parse_pipeline,
)

__all__ = [
    "PipelineDefinition",
    "PipelineLoadError",
    "build_session",
    "ingest_sources",
    "load_pipeline_file",
    "parse_pipeline",
]
