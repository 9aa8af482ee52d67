"""Block arena and connection graph."""

from blockflow.graph.pipeline_graph import PipelineGraph

__all__ = ["PipelineGraph"]
