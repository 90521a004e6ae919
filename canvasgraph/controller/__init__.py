"""Graph controller façade and store diffing."""

from .diff import GraphDiff, compute_graph_diff
from .graph_controller import GraphController

__all__ = ["GraphController", "GraphDiff", "compute_graph_diff"]
