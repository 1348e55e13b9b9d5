"""Logical dataflow graph consumed by the planner."""

from streamplan.core.logical.graph import LogicalGraph, OperatorNode
from streamplan.core.logical.loader import load_logical_graph, logical_graph_from_dict

__all__ = [
    "LogicalGraph",
    "OperatorNode",
    "load_logical_graph",
    "logical_graph_from_dict",
]
