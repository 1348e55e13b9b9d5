"""Physical planning: graph construction, partition resolution, orchestration.

Package re-exports for the planner's public API.
"""

from streamplan.core.plan.builder import build_physical_graph, intermediate_stream_name
from streamplan.core.plan.graph import PhysicalGraph
from streamplan.core.plan.planner import ExecutionPlanner, realize_intermediate_streams
from streamplan.core.plan.resolver import (
    DisjointSet,
    assign_partitions,
    compute_join_groups,
    fetch_stream_partitions,
    resolve,
)

__all__ = [
    "DisjointSet",
    "ExecutionPlanner",
    "PhysicalGraph",
    "assign_partitions",
    "build_physical_graph",
    "compute_join_groups",
    "fetch_stream_partitions",
    "intermediate_stream_name",
    "realize_intermediate_streams",
    "resolve",
]
