# src/streamplan/core/plan/builder.py
"""Physical graph construction from a logical graph.

Deterministic and free of I/O: the same logical graph always compiles to
the same edges, the same generated intermediate stream names and the same
operator topology. Partition counts are left unresolved for resolver.py.
"""

from __future__ import annotations

from typing import Any

import structlog

from streamplan.contracts import (
    EdgeCategory,
    GraphStructureError,
    OperatorID,
    OperatorKind,
    StreamDescriptor,
)
from streamplan.core.canonical import stable_hash
from streamplan.core.logical import LogicalGraph, OperatorNode
from streamplan.core.plan.graph import PhysicalGraph, TopologyNode, operator_node, stream_node

logger = structlog.get_logger(__name__)

# Hex characters of the chain hash kept in generated stream names (48 bits)
_NAME_HASH_LENGTH = 12


def intermediate_stream_name(logical_graph: LogicalGraph, operator_id: str, *, job_name: str, job_id: str) -> str:
    """Generate the physical name of a repartition operator's stream.

    The name embeds a hash of the operator chain upstream of the
    repartition (kinds, ids, wiring and external streams), so renaming or
    rewiring anything upstream yields a new stream while repeated planning
    of the same graph yields the same one.
    """
    chain_ids = logical_graph.ancestors(operator_id) | {OperatorID(operator_id)}
    chain: list[dict[str, Any]] = [
        {
            "id": node.operator_id,
            "kind": node.kind,
            "inputs": list(node.inputs),
            "stream": node.stream.qualified_name if node.stream is not None else None,
        }
        for node in logical_graph.topological_order()
        if node.operator_id in chain_ids
    ]
    chain_hash = stable_hash(chain)[:_NAME_HASH_LENGTH]
    return f"{job_name}-{job_id}-partition_by-{operator_id}-{chain_hash}"


def build_physical_graph(
    logical_graph: LogicalGraph,
    *,
    job_name: str,
    job_id: str,
    intermediate_system: str | None = None,
) -> PhysicalGraph:
    """Compile a logical graph into a physical graph with unresolved partitions.

    Source operators contribute Source edges, sink operators Sink edges, and
    every repartition operator exactly one Intermediate edge hosted on
    intermediate_system. For each join, the edges feeding it are found by
    tracing both inputs upstream through map/filter operators to the
    nearest Source or Intermediate edge; tracing through an upstream join
    yields that join's inputs, which are co-partitioned with its output.

    Args:
        logical_graph: Graph to compile (read only)
        job_name: Job name, embedded in intermediate stream names
        job_id: Job instance id, embedded in intermediate stream names
        intermediate_system: System hosting intermediate streams

    Returns:
        PhysicalGraph whose edges all have partition_count == -1

    Raises:
        GraphStructureError: On cycles, untraceable join inputs, a physical
            stream reused by distinct logical streams or in conflicting
            roles, or repartitions with no intermediate system.
    """
    # Raises GraphStructureError naming the cycle
    order = logical_graph.topological_order()

    repartitions = logical_graph.repartitions()
    if repartitions and intermediate_system is None:
        raise GraphStructureError(
            "Graph contains repartition operators but no system is configured for intermediate streams (job.default.system)",
            operator_ids=[node.operator_id for node in repartitions],
        )

    graph = PhysicalGraph()
    # Topology node carrying each operator's output downstream
    outputs: dict[OperatorID, TopologyNode] = {}
    # Edges each operator's output is partitioned like
    feeding: dict[OperatorID, frozenset[StreamDescriptor]] = {}

    for node in order:
        op_id = node.operator_id
        graph.add_operator(op_id, node.kind)
        for upstream_id in node.inputs:
            graph.connect(outputs[upstream_id], operator_node(op_id))
        outputs[op_id] = operator_node(op_id)

        match node.kind:
            case OperatorKind.SOURCE:
                descriptor = _stream_of(node)
                graph.add_stream_edge(descriptor, EdgeCategory.SOURCE)
                graph.connect(stream_node(descriptor), operator_node(op_id))
                feeding[op_id] = frozenset({descriptor})
            case OperatorKind.SINK:
                descriptor = _stream_of(node)
                graph.add_stream_edge(descriptor, EdgeCategory.SINK)
                graph.connect(operator_node(op_id), stream_node(descriptor))
                feeding[op_id] = frozenset()
            case OperatorKind.REPARTITION:
                name = intermediate_stream_name(logical_graph, op_id, job_name=job_name, job_id=job_id)
                # intermediate_system checked above
                descriptor = StreamDescriptor.of(name, name, str(intermediate_system))
                graph.add_stream_edge(descriptor, EdgeCategory.INTERMEDIATE)
                graph.connect(operator_node(op_id), stream_node(descriptor))
                outputs[op_id] = stream_node(descriptor)
                feeding[op_id] = frozenset({descriptor})
            case OperatorKind.MAP | OperatorKind.FILTER:
                feeding[op_id] = feeding[node.inputs[0]]
            case OperatorKind.JOIN:
                sides = [feeding[upstream_id] for upstream_id in node.inputs]
                for upstream_id, side in zip(node.inputs, sides, strict=True):
                    if not side:
                        raise GraphStructureError(
                            f"Join '{op_id}' input '{upstream_id}' cannot be traced to an upstream source or repartition stream",
                            operator_ids=[op_id, upstream_id],
                        )
                joined = sides[0] | sides[1]
                graph.record_join(op_id, joined)
                feeding[op_id] = joined

    logger.debug(
        "Physical graph built",
        operators=len(order),
        sources=len(graph.sources),
        sinks=len(graph.sinks),
        intermediate=len(graph.intermediate_edges),
        joins=len(graph.join_inputs),
    )
    return graph


def _stream_of(node: OperatorNode) -> StreamDescriptor:
    # OperatorNode guarantees sources and sinks name a stream
    if node.stream is None:
        raise GraphStructureError(f"{node.kind} operator '{node.operator_id}' has no stream", operator_ids=[node.operator_id])
    return node.stream
