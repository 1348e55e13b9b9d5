# src/streamplan/core/plan/graph.py
"""PhysicalGraph class: the compiled plan handed to the execution engine.

Construction logic lives in builder.py and partition assignment in
resolver.py; this module contains the graph class with its query,
mutation and validation operations.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any

import networkx as nx
from networkx import DiGraph

from streamplan.contracts import (
    EdgeCategory,
    GraphStructureError,
    OperatorID,
    OperatorKind,
    StreamDescriptor,
    StreamEdge,
    UnresolvedPartitionError,
)

# Topology node keys. Operators and streams share one NetworkX graph, so
# keys are tagged tuples to keep the two namespaces disjoint.
type TopologyNode = tuple[str, ...]


def operator_node(operator_id: str) -> TopologyNode:
    return ("operator", operator_id)


def stream_node(descriptor: StreamDescriptor) -> TopologyNode:
    return ("stream", descriptor.system_name, descriptor.physical_name)


class PhysicalGraph:
    """Stream edges plus the operator topology that reads and writes them.

    Wraps a NetworkX DiGraph whose nodes are operators and streams: an edge
    stream -> operator means the operator consumes the stream, an edge
    operator -> stream means it produces it. Join inputs are recorded
    separately as the set of edges feeding each join.

    Mutable while planning is in flight; freeze() makes it read-only once
    validation succeeds.
    """

    def __init__(self) -> None:
        self._graph: DiGraph[TopologyNode] = nx.DiGraph()
        self._edges: dict[StreamDescriptor, StreamEdge] = {}
        self._join_inputs: dict[OperatorID, frozenset[StreamDescriptor]] = {}
        self._frozen = False

    # === Construction ===

    def add_stream_edge(self, descriptor: StreamDescriptor, category: EdgeCategory) -> StreamEdge:
        """Register a stream edge, or return the existing one.

        A physical stream may be read by several source operators, but it
        must always be the same logical stream in the same role.

        Raises:
            GraphStructureError: If the physical stream is already registered
                for a different logical stream or a different category.
        """
        self._check_mutable()
        existing = self._edges.get(descriptor)
        if existing is not None:
            if existing.descriptor.logical_id != descriptor.logical_id:
                raise GraphStructureError(
                    f"Physical stream '{descriptor}' is used by two logical streams: "
                    f"'{existing.descriptor.logical_id}' and '{descriptor.logical_id}'",
                    descriptors=[existing.descriptor, descriptor],
                )
            if existing.category != category:
                raise GraphStructureError(
                    f"Stream '{descriptor}' is used as both {existing.category} and {category}",
                    descriptors=[descriptor],
                )
            return existing

        edge = StreamEdge(descriptor=descriptor, category=category)
        self._edges[descriptor] = edge
        self._graph.add_node(stream_node(descriptor), category=category)
        return edge

    def add_operator(self, operator_id: str, kind: OperatorKind) -> None:
        self._check_mutable()
        self._graph.add_node(operator_node(operator_id), kind=kind)

    def connect(self, upstream: TopologyNode, downstream: TopologyNode) -> None:
        """Record that downstream reads what upstream emits.

        Both endpoints must already be registered.
        """
        self._check_mutable()
        for node in (upstream, downstream):
            if not self._graph.has_node(node):
                raise KeyError(f"Topology node not found: {node}")
        self._graph.add_edge(upstream, downstream)

    def record_join(self, operator_id: str, descriptors: Iterable[StreamDescriptor]) -> None:
        """Record the edges feeding a join operator."""
        self._check_mutable()
        inputs = frozenset(descriptors)
        unknown = sorted(d for d in inputs if d not in self._edges)
        if unknown:
            raise KeyError(f"Join '{operator_id}' references unregistered streams: {[str(d) for d in unknown]}")
        self._join_inputs[OperatorID(operator_id)] = inputs

    def set_partition_count(self, descriptor: StreamDescriptor, partition_count: int) -> StreamEdge:
        """Replace an edge with one carrying the given partition count.

        Raises:
            RuntimeError: If the graph has been frozen
            KeyError: If the stream is not part of the graph
        """
        self._check_mutable()
        updated = self.get_edge(descriptor).with_partitions(partition_count)
        self._edges[descriptor] = updated
        return updated

    # === Queries ===

    @property
    def edges(self) -> list[StreamEdge]:
        """All stream edges, sorted by (system, stream)."""
        return [self._edges[d] for d in sorted(self._edges)]

    def _edges_of(self, category: EdgeCategory) -> list[StreamEdge]:
        return [edge for edge in self.edges if edge.category == category]

    @property
    def sources(self) -> list[StreamEdge]:
        return self._edges_of(EdgeCategory.SOURCE)

    @property
    def sinks(self) -> list[StreamEdge]:
        return self._edges_of(EdgeCategory.SINK)

    @property
    def intermediate_edges(self) -> list[StreamEdge]:
        return self._edges_of(EdgeCategory.INTERMEDIATE)

    def get_edge(self, descriptor: StreamDescriptor) -> StreamEdge:
        """Get the edge for a stream.

        Raises:
            KeyError: If the stream is not part of the graph
        """
        if descriptor not in self._edges:
            raise KeyError(f"Stream not found: {descriptor}")
        return self._edges[descriptor]

    def has_edge(self, descriptor: StreamDescriptor) -> bool:
        return descriptor in self._edges

    @property
    def join_inputs(self) -> Mapping[OperatorID, frozenset[StreamDescriptor]]:
        """Edges feeding each join, keyed by join operator id."""
        return MappingProxyType(self._join_inputs)

    @property
    def systems(self) -> list[str]:
        """Distinct systems owning at least one edge, sorted."""
        return sorted({d.system_name for d in self._edges})

    def consumers_of(self, descriptor: StreamDescriptor) -> list[OperatorID]:
        """Operators reading a stream, sorted by id."""
        self.get_edge(descriptor)
        return sorted(OperatorID(node[1]) for node in self._graph.successors(stream_node(descriptor)))

    def producers_of(self, descriptor: StreamDescriptor) -> list[OperatorID]:
        """Operators writing a stream, sorted by id."""
        self.get_edge(descriptor)
        return sorted(OperatorID(node[1]) for node in self._graph.predecessors(stream_node(descriptor)))

    def get_nx_graph(self) -> DiGraph[TopologyNode]:
        """Return a frozen copy of the underlying topology graph."""
        return nx.freeze(self._graph.copy())  # type: ignore[no-any-return]

    # === Validation and hand-off ===

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def _check_mutable(self) -> None:
        if self._frozen:
            raise RuntimeError("PhysicalGraph is frozen; plans are immutable once validated")

    def validate(self) -> None:
        """Check that every edge carries a usable partition count.

        Raises:
            UnresolvedPartitionError: If any edge has partition_count <= 0
        """
        unresolved = [edge.descriptor for edge in self.edges if edge.partition_count <= 0]
        if unresolved:
            raise UnresolvedPartitionError(
                f"{len(unresolved)} stream(s) have no valid partition count: {', '.join(str(d) for d in unresolved)}",
                descriptors=unresolved,
            )

    def freeze(self) -> None:
        """Make the graph read-only. Idempotent."""
        if not self._frozen:
            self._graph = nx.freeze(self._graph)
            self._frozen = True

    def describe(self) -> dict[str, Any]:
        """JSON-serializable summary of the plan."""
        from streamplan.core.canonical import compute_plan_fingerprint

        def _edge_dict(edge: StreamEdge) -> dict[str, Any]:
            return {
                "logical_id": edge.descriptor.logical_id,
                "system": edge.descriptor.system_name,
                "stream": edge.descriptor.physical_name,
                "partitions": edge.partition_count,
                "producers": self.producers_of(edge.descriptor),
                "consumers": self.consumers_of(edge.descriptor),
            }

        return {
            "fingerprint": compute_plan_fingerprint(self),
            "sources": [_edge_dict(e) for e in self.sources],
            "sinks": [_edge_dict(e) for e in self.sinks],
            "intermediate": [_edge_dict(e) for e in self.intermediate_edges],
            "joins": {
                join_id: sorted(d.qualified_name for d in inputs) for join_id, inputs in sorted(self._join_inputs.items())
            },
        }

    def __repr__(self) -> str:
        return (
            f"PhysicalGraph(sources={len(self.sources)}, sinks={len(self.sinks)}, "
            f"intermediate={len(self.intermediate_edges)}, joins={len(self._join_inputs)}, frozen={self._frozen})"
        )
