# src/streamplan/core/logical/graph.py
"""Immutable logical dataflow graph.

The authoring API (operator chaining, user functions) lives outside this
package; what reaches the planner is a plain node-and-edge graph of
enum-tagged operators. Construction validates each operator's local shape;
global properties (acyclicity, join traceability) are checked by the
physical graph builder.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import cast

import networkx as nx
from networkx import DiGraph

from streamplan.contracts import GraphStructureError, OperatorID, OperatorKind, StreamDescriptor

# Number of inputs each operator kind must declare
_INPUT_ARITY: dict[OperatorKind, int] = {
    OperatorKind.SOURCE: 0,
    OperatorKind.SINK: 1,
    OperatorKind.MAP: 1,
    OperatorKind.FILTER: 1,
    OperatorKind.REPARTITION: 1,
    OperatorKind.JOIN: 2,
}


@dataclass(frozen=True, slots=True)
class OperatorNode:
    """One operator in the logical graph.

    Attributes:
        operator_id: Unique id within the graph
        kind: What the operator does at plan time
        inputs: Upstream operator ids, in declaration order (left, right for joins)
        stream: The external stream read or written (sources and sinks only)
    """

    operator_id: OperatorID
    kind: OperatorKind
    inputs: tuple[OperatorID, ...] = ()
    stream: StreamDescriptor | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.operator_id, str) or not self.operator_id.strip():
            raise GraphStructureError("operator_id must be a non-empty string")
        # Accept plain strings for kind and lists for inputs from loaders
        object.__setattr__(self, "kind", OperatorKind(self.kind))
        object.__setattr__(self, "inputs", tuple(OperatorID(i) for i in self.inputs))

        expected = _INPUT_ARITY[self.kind]
        if len(self.inputs) != expected:
            raise GraphStructureError(
                f"{self.kind} operator '{self.operator_id}' must have exactly {expected} input(s), got {len(self.inputs)}",
                operator_ids=[self.operator_id],
            )
        has_stream = self.kind in (OperatorKind.SOURCE, OperatorKind.SINK)
        if has_stream and self.stream is None:
            raise GraphStructureError(
                f"{self.kind} operator '{self.operator_id}' must name a stream",
                operator_ids=[self.operator_id],
            )
        if not has_stream and self.stream is not None:
            raise GraphStructureError(
                f"{self.kind} operator '{self.operator_id}' cannot name a stream",
                operator_ids=[self.operator_id],
            )


class LogicalGraph:
    """Read-only DAG of operators over stream descriptors.

    Wraps a frozen NetworkX DiGraph; edges run from an operator to each of
    its consumers. The planner never mutates this structure.
    """

    def __init__(self, nodes: Iterable[OperatorNode]) -> None:
        by_id: dict[OperatorID, OperatorNode] = {}
        for node in nodes:
            if node.operator_id in by_id:
                raise GraphStructureError(
                    f"Duplicate operator id: '{node.operator_id}'",
                    operator_ids=[node.operator_id],
                )
            by_id[node.operator_id] = node

        graph: DiGraph[str] = nx.DiGraph()
        for operator_id in by_id:
            graph.add_node(operator_id)
        for node in by_id.values():
            for upstream_id in node.inputs:
                upstream = by_id.get(upstream_id)
                if upstream is None:
                    raise GraphStructureError(
                        f"Operator '{node.operator_id}' consumes unknown operator '{upstream_id}'",
                        operator_ids=[node.operator_id, upstream_id],
                    )
                if upstream.kind == OperatorKind.SINK:
                    raise GraphStructureError(
                        f"Operator '{node.operator_id}' consumes sink '{upstream_id}'; sinks are terminal",
                        operator_ids=[node.operator_id, upstream_id],
                    )
                graph.add_edge(upstream_id, node.operator_id)

        self._nodes = by_id
        self._graph: DiGraph[str] = nx.freeze(graph)

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[OperatorNode]:
        return iter(self._nodes.values())

    def __contains__(self, operator_id: object) -> bool:
        return operator_id in self._nodes

    @property
    def nodes(self) -> list[OperatorNode]:
        """All operators, in declaration order."""
        return list(self._nodes.values())

    def get_node(self, operator_id: str) -> OperatorNode:
        """Get an operator by id.

        Raises:
            KeyError: If the operator doesn't exist
        """
        if operator_id not in self._nodes:
            raise KeyError(f"Operator not found: {operator_id}")
        return self._nodes[OperatorID(operator_id)]

    def of_kind(self, kind: OperatorKind) -> list[OperatorNode]:
        return [node for node in self._nodes.values() if node.kind == kind]

    def sources(self) -> list[OperatorNode]:
        return self.of_kind(OperatorKind.SOURCE)

    def sinks(self) -> list[OperatorNode]:
        return self.of_kind(OperatorKind.SINK)

    def joins(self) -> list[OperatorNode]:
        return self.of_kind(OperatorKind.JOIN)

    def repartitions(self) -> list[OperatorNode]:
        return self.of_kind(OperatorKind.REPARTITION)

    def upstream(self, operator_id: str) -> list[OperatorNode]:
        """Direct inputs of an operator, in declaration order."""
        return [self._nodes[i] for i in self.get_node(operator_id).inputs]

    def downstream(self, operator_id: str) -> list[OperatorNode]:
        """Direct consumers of an operator, sorted by id."""
        self.get_node(operator_id)
        return [self._nodes[OperatorID(i)] for i in sorted(self._graph.successors(operator_id))]

    def ancestors(self, operator_id: str) -> set[OperatorID]:
        """Ids of every operator upstream of operator_id (transitively)."""
        self.get_node(operator_id)
        return {OperatorID(i) for i in nx.ancestors(self._graph, operator_id)}

    def is_acyclic(self) -> bool:
        return nx.is_directed_acyclic_graph(self._graph)

    def find_cycle(self) -> list[OperatorID]:
        """Operator ids along one cycle, or an empty list if the graph is a DAG."""
        try:
            cycle = nx.find_cycle(self._graph)
        except nx.NetworkXNoCycle:
            return []
        return [OperatorID(edge[0]) for edge in cycle]

    def topological_order(self) -> list[OperatorNode]:
        """Operators in deterministic topological order.

        Ties are broken lexicographically by operator id, so the same graph
        always yields the same order regardless of declaration order.

        Raises:
            GraphStructureError: If the graph has a cycle
        """
        try:
            order = list(nx.lexicographical_topological_sort(self._graph))
        except nx.NetworkXUnfeasible as e:
            cycle = self.find_cycle()
            raise GraphStructureError(
                f"Logical graph contains a cycle: {' -> '.join(cycle)}",
                operator_ids=cycle,
            ) from e
        return [self._nodes[OperatorID(cast(str, i))] for i in order]
