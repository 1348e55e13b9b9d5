# tests/property/core/test_join_group_properties.py
"""Property-based tests for co-partitioning groups and partition resolution.

Generated graphs are made of independent join components. Each component
reads several streams, repartitions all but the first, and folds them into
a chain of joins ending in one sink. Every component must become exactly
one co-partitioning group, and every repartitioned stream must end up with
the partition count of the component's directly joined source.
"""

from __future__ import annotations

import random
from dataclasses import dataclass

import networkx as nx
from hypothesis import given
from hypothesis import strategies as st

from streamplan.contracts import EdgeCategory, OperatorKind, StreamDescriptor
from streamplan.core.logical import LogicalGraph, OperatorNode
from streamplan.core.plan import (
    DisjointSet,
    PhysicalGraph,
    assign_partitions,
    build_physical_graph,
    compute_join_groups,
    fetch_stream_partitions,
)
from streamplan.metadata import providers_from_mapping
from tests.fixtures.graphs import op
from tests.property.settings import DETERMINISM_SETTINGS, STANDARD_SETTINGS

SYSTEM = "kafka"
INTERMEDIATE_SYSTEM = "kafka-internal"


@dataclass(frozen=True)
class JoinComponents:
    """A generated logical graph plus the partition table it reads."""

    graph: LogicalGraph
    nodes: list[OperatorNode]
    partitions: dict[str, int]
    # Count of the directly joined source, per component
    expected: list[int]


# =============================================================================
# Strategies
# =============================================================================


@st.composite
def join_components(draw: st.DrawFn, max_components: int = 4, max_width: int = 4) -> JoinComponents:
    """Generate K independent join components of 2..max_width inputs each."""
    widths = draw(st.lists(st.integers(min_value=2, max_value=max_width), min_size=1, max_size=max_components))
    nodes: list[OperatorNode] = []
    partitions: dict[str, int] = {}
    expected: list[int] = []

    for k, width in enumerate(widths):
        counts = draw(st.lists(st.integers(min_value=1, max_value=256), min_size=width, max_size=width))
        expected.append(counts[0])
        heads: list[str] = []
        for i, count in enumerate(counts):
            stream = f"c{k}-in{i}"
            partitions[stream] = count
            nodes.append(op(f"c{k}_src{i}", "source", stream=StreamDescriptor.of(stream, stream, SYSTEM)))
            if i == 0:
                heads.append(f"c{k}_src{i}")
            else:
                nodes.append(op(f"c{k}_rep{i}", "repartition", f"c{k}_src{i}"))
                heads.append(f"c{k}_rep{i}")

        joined = heads[0]
        for i, head in enumerate(heads[1:], start=1):
            nodes.append(op(f"c{k}_join{i}", "join", joined, head))
            joined = f"c{k}_join{i}"

        out = f"c{k}-out"
        partitions[out] = draw(st.integers(min_value=1, max_value=256))
        nodes.append(op(f"c{k}_sink", "sink", joined, stream=StreamDescriptor.of(out, out, SYSTEM)))

    return JoinComponents(graph=LogicalGraph(nodes), nodes=nodes, partitions=partitions, expected=expected)


def _build(graph: LogicalGraph) -> PhysicalGraph:
    return build_physical_graph(graph, job_name="prop", job_id="1", intermediate_system=INTERMEDIATE_SYSTEM)


def _resolved(components: JoinComponents) -> PhysicalGraph:
    physical = _build(components.graph)
    fetch_stream_partitions(physical, providers_from_mapping({SYSTEM: components.partitions}))
    assign_partitions(physical)
    return physical


# =============================================================================
# Join group properties
# =============================================================================


class TestJoinGroupProperties:
    @given(components=join_components())
    @STANDARD_SETTINGS
    def test_one_group_per_component(self, components: JoinComponents) -> None:
        groups = compute_join_groups(_build(components.graph))

        assert len(groups) == len(components.expected)

    @given(components=join_components())
    @STANDARD_SETTINGS
    def test_groups_partition_the_join_inputs(self, components: JoinComponents) -> None:
        physical = _build(components.graph)
        groups = compute_join_groups(physical)

        members = [d for g in groups for d in g.members]
        all_inputs = {d for inputs in physical.join_inputs.values() for d in inputs}
        assert len(members) == len(set(members))
        assert set(members) == all_inputs

    @given(components=join_components())
    @STANDARD_SETTINGS
    def test_every_join_inside_a_single_group(self, components: JoinComponents) -> None:
        physical = _build(components.graph)
        groups = compute_join_groups(physical)

        for inputs in physical.join_inputs.values():
            assert sum(1 for g in groups if inputs <= set(g.members)) == 1


# =============================================================================
# Resolution properties
# =============================================================================


class TestResolutionProperties:
    @given(components=join_components())
    @STANDARD_SETTINGS
    def test_intermediates_match_joined_source(self, components: JoinComponents) -> None:
        physical = _resolved(components)

        for edge in physical.intermediate_edges:
            (producer,) = physical.producers_of(edge.descriptor)
            component = int(producer.split("_")[0][1:])
            assert edge.partition_count == components.expected[component]

    @given(components=join_components())
    @STANDARD_SETTINGS
    def test_authoritative_counts_preserved(self, components: JoinComponents) -> None:
        physical = _resolved(components)

        for edge in physical.edges:
            if edge.category is not EdgeCategory.INTERMEDIATE:
                assert edge.partition_count == components.partitions[edge.descriptor.physical_name]

    @given(components=join_components())
    @STANDARD_SETTINGS
    def test_resolution_idempotent(self, components: JoinComponents) -> None:
        physical = _resolved(components)
        physical.freeze()
        first = [(e.descriptor, e.partition_count) for e in physical.edges]

        fetch_stream_partitions(physical, providers_from_mapping({SYSTEM: components.partitions}))
        assign_partitions(physical)

        assert [(e.descriptor, e.partition_count) for e in physical.edges] == first


# =============================================================================
# Determinism properties
# =============================================================================


class TestDeterminismProperties:
    @given(components=join_components(), seed=st.integers(min_value=0, max_value=2**32 - 1))
    @DETERMINISM_SETTINGS
    def test_plan_independent_of_declaration_order(self, components: JoinComponents, seed: int) -> None:
        shuffled = list(components.nodes)
        random.Random(seed).shuffle(shuffled)
        reordered = JoinComponents(LogicalGraph(shuffled), shuffled, components.partitions, components.expected)

        assert _resolved(components).describe() == _resolved(reordered).describe()

    @given(components=join_components())
    @STANDARD_SETTINGS
    def test_topological_order_respects_inputs(self, components: JoinComponents) -> None:
        position = {node.operator_id: i for i, node in enumerate(components.graph.topological_order())}

        for node in components.graph:
            assert all(position[upstream] < position[node.operator_id] for upstream in node.inputs)
            if node.kind is OperatorKind.SOURCE:
                assert not node.inputs


# =============================================================================
# Union-find properties
# =============================================================================


class TestDisjointSetProperties:
    @given(
        size=st.integers(min_value=1, max_value=40),
        data=st.data(),
    )
    @STANDARD_SETTINGS
    def test_matches_connected_components(self, size: int, data: st.DataObject) -> None:
        index = st.integers(min_value=0, max_value=size - 1)
        pairs = data.draw(st.lists(st.tuples(index, index), max_size=60))

        ds = DisjointSet(size)
        reference: nx.Graph[int] = nx.Graph()
        reference.add_nodes_from(range(size))
        for a, b in pairs:
            ds.union(a, b)
            reference.add_edge(a, b)

        for component in nx.connected_components(reference):
            assert len({ds.find(i) for i in component}) == 1
        assert len({ds.find(i) for i in range(size)}) == nx.number_connected_components(reference)
