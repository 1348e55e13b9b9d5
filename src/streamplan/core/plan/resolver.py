# src/streamplan/core/plan/resolver.py
"""Partition count resolution for a physical graph.

Resolution runs in four steps:

1. Source and Sink edges take the count reported by the external system
   that owns them (fetch_stream_partitions). These edges are authoritative:
   planning can never change them.
2. Edges feeding joins are grouped with a union-find over the join inputs
   (compute_join_groups). Groups are transitively closed: joining A with B
   and B with C puts A, B and C in one group.
3. Every member of a group gets the group's single authoritative count.
   Disagreeing authoritative counts are a hard error, never reconciled.
   Groups without authoritative members fall back to previously resolved
   intermediate counts, then to job.default.partitions.
4. Intermediate edges outside any group keep a previous count, else take
   job.default.partitions, else the largest Source/Sink count in the graph.

Running resolution on an already-resolved graph changes nothing.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping
from concurrent.futures import Future, ThreadPoolExecutor

import structlog

from streamplan.contracts import (
    CoPartitionGroup,
    MetadataUnavailableError,
    PartitionConflictError,
    PlanningError,
    StreamDescriptor,
    StreamName,
    SystemMetadataProvider,
    SystemName,
    UnresolvedPartitionError,
)
from streamplan.core.config import PlannerSettings
from streamplan.core.plan.graph import PhysicalGraph

logger = structlog.get_logger(__name__)


class DisjointSet:
    """Union-find over integer ids with path compression and union by rank."""

    def __init__(self, size: int) -> None:
        self._parent: list[int] = list(range(size))
        self._rank: list[int] = [0] * size

    def __len__(self) -> int:
        return len(self._parent)

    def find(self, item: int) -> int:
        root = item
        while self._parent[root] != root:
            root = self._parent[root]
        while self._parent[item] != root:
            self._parent[item], item = root, self._parent[item]
        return root

    def union(self, a: int, b: int) -> int:
        """Merge the sets holding a and b; returns the surviving root."""
        root_a, root_b = self.find(a), self.find(b)
        if root_a == root_b:
            return root_a
        if self._rank[root_a] < self._rank[root_b]:
            root_a, root_b = root_b, root_a
        self._parent[root_b] = root_a
        if self._rank[root_a] == self._rank[root_b]:
            self._rank[root_a] += 1
        return root_a


def compute_join_groups(graph: PhysicalGraph) -> list[CoPartitionGroup]:
    """Derive co-partitioning groups from the graph's join inputs.

    Pure: reads the graph, never mutates it. One group per connected
    component of the join topology, sorted by members.
    """
    join_inputs = graph.join_inputs
    # Edge index table for the parent arrays
    table: list[StreamDescriptor] = sorted({d for inputs in join_inputs.values() for d in inputs})
    index = {descriptor: i for i, descriptor in enumerate(table)}

    groups = DisjointSet(len(table))
    for join_id in sorted(join_inputs):
        first, *rest = sorted(join_inputs[join_id])
        for other in rest:
            groups.union(index[first], index[other])

    members: dict[int, list[StreamDescriptor]] = defaultdict(list)
    for descriptor, i in index.items():
        members[groups.find(i)].append(descriptor)
    return sorted((CoPartitionGroup(tuple(m)) for m in members.values()), key=lambda g: g.members)


def _fetch_system(
    providers: Mapping[str, SystemMetadataProvider],
    system_name: SystemName,
    stream_names: list[StreamName],
) -> dict[StreamName, int]:
    provider = providers.get(system_name)
    if provider is None:
        raise MetadataUnavailableError(
            f"No metadata provider registered for system '{system_name}'. Registered: {sorted(providers)}",
            system_name=system_name,
            stream_names=stream_names,
        )
    try:
        reported = provider.get_partition_counts(system_name, frozenset(stream_names))
    except PlanningError:
        raise
    except Exception as e:
        raise MetadataUnavailableError(
            f"System '{system_name}' failed to report partition counts: {e}",
            system_name=system_name,
            stream_names=stream_names,
        ) from e

    absent = [name for name in stream_names if name not in reported or reported[name] <= 0]
    if absent:
        raise MetadataUnavailableError(
            f"System '{system_name}' reports no partitions for stream(s): {', '.join(sorted(absent))}",
            system_name=system_name,
            stream_names=absent,
        )
    return {name: int(reported[name]) for name in stream_names}


def fetch_stream_partitions(
    graph: PhysicalGraph,
    providers: Mapping[str, SystemMetadataProvider],
    *,
    max_workers: int = 4,
) -> None:
    """Set every Source and Sink edge to its externally reported count.

    Each system is queried exactly once, with all of its streams in one
    batch. Distinct systems are queried concurrently when max_workers > 1.
    When several systems fail, the error of the first system in sorted
    order is raised, so failures are reported deterministically.

    Raises:
        MetadataUnavailableError: If a system has no provider, its provider
            raised, or it reported a stream as absent.
    """
    by_system: dict[SystemName, list[StreamDescriptor]] = defaultdict(list)
    for edge in graph.edges:
        if edge.is_authoritative:
            by_system[edge.descriptor.system_name].append(edge.descriptor)
    if not by_system:
        return

    requests = {system: sorted({d.physical_name for d in descriptors}) for system, descriptors in by_system.items()}
    results: dict[SystemName, dict[StreamName, int]] = {}
    if max_workers <= 1 or len(requests) == 1:
        for system in sorted(requests):
            results[system] = _fetch_system(providers, system, requests[system])
    else:
        with ThreadPoolExecutor(max_workers=min(max_workers, len(requests)), thread_name_prefix="streamplan-metadata") as pool:
            futures: dict[SystemName, Future[dict[StreamName, int]]] = {
                system: pool.submit(_fetch_system, providers, system, names) for system, names in requests.items()
            }
            for system in sorted(futures):
                results[system] = futures[system].result()

    for system, descriptors in sorted(by_system.items()):
        for descriptor in descriptors:
            _assign(graph, [descriptor], results[system][descriptor.physical_name])
        logger.debug("Fetched partition counts", system=system, streams=len(descriptors))


def _resolve_group(graph: PhysicalGraph, group: CoPartitionGroup, default_partitions: int | None) -> int:
    edges = [graph.get_edge(d) for d in group.members]

    authoritative = {e.descriptor: e.partition_count for e in edges if e.is_authoritative}
    if authoritative:
        candidates = authoritative
    else:
        candidates = {e.descriptor: e.partition_count for e in edges if e.is_resolved}

    if len(set(candidates.values())) > 1:
        detail = ", ".join(f"{d}={count}" for d, count in sorted(candidates.items()))
        raise PartitionConflictError(
            f"Joined streams must have the same partition count, found: {detail}",
            counts=candidates,
            group=group.members,
        )
    if candidates:
        return next(iter(candidates.values()))
    if default_partitions is not None:
        return default_partitions
    raise UnresolvedPartitionError(
        f"Cannot resolve partitions for joined streams {', '.join(str(d) for d in group.members)}: "
        "no input or output stream fixes the count and job.default.partitions is not set",
        descriptors=group.members,
    )


def assign_partitions(graph: PhysicalGraph, *, default_partitions: int | None = None) -> list[CoPartitionGroup]:
    """Assign counts to every Intermediate edge (steps 2-4).

    Source and Sink edges must already be resolved (fetch_stream_partitions).

    Returns:
        The co-partitioning groups used for resolution.

    Raises:
        PartitionConflictError: If a group has disagreeing counts
        UnresolvedPartitionError: If a count cannot be determined, or a
            Source/Sink edge was never fetched
    """
    unfetched = [e.descriptor for e in graph.edges if e.is_authoritative and not e.is_resolved]
    if unfetched:
        raise UnresolvedPartitionError(
            f"Partition counts of input/output streams must be fetched before assignment: {', '.join(str(d) for d in unfetched)}",
            descriptors=unfetched,
        )

    groups = compute_join_groups(graph)
    grouped: set[StreamDescriptor] = set()
    for group in groups:
        value = _resolve_group(graph, group, default_partitions)
        _assign(graph, (d for d in group.members if not graph.get_edge(d).is_authoritative), value)
        grouped.update(group.members)
        logger.debug("Resolved co-partitioning group", members=[str(d) for d in group.members], partitions=value)

    pending = [e.descriptor for e in graph.intermediate_edges if e.descriptor not in grouped and not e.is_resolved]
    if pending:
        if default_partitions is not None:
            value = default_partitions
        else:
            authoritative_counts = [e.partition_count for e in graph.edges if e.is_authoritative]
            if not authoritative_counts:
                raise UnresolvedPartitionError(
                    "Intermediate streams have no constraint, job.default.partitions is not set "
                    f"and the graph has no input or output stream: {', '.join(str(d) for d in pending)}",
                    descriptors=pending,
                )
            value = max(authoritative_counts)
        _assign(graph, pending, value)
        logger.debug("Resolved unconstrained intermediate streams", streams=len(pending), partitions=value)

    return groups


def _assign(graph: PhysicalGraph, descriptors: Iterable[StreamDescriptor], value: int) -> None:
    """Set counts, leaving edges that already carry value untouched (frozen plans stay valid)."""
    for descriptor in descriptors:
        if graph.get_edge(descriptor).partition_count != value:
            graph.set_partition_count(descriptor, value)


def resolve(
    graph: PhysicalGraph,
    providers: Mapping[str, SystemMetadataProvider],
    settings: PlannerSettings,
) -> None:
    """Resolve the partition count of every edge in place (steps 1-4)."""
    fetch_stream_partitions(graph, providers, max_workers=settings.planner.metadata.max_workers)
    assign_partitions(graph, default_partitions=settings.default_partitions)
