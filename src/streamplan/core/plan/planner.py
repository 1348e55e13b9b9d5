# src/streamplan/core/plan/planner.py
"""Execution planner: logical graph in, validated physical plan out.

Sequences build -> metadata fetch -> partition assignment -> validation.
Errors from any phase propagate unchanged and the partially built graph
is discarded; callers only ever see a complete, frozen plan.
"""

from __future__ import annotations

import time
from collections.abc import Mapping

import structlog

from streamplan.contracts import MetadataUnavailableError, PlanningError, SystemMetadataProvider
from streamplan.core.config import PlannerSettings
from streamplan.core.logical import LogicalGraph
from streamplan.core.plan.builder import build_physical_graph
from streamplan.core.plan.graph import PhysicalGraph
from streamplan.core.plan.resolver import assign_partitions, fetch_stream_partitions

logger = structlog.get_logger(__name__)


class ExecutionPlanner:
    """Compiles logical graphs into partition-resolved physical graphs.

    Holds only read-only settings: each plan() call owns the graph it
    builds, and nothing persists between calls.

    Usage:
        planner = ExecutionPlanner(PlannerSettings.from_config_map(job_config))
        plan = planner.plan(logical_graph, {"kafka": kafka_metadata})
        for edge in plan.intermediate_edges:
            ...
    """

    def __init__(self, settings: PlannerSettings | None = None) -> None:
        self._settings = settings or PlannerSettings()

    @property
    def settings(self) -> PlannerSettings:
        return self._settings

    def build(self, logical_graph: LogicalGraph) -> PhysicalGraph:
        """Compile the graph structure only; partitions stay unresolved."""
        return build_physical_graph(
            logical_graph,
            job_name=self._settings.job.name,
            job_id=self._settings.job.id,
            intermediate_system=self._settings.default_system,
        )

    def plan(
        self,
        logical_graph: LogicalGraph,
        providers: Mapping[str, SystemMetadataProvider],
    ) -> PhysicalGraph:
        """Build, resolve and validate a physical plan.

        Args:
            logical_graph: Graph to compile (never mutated)
            providers: Metadata provider for each external system the graph
                references, keyed by system name

        Returns:
            Frozen PhysicalGraph where every edge has a positive partition count

        Raises:
            GraphStructureError: If the logical graph is malformed
            MetadataUnavailableError: If a system cannot report its streams
            PartitionConflictError: If joined streams disagree on partitions
            UnresolvedPartitionError: If a count cannot be determined
        """
        log = logger.bind(job=self._settings.job.name, job_id=self._settings.job.id)
        started = time.monotonic()

        graph = self.build(logical_graph)
        log.info(
            "Planning started",
            sources=len(graph.sources),
            sinks=len(graph.sinks),
            intermediate=len(graph.intermediate_edges),
            systems=graph.systems,
        )

        fetch_stream_partitions(graph, providers, max_workers=self._settings.planner.metadata.max_workers)
        groups = assign_partitions(graph, default_partitions=self._settings.default_partitions)
        graph.validate()
        graph.freeze()

        log.info(
            "Planning completed",
            join_groups=len(groups),
            duration_ms=round((time.monotonic() - started) * 1000, 2),
        )
        return graph


def realize_intermediate_streams(
    graph: PhysicalGraph,
    providers: Mapping[str, SystemMetadataProvider],
) -> list[str]:
    """Provision every intermediate stream of a finished plan.

    Returns:
        Qualified names of the streams created, in plan order.

    Raises:
        ValueError: If the graph has not been validated and frozen
        MetadataUnavailableError: If a system has no provider or fails to
            create a stream
    """
    if not graph.is_frozen:
        raise ValueError("Only validated (frozen) plans can be realized; call ExecutionPlanner.plan() first")

    created: list[str] = []
    for edge in graph.intermediate_edges:
        descriptor = edge.descriptor
        provider = providers.get(descriptor.system_name)
        if provider is None:
            raise MetadataUnavailableError(
                f"No metadata provider registered for system '{descriptor.system_name}'",
                system_name=descriptor.system_name,
                stream_names=[descriptor.physical_name],
            )
        try:
            ok = provider.create_physical_stream(descriptor.system_name, descriptor.physical_name, edge.partition_count)
        except PlanningError:
            raise
        except Exception as e:
            raise MetadataUnavailableError(
                f"System '{descriptor.system_name}' failed to create stream '{descriptor.physical_name}': {e}",
                system_name=descriptor.system_name,
                stream_names=[descriptor.physical_name],
            ) from e
        if not ok:
            raise MetadataUnavailableError(
                f"System '{descriptor.system_name}' refused to create stream '{descriptor.physical_name}' "
                f"with {edge.partition_count} partitions",
                system_name=descriptor.system_name,
                stream_names=[descriptor.physical_name],
            )
        logger.info("Created intermediate stream", stream=descriptor.qualified_name, partitions=edge.partition_count)
        created.append(descriptor.qualified_name)
    return created
