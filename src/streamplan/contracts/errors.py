"""Planning error taxonomy.

Every error is terminal to a single planning run: nothing here is retried
internally or downgraded to a warning. Each carries the identity a caller
needs for an actionable diagnostic (descriptors, operator ids, system name).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType

from streamplan.contracts.streams import StreamDescriptor
from streamplan.contracts.types import OperatorID, StreamName, SystemName


class PlanningError(Exception):
    """Base class for all errors raised while compiling a plan."""


class GraphStructureError(PlanningError):
    """Raised when the logical graph is malformed.

    Covers cycles, join inputs that cannot be traced to an upstream edge,
    operators with the wrong number of inputs, and a physical stream reused
    by distinct logical streams or with conflicting roles.
    """

    def __init__(
        self,
        message: str,
        *,
        operator_ids: Iterable[OperatorID] = (),
        descriptors: Iterable[StreamDescriptor] = (),
    ) -> None:
        super().__init__(message)
        self.operator_ids: tuple[OperatorID, ...] = tuple(operator_ids)
        self.descriptors: tuple[StreamDescriptor, ...] = tuple(descriptors)


class MetadataUnavailableError(PlanningError):
    """Raised when an external system cannot report a stream's partitions.

    Either the system was unreachable (no provider, or the provider raised)
    or it reported the requested streams as absent.
    """

    def __init__(
        self,
        message: str,
        *,
        system_name: SystemName,
        stream_names: Iterable[StreamName] = (),
    ) -> None:
        super().__init__(message)
        self.system_name = system_name
        self.stream_names: tuple[StreamName, ...] = tuple(sorted(stream_names))


class PartitionConflictError(PlanningError):
    """Raised when a co-partitioning group has disagreeing resolved counts.

    Never auto-reconciled: picking one side would corrupt the join's key
    distribution.
    """

    def __init__(
        self,
        message: str,
        *,
        counts: Mapping[StreamDescriptor, int],
        group: Iterable[StreamDescriptor] = (),
    ) -> None:
        super().__init__(message)
        self.counts: Mapping[StreamDescriptor, int] = MappingProxyType(dict(sorted(counts.items())))
        self.group: tuple[StreamDescriptor, ...] = tuple(group)

    @property
    def descriptors(self) -> tuple[StreamDescriptor, ...]:
        """The conflicting edges."""
        return tuple(self.counts)


class UnresolvedPartitionError(PlanningError):
    """Raised when edges have no authoritative count and no default applies."""

    def __init__(self, message: str, *, descriptors: Iterable[StreamDescriptor]) -> None:
        super().__init__(message)
        self.descriptors: tuple[StreamDescriptor, ...] = tuple(sorted(descriptors))
