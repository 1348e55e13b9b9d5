"""Stream identity and edge value types.

StreamDescriptor identifies a stream by where it physically lives; the
logical id is carried along for diagnostics but never takes part in
equality, so two descriptors naming the same physical stream are the same
map key even when different authoring code built them.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from streamplan.contracts.enums import EdgeCategory
from streamplan.contracts.types import UNRESOLVED_PARTITIONS, StreamName, SystemName


@dataclass(frozen=True, slots=True, order=True)
class StreamDescriptor:
    """One logical stream and the physical stream backing it.

    Equality, hashing and ordering use (system_name, physical_name) only.
    """

    system_name: SystemName
    physical_name: StreamName
    logical_id: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        if not self.system_name or not self.system_name.strip():
            raise ValueError("StreamDescriptor.system_name must be a non-empty string")
        if not self.physical_name or not self.physical_name.strip():
            raise ValueError("StreamDescriptor.physical_name must be a non-empty string")
        if not self.logical_id:
            # frozen dataclass: bypass __setattr__ to default the logical id
            object.__setattr__(self, "logical_id", self.physical_name)

    @classmethod
    def of(cls, logical_id: str, physical_name: str, system_name: str) -> StreamDescriptor:
        """Build a descriptor from plain strings (authoring-layer order)."""
        return cls(
            system_name=SystemName(system_name),
            physical_name=StreamName(physical_name),
            logical_id=logical_id,
        )

    @property
    def qualified_name(self) -> str:
        """'system.stream' form used in logs and error messages."""
        return f"{self.system_name}.{self.physical_name}"

    def __str__(self) -> str:
        return self.qualified_name


@dataclass(frozen=True, slots=True)
class StreamEdge:
    """One physical stream inside the physical graph.

    Immutable: the physical graph swaps in a new edge when a partition
    count is resolved (see PhysicalGraph.set_partition_count).
    """

    descriptor: StreamDescriptor
    category: EdgeCategory
    partition_count: int = UNRESOLVED_PARTITIONS

    @property
    def is_resolved(self) -> bool:
        return self.partition_count != UNRESOLVED_PARTITIONS

    @property
    def is_authoritative(self) -> bool:
        return self.category.is_authoritative

    def with_partitions(self, partition_count: int) -> StreamEdge:
        return replace(self, partition_count=partition_count)


@dataclass(frozen=True, slots=True)
class CoPartitionGroup:
    """Edges that must share one partition count because they are joined.

    Members are sorted so that two groups over the same edges compare equal
    and iterate in the same order on every run.
    """

    members: tuple[StreamDescriptor, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "members", tuple(sorted(set(self.members))))

    def __contains__(self, descriptor: object) -> bool:
        return descriptor in self.members

    def __len__(self) -> int:
        return len(self.members)
