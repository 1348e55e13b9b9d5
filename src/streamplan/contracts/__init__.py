"""Shared contracts for cross-boundary data types.

This package is a LEAF MODULE with no outbound dependencies to core.
Settings classes are NOT re-exported here - import them from
streamplan.core.config.
"""

from streamplan.contracts.enums import EdgeCategory, OperatorKind
from streamplan.contracts.errors import (
    GraphStructureError,
    MetadataUnavailableError,
    PartitionConflictError,
    PlanningError,
    UnresolvedPartitionError,
)
from streamplan.contracts.metadata import SystemMetadataProvider
from streamplan.contracts.streams import CoPartitionGroup, StreamDescriptor, StreamEdge
from streamplan.contracts.types import UNRESOLVED_PARTITIONS, OperatorID, StreamName, SystemName

__all__ = [
    "UNRESOLVED_PARTITIONS",
    "CoPartitionGroup",
    "EdgeCategory",
    "GraphStructureError",
    "MetadataUnavailableError",
    "OperatorID",
    "OperatorKind",
    "PartitionConflictError",
    "PlanningError",
    "StreamDescriptor",
    "StreamEdge",
    "StreamName",
    "SystemMetadataProvider",
    "SystemName",
    "UnresolvedPartitionError",
]
