"""Semantic type aliases for compile-time type safety.

NewType creates distinct types that mypy treats as incompatible,
preventing accidental misuse of semantically different string values.
"""

from typing import NewType

OperatorID = NewType("OperatorID", str)
"""Unique operator identifier in the logical graph (e.g., 'join_orders')"""

SystemName = NewType("SystemName", str)
"""Name of the external system owning a stream (e.g., 'kafka-east')"""

StreamName = NewType("StreamName", str)
"""Physical stream name on its owning system (e.g., 'page-views')"""

UNRESOLVED_PARTITIONS = -1
"""Partition count of an edge that planning has not resolved yet."""
