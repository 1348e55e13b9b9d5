"""Kinds and categories used across subsystem boundaries.

The planner dispatches on these tags with a single match statement;
operators are never subclassed per kind.
"""

from enum import StrEnum


class OperatorKind(StrEnum):
    """Kind of operator node in the logical graph.

    SOURCE: Reads from an external stream (has a descriptor, no inputs)
    SINK: Writes to an external stream (has a descriptor, one input)
    MAP: One-to-one record transform
    FILTER: Drops records that fail a predicate
    REPARTITION: Redistributes records by key through a new intermediate stream
    JOIN: Joins exactly two co-partitioned inputs
    """

    SOURCE = "source"
    SINK = "sink"
    MAP = "map"
    FILTER = "filter"
    REPARTITION = "repartition"
    JOIN = "join"


class EdgeCategory(StrEnum):
    """Category of a stream edge in the physical graph.

    SOURCE and SINK edges are authoritative: their partition count is fixed
    by the external system that owns the stream. INTERMEDIATE edges are
    synthesized for repartition operators and take whatever count planning
    assigns them.
    """

    SOURCE = "source"
    SINK = "sink"
    INTERMEDIATE = "intermediate"

    @property
    def is_authoritative(self) -> bool:
        """Whether edges of this category have an externally fixed count."""
        return self is not EdgeCategory.INTERMEDIATE
