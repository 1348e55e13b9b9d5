"""
Canonical JSON serialization for deterministic hashing.

Generated intermediate stream names and plan fingerprints are derived from
hashes of graph structure, so the serialization must be byte-stable across
runs, interpreters and dict insertion orders. Serialization follows
RFC 8785/JCS (rfc8785 package).

IMPORTANT: NaN and Infinity are strictly REJECTED, not silently converted.
"""

from __future__ import annotations

import hashlib
import math
from enum import Enum
from typing import TYPE_CHECKING, Any

import rfc8785

if TYPE_CHECKING:
    from streamplan.core.plan.graph import PhysicalGraph

# Version string embedded in plan fingerprints
CANONICAL_VERSION = "sha256-rfc8785-v1"


def _normalize_for_canonical(data: Any) -> Any:
    """Recursively normalize a data structure for canonical JSON.

    Tuples become lists and str-valued enums become their values.

    Raises:
        ValueError: If data contains NaN or Infinity
    """
    if isinstance(data, dict):
        return {str(k): _normalize_for_canonical(v) for k, v in data.items()}
    if isinstance(data, list | tuple):
        return [_normalize_for_canonical(v) for v in data]
    if isinstance(data, Enum):
        return data.value
    if isinstance(data, float) and (math.isnan(data) or math.isinf(data)):
        raise ValueError(f"Cannot canonicalize non-finite float: {data}")
    return data


def canonical_json(obj: Any) -> str:
    """Produce canonical JSON for hashing.

    Args:
        obj: Data structure to serialize

    Returns:
        Canonical JSON string (no whitespace, sorted keys)

    Raises:
        ValueError: If data contains NaN, Infinity, or other non-finite values
        TypeError: If data contains types that cannot be serialized
    """
    normalized = _normalize_for_canonical(obj)
    result: bytes = rfc8785.dumps(normalized)
    return result.decode("utf-8")


def stable_hash(obj: Any) -> str:
    """SHA-256 hex digest of the canonical JSON of obj."""
    canonical = canonical_json(obj)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def compute_plan_fingerprint(graph: PhysicalGraph) -> str:
    """Hash of a physical plan's edges, counts and operator topology.

    Two plans with the same fingerprint hand identical streams and
    partition counts to the execution engine.
    """
    nx_graph = graph.get_nx_graph()
    plan_data = {
        "version": CANONICAL_VERSION,
        "edges": sorted(
            [
                {
                    "system": edge.descriptor.system_name,
                    "stream": edge.descriptor.physical_name,
                    "category": edge.category.value,
                    "partitions": edge.partition_count,
                }
                for edge in graph.edges
            ],
            key=lambda x: (x["system"], x["stream"]),
        ),
        "topology": sorted([_node_label(u), _node_label(v)] for u, v in nx_graph.edges()),
    }
    return stable_hash(plan_data)


def _node_label(node: tuple[str, ...]) -> str:
    return ":".join(node)
