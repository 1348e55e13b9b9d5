"""In-memory metadata provider.

Backs a system with a fixed {stream: partitions} table. Used for dry-run
planning from the CLI and as the provider in tests. Created streams are
added to the table, so a realized plan can be re-planned against the same
provider.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping
from pathlib import Path
from threading import Lock

import structlog
import yaml
from pydantic import BaseModel, Field

logger = structlog.get_logger(__name__)


class StaticMetadataProvider:
    """SystemMetadataProvider over a fixed partition table for one system.

    Thread-safe: the planner may query several providers concurrently.
    """

    def __init__(self, system_name: str, partitions: Mapping[str, int] | None = None) -> None:
        self._system_name = system_name
        self._partitions: dict[str, int] = dict(partitions or {})
        self._lock = Lock()
        self._request_count = 0

    @property
    def system_name(self) -> str:
        return self._system_name

    @property
    def request_count(self) -> int:
        """Number of get_partition_counts() calls served."""
        with self._lock:
            return self._request_count

    def _check_system(self, system_name: str) -> None:
        if system_name != self._system_name:
            raise ValueError(f"Provider for system '{self._system_name}' cannot answer for system '{system_name}'")

    def get_partition_counts(self, system_name: str, stream_names: Collection[str]) -> Mapping[str, int]:
        self._check_system(system_name)
        with self._lock:
            self._request_count += 1
            return {name: self._partitions[name] for name in stream_names if name in self._partitions}

    def create_physical_stream(self, system_name: str, stream_name: str, partition_count: int) -> bool:
        self._check_system(system_name)
        if partition_count <= 0:
            return False
        with self._lock:
            existing = self._partitions.get(stream_name)
            if existing is not None and existing != partition_count:
                logger.warning(
                    "Stream already exists with a different partition count",
                    system=system_name,
                    stream=stream_name,
                    existing=existing,
                    requested=partition_count,
                )
                return False
            self._partitions[stream_name] = partition_count
        return True

    def __repr__(self) -> str:
        return f"StaticMetadataProvider(system={self._system_name!r}, streams={len(self._partitions)})"


class SystemMetadataDocument(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    streams: dict[str, int] = Field(default_factory=dict)


class MetadataDocument(BaseModel):
    """Partition tables for every system, as written in a metadata YAML file.

    Example:
        systems:
          kafka-east:
            streams: {orders: 64, clicks: 16}
    """

    model_config = {"frozen": True, "extra": "forbid"}

    systems: dict[str, SystemMetadataDocument] = Field(default_factory=dict)


def providers_from_mapping(systems: Mapping[str, Mapping[str, int]]) -> dict[str, StaticMetadataProvider]:
    """One StaticMetadataProvider per system from {system: {stream: count}}."""
    return {system: StaticMetadataProvider(system, streams) for system, streams in systems.items()}


def load_metadata_providers(path: Path) -> dict[str, StaticMetadataProvider]:
    """Load static providers from a metadata YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the file doesn't match MetadataDocument
    """
    if not path.exists():
        raise FileNotFoundError(f"Metadata file not found: {path}")
    with path.open(encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    doc = MetadataDocument.model_validate(raw)
    return providers_from_mapping({system: meta.streams for system, meta in doc.systems.items()})
