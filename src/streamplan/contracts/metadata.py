"""Contract for the external systems that own physical streams."""

from collections.abc import Collection, Mapping
from typing import Protocol, runtime_checkable


@runtime_checkable
class SystemMetadataProvider(Protocol):
    """Narrow view of an external system's administrative client.

    The planner only needs partition counts; implementations may batch,
    cache or parallelize internally. Retries are the implementation's (or
    the caller's) concern, never the planner's.

    Example:
        class KafkaMetadata:
            def get_partition_counts(self, system_name, stream_names):
                meta = self._admin.describe_topics(list(stream_names))
                return {t.name: len(t.partitions) for t in meta}

            def create_physical_stream(self, system_name, stream_name, partition_count):
                self._admin.create_topic(stream_name, partition_count)
                return True
    """

    def get_partition_counts(self, system_name: str, stream_names: Collection[str]) -> Mapping[str, int]:
        """Return the current partition count of each requested stream.

        Streams that do not exist are omitted from the result; the planner
        treats any omission as fatal.
        """
        ...

    def create_physical_stream(self, system_name: str, stream_name: str, partition_count: int) -> bool:
        """Provision a stream with the given partition count.

        Returns:
            True if the stream exists with that count afterwards.
        """
        ...
