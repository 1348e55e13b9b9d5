"""Metadata provider implementations."""

from streamplan.metadata.static import (
    StaticMetadataProvider,
    load_metadata_providers,
    providers_from_mapping,
)

__all__ = [
    "StaticMetadataProvider",
    "load_metadata_providers",
    "providers_from_mapping",
]
