# tests/conftest.py
"""Shared test fixtures and helpers.

Graph fixtures wrap the builders in tests/fixtures/graphs.py; `providers`
serves the partition table documented there.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

from __future__ import annotations

import os

import pytest
from hypothesis import Phase, Verbosity, settings

from streamplan.core.config import PlannerSettings
from streamplan.core.logical import LogicalGraph
from streamplan.metadata import StaticMetadataProvider, providers_from_mapping
from tests.fixtures.graphs import (
    DEFAULT_PARTITIONS,
    INTERMEDIATE_SYSTEM,
    PARTITION_TABLE,
    build_join_graph,
    build_simple_graph,
)


@pytest.fixture
def join_graph() -> LogicalGraph:
    return build_join_graph()


@pytest.fixture
def simple_graph() -> LogicalGraph:
    return build_simple_graph()


@pytest.fixture
def providers() -> dict[str, StaticMetadataProvider]:
    return providers_from_mapping(PARTITION_TABLE)


@pytest.fixture
def planner_settings() -> PlannerSettings:
    """Settings with no default partition count."""
    return PlannerSettings.from_config_map(
        {
            "job.name": "test-app",
            "job.id": "1",
            "job.default.system": INTERMEDIATE_SYSTEM,
        }
    )


@pytest.fixture
def settings_with_default() -> PlannerSettings:
    return PlannerSettings.from_config_map(
        {
            "job.name": "test-app",
            "job.id": "1",
            "job.default.system": INTERMEDIATE_SYSTEM,
            "job.default.partitions": str(DEFAULT_PARTITIONS),
        }
    )


# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))
