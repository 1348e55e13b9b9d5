# src/streamplan/core/config.py
"""
Configuration schema and loading for the execution planner.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction and read-only for the
duration of a planning run.

Two input shapes are accepted:
- a flat mapping of dotted keys (``job.default.partitions: "10"``), the
  form job configs are handed around in, via PlannerSettings.from_config_map()
- a nested YAML file, via load_settings()
"""

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

# Top-level sections recognized in a job config; everything else belongs
# to other subsystems and is ignored by the planner.
_PLANNER_SECTIONS = frozenset({"job", "planner"})

# Regex pattern for ${VAR} or ${VAR:-default} syntax
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


class JobDefaultSettings(BaseModel):
    """Job-wide defaults consulted when a stream carries no explicit value."""

    model_config = {"frozen": True, "extra": "forbid"}

    system: str | None = Field(
        default=None,
        description="System hosting intermediate (repartition) streams",
    )
    partitions: int | None = Field(
        default=None,
        gt=0,
        description="Partition count for intermediate streams with no authoritative constraint",
    )

    @field_validator("system")
    @classmethod
    def validate_system_not_blank(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("job.default.system must not be blank")
        return v


class JobSettings(BaseModel):
    """Identity of the job being planned; used to name intermediate streams."""

    model_config = {"frozen": True, "extra": "forbid"}

    name: str = Field(default="streamplan-job", min_length=1, description="Job name")
    id: str = Field(default="1", min_length=1, description="Job instance id")
    default: JobDefaultSettings = Field(default_factory=JobDefaultSettings)


class MetadataFetchSettings(BaseModel):
    """External metadata fetch configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    max_workers: int = Field(
        default=4,
        gt=0,
        description="Maximum systems queried concurrently",
    )


class PlannerSection(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    metadata: MetadataFetchSettings = Field(default_factory=MetadataFetchSettings)


class PlannerSettings(BaseModel):
    """Top-level planner configuration.

    Supplied once per planning run; read-only.
    """

    model_config = {"frozen": True, "extra": "ignore"}

    job: JobSettings = Field(default_factory=JobSettings)
    planner: PlannerSection = Field(default_factory=PlannerSection)

    @property
    def default_partitions(self) -> int | None:
        """``job.default.partitions``, or None when no default is configured."""
        return self.job.default.partitions

    @property
    def default_system(self) -> str | None:
        """``job.default.system``, or None when not configured."""
        return self.job.default.system

    @classmethod
    def from_config_map(cls, config: Mapping[str, Any]) -> "PlannerSettings":
        """Build settings from a flat mapping of dotted keys.

        Keys outside the ``job.`` and ``planner.`` namespaces are ignored.
        Values may be strings; Pydantic coerces them.

        Raises:
            ValidationError: If a recognized key has an invalid value, or an
                unknown key appears inside a recognized namespace.
            ValueError: If a key is both a value and a namespace
                (``job.default`` and ``job.default.partitions``).
        """
        nested: dict[str, Any] = {}
        for dotted_key in sorted(config):
            parts = dotted_key.split(".")
            if parts[0] not in _PLANNER_SECTIONS or len(parts) < 2:
                continue
            cursor = nested
            for part in parts[:-1]:
                child = cursor.setdefault(part, {})
                if not isinstance(child, dict):
                    raise ValueError(f"Config key '{dotted_key}' conflicts with value key '{part}'")
                cursor = child
            if isinstance(cursor.get(parts[-1]), dict):
                raise ValueError(f"Config key '{dotted_key}' conflicts with nested keys below it")
            cursor[parts[-1]] = config[dotted_key]
        return cls.model_validate(nested)


def _lowercase_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k).lower(): _lowercase_keys(v) for k, v in value.items()}
    return value


def _env_replacement(match: re.Match[str]) -> str:
    name, default = match.group(1), match.group(2)
    value = os.environ.get(name, default)
    # Unset with no default: kept verbatim
    return match.group(0) if value is None else value


def _expand_section(value: Any) -> Any:
    """Expand ${VAR} and ${VAR:-default} in one planner settings section.

    Only string leaves are rewritten; ``job.default.partitions: ${N:-8}``
    becomes the string "8" and is coerced by pydantic like any other value.
    """
    if isinstance(value, str):
        return _ENV_VAR_PATTERN.sub(_env_replacement, value)
    if isinstance(value, dict):
        return {key: _expand_section(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand_section(item) for item in value]
    return value


def load_settings(config_path: Path) -> PlannerSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (STREAMPLAN_*) - highest priority
    2. Config file
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: STREAMPLAN_JOB__DEFAULT__PARTITIONS for
    nested keys.

    ${VAR} and ${VAR:-default} references inside the job and planner
    sections are expanded from the environment; unset references with no
    default are kept verbatim.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated PlannerSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="STREAMPLAN",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf returns uppercase keys; keep only the planner's sections
    raw_config = _lowercase_keys(dynaconf_settings.as_dict())
    sections = {name: _expand_section(raw_config[name]) for name in sorted(_PLANNER_SECTIONS) if name in raw_config}

    return PlannerSettings.model_validate(sections)
