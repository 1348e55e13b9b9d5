"""YAML authoring format for logical graphs.

Lets a logical graph be described declaratively (used by the CLI):

    streams:
      orders: {system: kafka}                       # physical name defaults to the key
      clicks: {system: kafka, physical_name: clicks-v2}
      enriched: {system: kafka}
    operators:
      - {id: read_orders, kind: source, stream: orders}
      - {id: read_clicks, kind: source, stream: clicks}
      - {id: by_user, kind: repartition, inputs: [read_clicks]}
      - {id: joined, kind: join, inputs: [read_orders, by_user]}
      - {id: write, kind: sink, stream: enriched, inputs: [joined]}
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator

from streamplan.contracts import GraphStructureError, OperatorID, OperatorKind, StreamDescriptor
from streamplan.core.logical.graph import LogicalGraph, OperatorNode


class StreamDocument(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    system: str = Field(min_length=1, description="Owning external system")
    physical_name: str | None = Field(default=None, min_length=1, description="Physical stream name (defaults to the logical id)")


class OperatorDocument(BaseModel):
    model_config = {"frozen": True, "extra": "forbid", "populate_by_name": True}

    operator_id: str = Field(alias="id", min_length=1)
    kind: OperatorKind
    inputs: list[str] = Field(default_factory=list)
    stream: str | None = None


class LogicalGraphDocument(BaseModel):
    """Top-level graph document."""

    model_config = {"frozen": True, "extra": "forbid"}

    streams: dict[str, StreamDocument] = Field(default_factory=dict)
    operators: list[OperatorDocument] = Field(min_length=1)

    @model_validator(mode="after")
    def validate_stream_references(self) -> LogicalGraphDocument:
        """Every stream named by an operator must be declared."""
        for op in self.operators:
            if op.stream is not None and op.stream not in self.streams:
                raise ValueError(f"Operator '{op.operator_id}' references undeclared stream '{op.stream}'. Declared: {sorted(self.streams)}")
        return self


def logical_graph_from_dict(document: dict[str, Any]) -> LogicalGraph:
    """Build a LogicalGraph from a parsed graph document.

    Raises:
        ValidationError: If the document doesn't match the authoring format
        GraphStructureError: If the operators don't form a well-shaped graph
    """
    doc = LogicalGraphDocument.model_validate(document)

    descriptors = {
        logical_id: StreamDescriptor.of(logical_id, stream.physical_name or logical_id, stream.system)
        for logical_id, stream in doc.streams.items()
    }
    nodes = [
        OperatorNode(
            operator_id=OperatorID(op.operator_id),
            kind=op.kind,
            inputs=tuple(OperatorID(i) for i in op.inputs),
            stream=descriptors[op.stream] if op.stream is not None else None,
        )
        for op in doc.operators
    ]
    return LogicalGraph(nodes)


def load_logical_graph(path: Path) -> LogicalGraph:
    """Load a logical graph from a YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        yaml.YAMLError: If the file isn't valid YAML
        ValidationError: If the document doesn't match the authoring format
        GraphStructureError: If the operators don't form a well-shaped graph
    """
    if not path.exists():
        raise FileNotFoundError(f"Graph file not found: {path}")
    with path.open(encoding="utf-8") as f:
        document = yaml.safe_load(f)
    if not isinstance(document, dict):
        raise GraphStructureError(f"Graph file {path} must contain a mapping, got {type(document).__name__}")
    return logical_graph_from_dict(document)
