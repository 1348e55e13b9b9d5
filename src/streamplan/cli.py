# src/streamplan/cli.py
"""streamplan Command Line Interface.

Entry point for the streamplan CLI tool: compile logical graphs described
in YAML and inspect the resulting physical plans.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING

import typer
import yaml
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from streamplan import __version__
from streamplan.contracts import (
    GraphStructureError,
    MetadataUnavailableError,
    PartitionConflictError,
    PlanningError,
    UnresolvedPartitionError,
)
from streamplan.core.config import PlannerSettings, load_settings

if TYPE_CHECKING:
    from streamplan.core.logical import LogicalGraph
    from streamplan.core.plan import PhysicalGraph

__all__ = ["app"]

app = typer.Typer(
    name="streamplan",
    help="streamplan: partition planning for stream-processing jobs.",
    no_args_is_help=True,
)

# Hints shown under each planning error panel
_ERROR_HINTS: dict[type[PlanningError], tuple[str, str]] = {
    GraphStructureError: ("Graph Structure Error", "Check operator inputs for cycles, unknown ids and reused streams."),
    MetadataUnavailableError: ("Metadata Unavailable", "Check the metadata file lists every system and stream the graph uses."),
    PartitionConflictError: ("Partition Conflict", "Joined input streams must have the same partition count; repartition one side."),
    UnresolvedPartitionError: ("Unresolved Partitions", "Set job.default.partitions or join the stream with an input of known size."),
}


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"streamplan version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """streamplan: partition planning for stream-processing jobs."""
    from streamplan.core.logging import configure_logging

    configure_logging(json_output=json_logs, level="DEBUG" if verbose else "WARNING")


def _format_error(
    title: str,
    message: str,
    hint: str | None = None,
    details: list[str] | None = None,
) -> None:
    """Display a formatted error with optional hint and details."""
    from rich.console import Console
    from rich.panel import Panel
    from rich.text import Text

    console = Console(stderr=True)

    content = Text()
    content.append(message, style="white")

    if details:
        content.append("\n\n")
        for detail in details:
            content.append(f"  • {detail}\n", style="dim")

    if hint:
        content.append("\n")
        content.append("Hint: ", style="yellow bold")
        content.append(hint, style="yellow")

    console.print(Panel(content, title=f"[red bold]{title}[/]", border_style="red", padding=(0, 1)))


def _planning_error_details(error: PlanningError) -> list[str]:
    if isinstance(error, PartitionConflictError):
        return [f"{descriptor}: {count} partitions" for descriptor, count in error.counts.items()]
    if isinstance(error, MetadataUnavailableError):
        return [f"system: {error.system_name}", *(f"stream: {name}" for name in error.stream_names)]
    if isinstance(error, GraphStructureError | UnresolvedPartitionError):
        details = [f"stream: {d}" for d in error.descriptors]
        if isinstance(error, GraphStructureError):
            details.extend(f"operator: {op}" for op in error.operator_ids)
        return details
    return []


def _report_planning_error(error: PlanningError) -> None:
    title, hint = _ERROR_HINTS.get(type(error), ("Planning Failed", None))
    _format_error(title=title, message=str(error), hint=hint, details=_planning_error_details(error) or None)


def _report_validation_error(path: Path, error: ValidationError) -> None:
    details = [f"{'.'.join(str(x) for x in e['loc'])}: {e['msg']}" for e in error.errors()]
    _format_error(
        title="Validation Failed",
        message=f"Invalid content in {path.name}",
        details=details,
        hint="Check field names, types, and required values.",
    )


def _load_graph(graph_path: Path) -> LogicalGraph:
    from streamplan.core.logical import load_logical_graph

    try:
        return load_logical_graph(graph_path)
    except FileNotFoundError:
        _format_error(title="File Not Found", message=f"Graph file does not exist: {graph_path}")
        raise typer.Exit(1) from None
    except yaml.YAMLError as e:
        _format_error(
            title="YAML Syntax Error",
            message=f"Failed to parse {graph_path.name}",
            details=[str(e)],
            hint="Check for unclosed brackets, incorrect indentation, or invalid characters.",
        )
        raise typer.Exit(1) from None
    except ValidationError as e:
        _report_validation_error(graph_path, e)
        raise typer.Exit(1) from None
    except PlanningError as e:
        _report_planning_error(e)
        raise typer.Exit(1) from None


def _load_planner_settings(settings_path: Path | None, default_partitions: int | None) -> PlannerSettings:
    try:
        settings = load_settings(settings_path) if settings_path is not None else PlannerSettings()
        if default_partitions is not None:
            overridden = settings.model_dump()
            overridden["job"]["default"]["partitions"] = default_partitions
            settings = PlannerSettings.model_validate(overridden)
    except (YamlParserError, YamlScannerError) as e:
        _format_error(
            title="YAML Syntax Error",
            message=f"Failed to parse {settings_path.name if settings_path else 'settings'}",
            details=[str(e.problem)],
            hint="Check for unclosed brackets, incorrect indentation, or invalid characters.",
        )
        raise typer.Exit(1) from None
    except FileNotFoundError:
        _format_error(title="File Not Found", message=f"Settings file does not exist: {settings_path}")
        raise typer.Exit(1) from None
    except ValidationError as e:
        _report_validation_error(settings_path or Path("--default-partitions"), e)
        raise typer.Exit(1) from None
    return settings


def _print_plan(plan: PhysicalGraph) -> None:
    from rich.console import Console
    from rich.table import Table

    table = Table(title="Physical plan")
    table.add_column("Category")
    table.add_column("Stream")
    table.add_column("Partitions", justify="right")
    for category, edges in (("source", plan.sources), ("intermediate", plan.intermediate_edges), ("sink", plan.sinks)):
        for edge in edges:
            table.add_row(category, edge.descriptor.qualified_name, str(edge.partition_count))
    Console().print(table)


@app.command()
def validate(
    graph: Path = typer.Option(..., "--graph", "-g", help="Path to logical graph YAML file."),
    settings: Path | None = typer.Option(None, "--settings", "-s", help="Path to planner settings YAML file."),
) -> None:
    """Validate a logical graph's structure without fetching metadata."""
    from streamplan.core.plan import ExecutionPlanner

    logical_graph = _load_graph(graph.expanduser())
    planner_settings = _load_planner_settings(settings.expanduser() if settings else None, None)

    try:
        physical = ExecutionPlanner(planner_settings).build(logical_graph)
    except PlanningError as e:
        _report_planning_error(e)
        raise typer.Exit(1) from None

    typer.echo("Logical graph valid!")
    typer.echo(f"  Operators: {len(logical_graph)}")
    typer.echo(f"  Sources: {len(physical.sources)}")
    typer.echo(f"  Sinks: {len(physical.sinks)}")
    typer.echo(f"  Intermediate streams: {len(physical.intermediate_edges)}")
    typer.echo(f"  Joins: {len(physical.join_inputs)}")


@app.command()
def plan(
    graph: Path = typer.Option(..., "--graph", "-g", help="Path to logical graph YAML file."),
    metadata: Path = typer.Option(..., "--metadata", "-m", help="Path to static stream metadata YAML file."),
    settings: Path | None = typer.Option(None, "--settings", "-s", help="Path to planner settings YAML file."),
    default_partitions: int | None = typer.Option(
        None,
        "--default-partitions",
        help="Override job.default.partitions.",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the plan as JSON."),
) -> None:
    """Compile a logical graph into a partition-resolved physical plan."""
    from streamplan.core.plan import ExecutionPlanner
    from streamplan.metadata import load_metadata_providers

    logical_graph = _load_graph(graph.expanduser())
    planner_settings = _load_planner_settings(settings.expanduser() if settings else None, default_partitions)

    metadata_path = metadata.expanduser()
    try:
        providers = load_metadata_providers(metadata_path)
    except FileNotFoundError:
        _format_error(title="File Not Found", message=f"Metadata file does not exist: {metadata_path}")
        raise typer.Exit(1) from None
    except ValidationError as e:
        _report_validation_error(metadata_path, e)
        raise typer.Exit(1) from None
    except yaml.YAMLError as e:
        _format_error(title="YAML Syntax Error", message=f"Failed to parse {metadata_path.name}", details=[str(e)])
        raise typer.Exit(1) from None

    try:
        physical = ExecutionPlanner(planner_settings).plan(logical_graph, providers)
    except PlanningError as e:
        _report_planning_error(e)
        raise typer.Exit(1) from None

    if as_json:
        typer.echo(json.dumps(physical.describe(), indent=2))
    else:
        _print_plan(physical)


if __name__ == "__main__":
    app()
