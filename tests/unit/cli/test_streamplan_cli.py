# tests/unit/cli/test_streamplan_cli.py
"""Tests for the streamplan CLI."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner, Result

from streamplan.cli import app

runner = CliRunner()

GRAPH_YAML = """
streams:
  input1: {system: system1}
  input2: {system: system2}
  output1: {system: system1}
operators:
  - {id: in1, kind: source, stream: input1}
  - {id: in2, kind: source, stream: input2}
  - {id: p2, kind: repartition, inputs: [in2]}
  - {id: j1, kind: join, inputs: [in1, p2]}
  - {id: out1, kind: sink, stream: output1, inputs: [j1]}
"""

METADATA_YAML = """
systems:
  system1:
    streams: {input1: 64, output1: 8}
  system2:
    streams: {input2: 16}
"""

SETTINGS_YAML = """
job:
  name: test-app
  id: "1"
  default:
    system: test-system
"""


@pytest.fixture
def files(tmp_path: Path) -> dict[str, Path]:
    paths = {
        "graph": tmp_path / "graph.yaml",
        "metadata": tmp_path / "metadata.yaml",
        "settings": tmp_path / "settings.yaml",
    }
    paths["graph"].write_text(GRAPH_YAML)
    paths["metadata"].write_text(METADATA_YAML)
    paths["settings"].write_text(SETTINGS_YAML)
    return paths


class TestCLIBasics:
    def test_version_flag(self) -> None:
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert "streamplan" in result.stdout.lower()

    def test_help_lists_commands(self) -> None:
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        assert "validate" in result.stdout
        assert "plan" in result.stdout


class TestValidateCommand:
    def test_valid_graph(self, files: dict[str, Path]) -> None:
        result = runner.invoke(app, ["validate", "--graph", str(files["graph"]), "--settings", str(files["settings"])])

        assert result.exit_code == 0
        assert "Logical graph valid!" in result.stdout
        assert "Sources: 2" in result.stdout
        assert "Intermediate streams: 1" in result.stdout
        assert "Joins: 1" in result.stdout

    def test_repartition_without_settings_fails(self, files: dict[str, Path]) -> None:
        result = runner.invoke(app, ["validate", "--graph", str(files["graph"])])

        assert result.exit_code == 1
        assert "Graph Structure Error" in result.output

    def test_invalid_settings_yaml(self, files: dict[str, Path]) -> None:
        files["settings"].write_text("job:\n  name: [unclosed\n")

        result = runner.invoke(app, ["validate", "--graph", str(files["graph"]), "--settings", str(files["settings"])])

        assert result.exit_code == 1
        assert "YAML Syntax Error" in result.output
        assert "Traceback" not in result.output

    def test_missing_graph_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["validate", "--graph", str(tmp_path / "nope.yaml")])

        assert result.exit_code == 1
        assert "File Not Found" in result.output

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        graph = tmp_path / "graph.yaml"
        graph.write_text("operators: [unclosed\n")

        result = runner.invoke(app, ["validate", "--graph", str(graph)])

        assert result.exit_code == 1
        assert "YAML Syntax Error" in result.output

    def test_undeclared_stream(self, tmp_path: Path) -> None:
        graph = tmp_path / "graph.yaml"
        graph.write_text("operators:\n  - {id: in1, kind: source, stream: missing}\n")

        result = runner.invoke(app, ["validate", "--graph", str(graph)])

        assert result.exit_code == 1
        assert "Validation Failed" in result.output

    def test_cycle_reported(self, tmp_path: Path) -> None:
        graph = tmp_path / "graph.yaml"
        graph.write_text(
            """
streams:
  input1: {system: system1}
operators:
  - {id: in1, kind: source, stream: input1}
  - {id: j, kind: join, inputs: [in1, m]}
  - {id: m, kind: map, inputs: [j]}
"""
        )

        result = runner.invoke(app, ["validate", "--graph", str(graph)])

        assert result.exit_code == 1
        assert "cycle" in result.output


class TestPlanCommand:
    def _invoke(self, files: dict[str, Path], *extra: str) -> Result:
        args = ["plan", "--graph", str(files["graph"]), "--metadata", str(files["metadata"]), "--settings", str(files["settings"])]
        return runner.invoke(app, [*args, *extra])

    def test_table_output(self, files: dict[str, Path]) -> None:
        result = self._invoke(files)

        assert result.exit_code == 0
        assert "system1.input1" in result.stdout
        assert "64" in result.stdout

    def test_json_output(self, files: dict[str, Path]) -> None:
        result = self._invoke(files, "--json")

        assert result.exit_code == 0
        summary = json.loads(result.stdout)
        assert [s["partitions"] for s in summary["intermediate"]] == [64]
        assert summary["intermediate"][0]["system"] == "test-system"
        assert summary["joins"]["j1"][0] == "system1.input1"
        assert len(summary["fingerprint"]) == 64

    def test_conflict_reported(self, files: dict[str, Path]) -> None:
        files["graph"].write_text(
            """
streams:
  input1: {system: system1}
  input2: {system: system2}
  output1: {system: system1}
operators:
  - {id: in1, kind: source, stream: input1}
  - {id: in2, kind: source, stream: input2}
  - {id: j1, kind: join, inputs: [in1, in2]}
  - {id: out1, kind: sink, stream: output1, inputs: [j1]}
"""
        )

        result = self._invoke(files)

        assert result.exit_code == 1
        assert "Partition Conflict" in result.output

    def test_missing_stream_metadata(self, files: dict[str, Path]) -> None:
        files["metadata"].write_text("systems:\n  system1:\n    streams: {input1: 64, output1: 8}\n")

        result = self._invoke(files)

        assert result.exit_code == 1
        assert "Metadata Unavailable" in result.output

    def test_default_partitions_override(self, files: dict[str, Path]) -> None:
        graph = files["graph"]
        graph.write_text(
            """
streams:
  input1: {system: system1}
  output1: {system: system1}
operators:
  - {id: in1, kind: source, stream: input1}
  - {id: p1, kind: repartition, inputs: [in1]}
  - {id: out1, kind: sink, stream: output1, inputs: [p1]}
"""
        )

        result = self._invoke(files, "--json", "--default-partitions", "10")

        assert result.exit_code == 0
        assert [s["partitions"] for s in json.loads(result.stdout)["intermediate"]] == [10]

    def test_invalid_default_partitions_override(self, files: dict[str, Path]) -> None:
        result = self._invoke(files, "--default-partitions", "0")

        assert result.exit_code == 1
        assert "Validation Failed" in result.output

    def test_missing_metadata_file(self, files: dict[str, Path], tmp_path: Path) -> None:
        files["metadata"] = tmp_path / "absent.yaml"

        result = self._invoke(files)

        assert result.exit_code == 1
        assert "File Not Found" in result.output
