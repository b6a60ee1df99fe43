"""Tests for the stepflow CLI."""

from __future__ import annotations

import json
import string
import sys
import textwrap
from pathlib import Path

import pytest
from click.testing import CliRunner

from stepflow.cli import cli, discover_flows
from stepflow.errors import FlowLoadError

PASSING = """
from stepflow import fact, flow

adds_one = flow(
    "adds one",
    lambda w: {"n": 1},
    fact("n is one", lambda w: w["n"], 1),
)

sets_name = flow("sets name", lambda w: {"name": "ada"})
"""

FAILING = """
from stepflow import fact, flow

wrong_sum = flow(
    "wrong sum",
    lambda w: {"n": 1 + 1},
    fact("sum is three", lambda w: w["n"], 3),
)
"""

TABULAR = """
from stepflow import fact, tabular_flow

def doubling(n, expected):
    return [lambda w: {"n": n * 2}, fact("doubled", lambda w: w["n"], expected)]

doubling_table = tabular_flow("doubling", doubling, [(1, 2), (3, 6)])
"""

QUIET_ENV = {"STEPFLOW_LOG_LEVEL": "ERROR", "STEPFLOW_PROBE_TIMEOUT_MS": "0", "NO_COLOR": "1"}


def _write(tmp_path: Path, name: str, source: str) -> Path:
    path = tmp_path / name
    path.write_text(textwrap.dedent(source))
    return path


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()


class TestRunCommand:
    """Tests for `stepflow run`."""

    def test_passing_flows_exit_zero(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        path = _write(tmp_path, "cli_passing_flows.py", PASSING)
        result = cli_runner.invoke(cli, ["run", str(path)], env=QUIET_ENV)
        assert result.exit_code == 0, result.output
        assert "Summary: 2 passed, 0 failed" in result.output

    def test_failing_flow_exits_one_with_diagnostic(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        path = _write(tmp_path, "cli_failing_flows.py", FAILING)
        result = cli_runner.invoke(cli, ["run", str(path)], env=QUIET_ENV)
        assert result.exit_code == 1
        assert "FAIL sum is three" in result.output
        assert "Expected: 3" in result.output
        assert "Summary: 0 passed, 1 failed" in result.output

    def test_json_output(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        path = _write(tmp_path, "cli_json_flows.py", PASSING)
        result = cli_runner.invoke(cli, ["run", str(path), "--format", "json"], env=QUIET_ENV)
        assert result.exit_code == 0, result.output
        summaries = json.loads(result.output)
        assert [s["success"] for s in summaries] == [True, True]
        assert summaries[0]["flow"].endswith("adds one")
        assert summaries[0]["cid"].startswith("FLOW.")

    def test_fail_fast_stops_after_first_failure(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        failing = _write(tmp_path, "cli_ff_failing.py", FAILING)
        passing = _write(tmp_path, "cli_ff_passing.py", PASSING)
        result = cli_runner.invoke(
            cli, ["run", str(failing), str(passing), "--fail-fast"], env=QUIET_ENV
        )
        assert result.exit_code == 1
        assert "Fail-fast triggered" in result.output
        assert "Summary: 0 passed, 1 failed" in result.output

    def test_verbose_prints_steps(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        path = _write(tmp_path, "cli_verbose_flows.py", PASSING)
        result = cli_runner.invoke(cli, ["--verbose", "run", str(path)], env=QUIET_ENV)
        assert result.exit_code == 0, result.output
        assert "Running flow: " in result.output
        assert "[CID: FLOW." in result.output

    def test_tabular_flows_discovered(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        path = _write(tmp_path, "cli_tabular_flows.py", TABULAR)
        result = cli_runner.invoke(cli, ["run", str(path)], env=QUIET_ENV)
        assert result.exit_code == 0, result.output
        assert "Summary: 2 passed, 0 failed" in result.output

    def test_missing_target_exits_two(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        result = cli_runner.invoke(cli, ["run", str(tmp_path / "nope.py")], env=QUIET_ENV)
        assert result.exit_code == 2

    def test_load_error_logged_with_error_code(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        path = _write(tmp_path, "cli_broken_run.py", "import not_a_real_module_xyz\n")
        result = cli_runner.invoke(cli, ["--json-logs", "run", str(path)], env=QUIET_ENV)
        assert result.exit_code == 2
        assert "cli/load-error" in result.output
        assert '"error_code": "E205"' in result.output
        assert "Error [E205]" in result.output

    def test_no_flows_exits_two(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        path = _write(tmp_path, "cli_empty_flows.py", "VALUE = 1\n")
        result = cli_runner.invoke(cli, ["run", str(path)], env=QUIET_ENV)
        assert result.exit_code == 2
        assert "No flows found" in result.output

    def test_invalid_config_exits_two(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        config = _write(tmp_path, "stepflow.yaml", "probe_sleep_ms: 0\n")
        path = _write(tmp_path, "cli_config_flows.py", PASSING)
        result = cli_runner.invoke(cli, ["--config", str(config), "run", str(path)], env=QUIET_ENV)
        assert result.exit_code == 2
        assert "E202" in result.output


class TestListCommand:
    """Tests for `stepflow list`."""

    def test_lists_flows(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        path = _write(tmp_path, "cli_list_flows.py", PASSING)
        result = cli_runner.invoke(cli, ["list", str(path)], env=QUIET_ENV)
        assert result.exit_code == 0, result.output
        assert "Found 2 flow(s)" in result.output
        assert "adds one (2 steps)" in result.output

    def test_lists_directory_as_json(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        _write(tmp_path, "cli_dir_a.py", PASSING)
        _write(tmp_path, "cli_dir_b.py", FAILING)
        _write(tmp_path, "_cli_private.py", FAILING)
        result = cli_runner.invoke(cli, ["list", str(tmp_path), "--format", "json"], env=QUIET_ENV)
        assert result.exit_code == 0, result.output
        titles = [f["title"] for f in json.loads(result.output)]
        assert titles == ["adds one", "sets name", "wrong sum"]


class TestDiscovery:
    """Tests for flow discovery."""

    def test_import_error_in_flow_file(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "cli_broken_flows.py", "import not_a_real_module_xyz\n")
        with pytest.raises(FlowLoadError):
            discover_flows([str(path)])

    def test_unknown_module(self) -> None:
        with pytest.raises(FlowLoadError):
            discover_flows(["not_a_real_module_xyz.flows"])

    def test_flows_ordered_by_line(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "cli_order_flows.py", PASSING)
        assert [f.title for f in discover_flows([str(path)])] == ["adds one", "sets name"]

    def test_file_named_like_stdlib_module_leaves_it_alone(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "string.py", PASSING)
        flows = discover_flows([str(path)])
        assert [f.title for f in flows] == ["adds one", "sets name"]
        assert sys.modules["string"] is string
        assert flows[0].module == "string"

    def test_same_named_files_in_different_directories(self, tmp_path: Path) -> None:
        first, second = tmp_path / "first", tmp_path / "second"
        first.mkdir()
        second.mkdir()
        _write(first, "shared_name_flows.py", PASSING)
        _write(second, "shared_name_flows.py", FAILING)
        flows = discover_flows([str(first / "shared_name_flows.py"), str(second / "shared_name_flows.py")])
        assert [f.title for f in flows] == ["adds one", "sets name", "wrong sum"]
        assert "shared_name_flows" not in sys.modules
