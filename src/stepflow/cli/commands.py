"""CLI commands for stepflow."""

from __future__ import annotations

import json
import sys
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from stepflow.cli.discovery import describe_flow, discover_flows
from stepflow.config import FlowConfig, load_config
from stepflow.core.models import FlowResult
from stepflow.errors import ConfigError, FlowLoadError
from stepflow.flow import Flow
from stepflow.observability import configure_logging, get_logger, log_context
from stepflow.reporting import ConsoleSink
from stepflow.runner import FlowRunner

console = Console()


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Print every step as it runs")
@click.option("--config", "-c", type=click.Path(exists=True), help="Path to config file")
@click.option("--json-logs", is_flag=True, help="Emit structured logs as JSON")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config: str | None, json_logs: bool) -> None:
    """stepflow - run flows of steps against a world."""
    ctx.ensure_object(dict)

    overrides: dict[str, Any] = {}
    if verbose:
        overrides["verbose"] = True
    if json_logs:
        overrides["json_logs"] = True

    try:
        config_obj = load_config(config, **overrides)
    except ConfigError as e:
        click.echo(e.format_verbose(), err=True)
        sys.exit(2)

    ctx.obj["config"] = config_obj
    configure_logging(level=config_obj.log_level, json_format=config_obj.json_logs)


def _load(targets: tuple[str, ...]) -> list[Flow]:
    try:
        flows = discover_flows(targets)
    except FlowLoadError as e:
        get_logger("stepflow").error("Failed to load flows", log="cli/load-error", error=e.to_dict())
        click.echo(e.format_verbose(), err=True)
        sys.exit(2)
    if not flows:
        click.echo(f"No flows found in: {', '.join(targets)}", err=True)
        sys.exit(2)
    return flows


@cli.command()
@click.argument("targets", nargs=-1, required=True)
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format",
)
@click.option("--fail-fast", is_flag=True, help="Stop after the first failing flow")
@click.pass_context
def run(ctx: click.Context, targets: tuple[str, ...], output_format: str, fail_fast: bool) -> None:
    """Run every flow found in TARGETS (files, directories or modules).

    Exits 1 if any flow fails.
    """
    config: FlowConfig = ctx.obj["config"]
    flows = _load(targets)
    runner = FlowRunner(config=config, sink=ConsoleSink(color=config.color))

    results: list[FlowResult] = []
    with log_context(targets=list(targets)):
        for f in flows:
            result = runner.run(f)
            results.append(result)
            if fail_fast and not result.success:
                click.echo("Fail-fast triggered, stopping.")
                break

    if output_format == "json":
        click.echo(json.dumps([r.summary() for r in results], indent=2, default=str))
    else:
        _print_summary(results)

    sys.exit(0 if all(r.success for r in results) else 1)


def _print_summary(results: list[FlowResult]) -> None:
    """Print a table of flow verdicts and a one-line summary."""
    table = Table(title="Flow results")
    table.add_column("Flow")
    table.add_column("Result")
    table.add_column("Checks", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("CID")

    for r in results:
        verdict = "[green]PASS[/green]" if r.success else "[red]FAIL[/red]"
        table.add_row(
            r.flow_description,
            verdict,
            f"{r.counters.passes}/{r.counters.passes + r.counters.failures}",
            f"{r.duration_ms:.0f}ms",
            r.cid,
        )

    console.print(table)

    passed = sum(1 for r in results if r.success)
    failed = len(results) - passed
    click.echo(f"Summary: {passed} passed, {failed} failed")


@cli.command("list")
@click.argument("targets", nargs=-1, required=True)
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format",
)
def list_flows(targets: tuple[str, ...], output_format: str) -> None:
    """List the flows found in TARGETS without running them."""
    flows = _load(targets)

    if output_format == "json":
        click.echo(json.dumps([describe_flow(f) for f in flows], indent=2))
        return

    click.echo(f"Found {len(flows)} flow(s):\n")
    for f in flows:
        click.echo(f"  - {f.description} ({len(f.steps)} steps)")
