"""stepflow CLI - command line interface for running flows."""

from stepflow.cli.commands import cli
from stepflow.cli.discovery import discover_flows


def main() -> None:
    """Main entry point for the stepflow CLI."""
    cli()


__all__ = ["cli", "discover_flows", "main"]
