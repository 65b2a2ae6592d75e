"""Main Typer application — imports and registers all CLI commands.

Entry point: ``defrev`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from defrev import __version__
from defrev.cli.commands import console
from defrev.cli.commands.apply import apply_cmd
from defrev.cli.commands.delete import delete_cmd
from defrev.cli.commands.inspect import events_cmd, revisions_cmd, schema_cmd, status_cmd
from defrev.cli.commands.reconcile import reconcile_cmd, run_cmd
from defrev.config import config

app = typer.Typer(
    name="defrev",
    help="defrev: ComponentDefinition revision controller.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

app.command(name="apply", help="Create or update objects from a manifest.")(apply_cmd)
app.command(name="reconcile", help="Run one reconcile pass for a definition.")(reconcile_cmd)
app.command(name="revisions", help="List a definition's revisions.")(revisions_cmd)
app.command(name="status", help="Show a definition's status.")(status_cmd)
app.command(name="schema", help="Print a stored parameter schema.")(schema_cmd)
app.command(name="events", help="List events recorded for a definition.")(events_cmd)
app.command(name="delete", help="Delete a definition and its revisions.")(delete_cmd)
app.command(name="run", help="Run the controller.")(run_cmd)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"defrev {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        None, "--log-level", help="Log level (defaults to DEFREV_LOG_LEVEL)."
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    configure_logging(log_level or config.log_level)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
