"""Read-only commands: ``revisions``, ``status``, ``schema``, ``events``."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.table import Table

from defrev.cli.commands import (
    NAMESPACE_OPTION,
    SCHEMAS_OPTION,
    STORE_OPTION,
    console,
    get_definition,
    open_runtime,
)
from defrev.cli.render import DefinitionRenderer
from defrev.errors import NotFoundError, SchemaStoreError
from defrev.models.cluster import Event, EventType
from defrev.models.revisions import LABEL_COMPONENT_DEFINITION_NAME, DefinitionRevision


def revisions_cmd(
    name: str = typer.Argument(..., help="Name of the ComponentDefinition."),
    namespace: str = NAMESPACE_OPTION,
    store: Path = STORE_OPTION,
    schemas: Path = SCHEMAS_OPTION,
) -> None:
    """List the stored DefinitionRevisions of a definition."""
    runtime = open_runtime(store, schemas, namespace)
    definition = get_definition(runtime, name)
    revisions = runtime.client.list(
        DefinitionRevision,
        definition.metadata.namespace,
        labels={LABEL_COMPONENT_DEFINITION_NAME: name},
    )
    if not revisions:
        console.print("[dim]No revisions stored.[/dim]")
        return
    DefinitionRenderer(console=console).print_revisions(definition, revisions)


def status_cmd(
    name: str = typer.Argument(..., help="Name of the ComponentDefinition."),
    namespace: str = NAMESPACE_OPTION,
    store: Path = STORE_OPTION,
    schemas: Path = SCHEMAS_OPTION,
) -> None:
    """Show the published revision and conditions of a definition."""
    runtime = open_runtime(store, schemas, namespace)
    DefinitionRenderer(console=console).print_status(get_definition(runtime, name))


def schema_cmd(
    name: str = typer.Argument(..., help="Name of the ComponentDefinition."),
    revision: str = typer.Option(
        None, "--revision", "-r", help="Revision name, e.g. webservice-v2. Defaults to latest."
    ),
    namespace: str = NAMESPACE_OPTION,
    store: Path = STORE_OPTION,
    schemas: Path = SCHEMAS_OPTION,
) -> None:
    """Print the parameter schema stored for a definition or one of its revisions."""
    runtime = open_runtime(store, schemas, namespace)
    definition = get_definition(runtime, name)
    target = revision or name
    try:
        schema = runtime.schema_store.load(definition.metadata.namespace, target)
    except (NotFoundError, SchemaStoreError) as exc:
        console.print(f"[bold red]No schema stored for {target}:[/bold red] {exc}")
        raise typer.Exit(code=1) from None
    console.print(DefinitionRenderer(console=console).schema_syntax(schema))


def events_cmd(
    name: str = typer.Argument(..., help="Name of the ComponentDefinition."),
    warnings_only: bool = typer.Option(
        False, "--warnings", help="Only show warning events."
    ),
    namespace: str = NAMESPACE_OPTION,
    store: Path = STORE_OPTION,
    schemas: Path = SCHEMAS_OPTION,
) -> None:
    """List events recorded for a definition."""
    runtime = open_runtime(store, schemas, namespace)
    definition = get_definition(runtime, name)
    events = [
        e
        for e in runtime.client.list(Event, definition.metadata.namespace)
        if e.involved_object.name == name
        and e.involved_object.kind == definition.kind
        and (not warnings_only or e.type is EventType.WARNING)
    ]
    if not events:
        console.print("[dim]No events recorded.[/dim]")
        return

    table = Table(title=f"Events of {definition.key}")
    table.add_column("Time")
    table.add_column("Type")
    table.add_column("Reason", style="cyan")
    table.add_column("Count", justify="right")
    table.add_column("Message", overflow="fold")
    for event in sorted(events, key=lambda e: e.timestamp):
        style = "yellow" if event.type is EventType.WARNING else "green"
        table.add_row(
            event.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            f"[{style}]{event.type.value}[/{style}]",
            event.reason,
            str(event.count),
            event.message,
        )
    console.print(table)
