"""``defrev delete NAME`` — delete a definition and everything it owns.

The store cascades the delete through owner references: revisions, the
converted WorkloadDefinition, and the schema ConfigMaps go with it.
Schema blobs are immutable and stay in the blob store.
"""

from __future__ import annotations

from pathlib import Path

import typer

from defrev.cli.commands import (
    NAMESPACE_OPTION,
    SCHEMAS_OPTION,
    STORE_OPTION,
    console,
    get_definition,
    open_runtime,
)


def delete_cmd(
    name: str = typer.Argument(..., help="Name of the ComponentDefinition."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
    namespace: str = NAMESPACE_OPTION,
    store: Path = STORE_OPTION,
    schemas: Path = SCHEMAS_OPTION,
) -> None:
    """Delete a ComponentDefinition and its revisions."""
    runtime = open_runtime(store, schemas, namespace)
    definition = get_definition(runtime, name)
    if not yes:
        typer.confirm(f"Delete ComponentDefinition {definition.key} and its revisions?", abort=True)
    runtime.client.delete(definition)
    console.print(f"[green]Deleted ComponentDefinition {definition.key}[/green]")
