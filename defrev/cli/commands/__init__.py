"""Subcommands of the ``defrev`` CLI.

Every command opens the object store and schema store named by its
options, falling back to the configured paths.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from defrev.config import config
from defrev.controller.runtime import ControllerRuntime
from defrev.errors import NotFoundError
from defrev.models.definitions import ComponentDefinition

console = Console()

STORE_OPTION = typer.Option(
    None, "--store", "-s", help="Path to the object store SQLite database."
)
SCHEMAS_OPTION = typer.Option(
    None, "--schemas", help="Path to the schema blob store directory."
)
NAMESPACE_OPTION = typer.Option(
    None, "--namespace", "-n", help="Namespace of the definition."
)


def open_runtime(
    store: Path | None = None,
    schemas: Path | None = None,
    namespace: str | None = None,
) -> ControllerRuntime:
    updates: dict[str, object] = {}
    if store is not None:
        updates["store_path"] = store
    if schemas is not None:
        updates["schema_store_path"] = schemas
    if namespace is not None:
        updates["namespace"] = namespace
    return ControllerRuntime(config.model_copy(update=updates))


def get_definition(runtime: ControllerRuntime, name: str) -> ComponentDefinition:
    """Fetch a definition or exit with code 1."""
    namespace = runtime.config.namespace
    try:
        return runtime.client.get(ComponentDefinition, namespace, name)
    except NotFoundError:
        console.print(f"[bold red]ComponentDefinition not found:[/bold red] {namespace}/{name}")
        raise typer.Exit(code=1) from None
