"""``defrev apply FILE`` — create or update objects from a manifest.

Applied ComponentDefinitions are reconciled right away unless
``--no-reconcile`` is given.  Re-applying an older spec rolls the
definition back to the revision that already holds it.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.table import Table

from defrev.cli.commands import (
    NAMESPACE_OPTION,
    SCHEMAS_OPTION,
    STORE_OPTION,
    console,
    open_runtime,
)
from defrev.cli.manifests import ManifestError, load_manifests
from defrev.cli.render import DefinitionRenderer
from defrev.errors import NotFoundError
from defrev.models.definitions import CONDITION_READY, ComponentDefinition
from defrev.models.meta import Resource
from defrev.store import ResourceClient


def apply_object(client: ResourceClient, obj: Resource) -> str:
    """Create ``obj`` or update the stored copy; return what happened."""
    meta = obj.metadata
    try:
        existing = client.get(type(obj), meta.namespace, meta.name)
    except NotFoundError:
        client.create(obj)
        return "created"

    exclude = {"metadata", "status"}
    unchanged = (
        existing.model_dump(mode="json", exclude=exclude)
        == obj.model_dump(mode="json", exclude=exclude)
        and existing.metadata.labels == meta.labels
        and existing.metadata.annotations == meta.annotations
    )
    if unchanged:
        return "unchanged"

    meta.uid = existing.metadata.uid
    meta.resource_version = existing.metadata.resource_version
    meta.owner_references = existing.metadata.owner_references
    client.update(obj)
    return "configured"


def apply_cmd(
    file: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="YAML or JSON manifest holding one or more documents.",
    ),
    reconcile: bool = typer.Option(
        True,
        "--reconcile/--no-reconcile",
        help="Reconcile applied ComponentDefinitions immediately.",
    ),
    namespace: str = NAMESPACE_OPTION,
    store: Path = STORE_OPTION,
    schemas: Path = SCHEMAS_OPTION,
) -> None:
    """Create or update ComponentDefinitions and CustomResourceDefinitions."""
    runtime = open_runtime(store, schemas, namespace)
    try:
        objects = load_manifests(file, runtime.config.namespace)
    except ManifestError as exc:
        console.print(f"[bold red]Invalid manifest:[/bold red] {exc}")
        raise typer.Exit(code=1) from None

    table = Table(title=f"Applied {file.name}")
    table.add_column("Kind", style="cyan")
    table.add_column("Name")
    table.add_column("Result")
    definitions: list[ComponentDefinition] = []
    for obj in objects:
        result = apply_object(runtime.client, obj)
        name = str(obj.key) if obj.metadata.namespace else obj.metadata.name
        table.add_row(obj.kind, name, result)
        if isinstance(obj, ComponentDefinition):
            definitions.append(obj)
    console.print(table)

    if not reconcile or not definitions:
        return

    controller = runtime.controller()
    for definition in definitions:
        controller.enqueue(definition.key)
    controller.run_once()

    renderer = DefinitionRenderer(console=console)
    failed = False
    for definition in definitions:
        stored = runtime.client.get(
            ComponentDefinition, definition.metadata.namespace, definition.metadata.name
        )
        renderer.print_status(stored)
        ready = stored.status.get_condition(CONDITION_READY)
        failed = failed or (ready is not None and ready.status == "False")
    if failed:
        raise typer.Exit(code=1)
