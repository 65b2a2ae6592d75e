"""``defrev reconcile NAME`` and ``defrev run`` — drive reconciliation.

``reconcile`` runs exactly one pass for one definition and reports the
outcome.  ``run`` starts the controller's worker pool and resync loop
until interrupted.
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
from defrev.cli.render import DefinitionRenderer
from defrev.errors import ReconcileError
from defrev.models.meta import ObjectKey


def reconcile_cmd(
    name: str = typer.Argument(..., help="Name of the ComponentDefinition."),
    namespace: str = NAMESPACE_OPTION,
    store: Path = STORE_OPTION,
    schemas: Path = SCHEMAS_OPTION,
) -> None:
    """Run one reconcile pass for a ComponentDefinition."""
    runtime = open_runtime(store, schemas, namespace)
    get_definition(runtime, name)
    key = ObjectKey(namespace=runtime.config.namespace, name=name)
    try:
        runtime.reconciler.reconcile(key)
    except ReconcileError as exc:
        console.print(f"[bold red]Reconcile failed ({exc.reason}):[/bold red] {exc}")
        DefinitionRenderer(console=console).print_status(get_definition(runtime, name))
        raise typer.Exit(code=1) from None
    DefinitionRenderer(console=console).print_status(get_definition(runtime, name))


def run_cmd(
    once: bool = typer.Option(
        False, "--once", help="Reconcile every definition once, then exit."
    ),
    all_namespaces: bool = typer.Option(
        False, "--all-namespaces", "-A", help="Watch definitions in every namespace."
    ),
    workers: int = typer.Option(
        None, "--workers", "-w", help="Concurrent reconcile workers."
    ),
    namespace: str = NAMESPACE_OPTION,
    store: Path = STORE_OPTION,
    schemas: Path = SCHEMAS_OPTION,
) -> None:
    """Run the ComponentDefinition controller."""
    runtime = open_runtime(store, schemas, namespace)
    if workers is not None:
        runtime.config = runtime.config.model_copy(update={"concurrent_reconciles": workers})
    controller = runtime.controller(all_namespaces=all_namespaces)

    if once:
        queued = controller.enqueue_all()
        passes = controller.run_once()
        console.print(
            f"[green]Reconciled {queued} definition(s) in {passes} pass(es).[/green]"
        )
        return

    console.print(
        f"[bold]defrev controller[/bold] workers={runtime.config.concurrent_reconciles} "
        f"resync={runtime.config.resync_period_seconds}s "
        f"[dim](Ctrl+C to stop)[/dim]"
    )
    with controller:
        try:
            controller.wait()
        except KeyboardInterrupt:
            console.print("[dim]Stopping...[/dim]")
