"""Rich rendering of definitions, revisions, and schemas.

Color scheme
------------
- green  : Ready=True, the published revision
- red    : Ready=False
- dim    : no condition yet
"""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console, Group
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from defrev.models.definitions import CONDITION_READY, ComponentDefinition
from defrev.models.revisions import DefinitionRevision

_READY_MARKUP: dict[str, str] = {
    "True": "[green]Ready[/green]",
    "False": "[bold red]NotReady[/bold red]",
    "Unknown": "[yellow]Unknown[/yellow]",
}


def ready_markup(definition: ComponentDefinition) -> str:
    condition = definition.status.get_condition(CONDITION_READY)
    if condition is None:
        return "[dim]Pending[/dim]"
    return _READY_MARKUP[condition.status]


class DefinitionRenderer:
    """Renders definitions and their revision history for the terminal.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def revisions_table(
        self, definition: ComponentDefinition, revisions: list[DefinitionRevision]
    ) -> Table:
        latest = definition.status.latest_revision
        table = Table(title=f"DefinitionRevisions of {definition.key}")
        table.add_column("Name", style="cyan")
        table.add_column("Revision", justify="right")
        table.add_column("Hash", style="dim")
        table.add_column("Created")
        table.add_column("Latest", justify="center")

        for rev in sorted(revisions, key=lambda r: r.spec.revision):
            created = rev.metadata.creation_timestamp
            is_latest = latest is not None and latest.name == rev.metadata.name
            table.add_row(
                rev.metadata.name,
                str(rev.spec.revision),
                rev.spec.revision_hash,
                created.strftime("%Y-%m-%d %H:%M:%S") if created else "-",
                "[green]*[/green]" if is_latest else "",
            )
        return table

    def status_panel(self, definition: ComponentDefinition) -> Panel:
        latest = definition.status.latest_revision
        lines = [
            f"[bold]Definition:[/bold]  {definition.key}",
            f"[bold]Generation:[/bold]  {definition.metadata.generation}",
            f"[bold]State:[/bold]       {ready_markup(definition)}",
        ]
        if latest is not None:
            lines.append(
                f"[bold]Latest:[/bold]      {latest.name} "
                f"(revision {latest.revision}, hash {latest.revision_hash})"
            )
        else:
            lines.append("[bold]Latest:[/bold]      [dim]none published[/dim]")

        conditions = Table(show_header=True, box=None, padding=(0, 2))
        conditions.add_column("Type")
        conditions.add_column("Status")
        conditions.add_column("Reason")
        conditions.add_column("Message", overflow="fold")
        for condition in definition.status.conditions:
            conditions.add_row(
                condition.type,
                _READY_MARKUP.get(condition.status, condition.status),
                condition.reason,
                condition.message,
            )

        body: list[Any] = [Text.from_markup("\n".join(lines))]
        if definition.status.conditions:
            body.extend([Text(""), conditions])
        return Panel(
            Group(*body),
            title=f"[bold]{definition.kind}[/bold]",
            border_style="green" if ready_markup(definition).startswith("[green]") else "yellow",
            padding=(1, 2),
        )

    def schema_syntax(self, schema: dict[str, Any]) -> Syntax:
        return Syntax(json.dumps(schema, indent=2, sort_keys=True), "json")

    def print_revisions(
        self, definition: ComponentDefinition, revisions: list[DefinitionRevision]
    ) -> None:
        self.console.print(self.revisions_table(definition, revisions))

    def print_status(self, definition: ComponentDefinition) -> None:
        self.console.print(self.status_panel(definition))
