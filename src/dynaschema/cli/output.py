"""Rendering of command results as rich text or JSON."""

import json
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from dynaschema.core.types import EntityInfo, EntityRelation, RelationResponse
from dynaschema.exceptions import DynaSchemaError

console = Console()

CHECK = "✓"


def _error_panel(body: str) -> Panel:
    return Panel(body, title="[red]Error[/red]", border_style="red")


class OutputFormatter:
    """Prints results for humans, or as JSON when ``json_mode`` is set.

    JSON goes through plain ``print`` so it is never wrapped or styled.
    """

    def __init__(self, json_mode: bool = False) -> None:
        self.json_mode = json_mode

    def _json(self, payload: Any) -> None:
        print(json.dumps(payload, default=str, indent=2))

    def print_table(self, title: str, data: list[dict[str, Any]], columns: list[str]) -> None:
        """Print rows as a table; JSON mode prints the row dicts."""
        if self.json_mode:
            self._json(data)
            return
        table = Table(*columns, title=title, header_style="bold magenta")
        for row in data:
            table.add_row(*(str(row.get(column, "")) for column in columns))
        console.print(table)

    def print_entity_info(self, entity: EntityInfo) -> None:
        if self.json_mode:
            self._json(entity.model_dump(mode="json"))
            return

        console.print(f"\n[bold]Entity:[/bold] {entity.name} ({entity.label})")
        console.print(f"Id: {entity.id}\nTable: {entity.table_name}")
        if entity.created_at:
            console.print(f"Created: {entity.created_at}")

        fields = Table("Name", "Type", "Required", "Unique", "Id", header_style="bold cyan")
        for f in entity.fields:
            fields.add_row(
                f.name,
                f.type,
                CHECK if f.required else "",
                CHECK if f.unique else "",
                str(f.id),
            )
        console.print(f"\n[bold]Fields ({len(entity.fields)}):[/bold]")
        console.print(fields)

    def print_relation(self, relation: EntityRelation) -> None:
        console.print(f"\n[bold]Relation:[/bold] {relation.name} ({relation.label})")
        for key, value in (
            ("Id", relation.id),
            ("Type", relation.relation_type),
            ("Origin", f"{relation.origin_entity_id} / {relation.origin_field_id}"),
            ("Target", f"{relation.target_entity_id} / {relation.target_field_id}"),
        ):
            console.print(f"{key}: {value}")

    def print_response(self, response: RelationResponse) -> None:
        """Print a relation envelope; failures list each validation error."""
        if self.json_mode:
            self._json(response.to_dict())
            return

        if response.success:
            console.print(f"{CHECK} {response.message}", style="green")
            if response.object is not None:
                self.print_relation(response.object)
            return

        lines = [response.message or "The operation failed."]
        lines.extend(
            f"  • {e.field}: {e.message}" if e.field else f"  • {e.message}"
            for e in response.errors
        )
        console.print(_error_panel("\n".join(lines)))

    def print_success(self, message: str, details: dict[str, Any] | None = None) -> None:
        details = details or {}
        if self.json_mode:
            self._json({"success": True, "message": message, **details})
            return
        console.print(f"{CHECK} {message}", style="green")
        for key, value in details.items():
            console.print(f"  {key}: {value}", style="dim")

    def print_error(self, error: Exception) -> None:
        """Print an exception; library errors include their context."""
        context = error.context if isinstance(error, DynaSchemaError) else None
        if self.json_mode:
            payload = error.to_dict() if isinstance(error, DynaSchemaError) else None
            self._json(payload or {"error": str(error)})
            return

        body = str(error)
        if context:
            body += "\n\n" + "\n".join(f"{k}: {v}" for k, v in context.items())
        console.print(_error_panel(body))

    def print_data(self, data: Any) -> None:
        if self.json_mode:
            self._json(data)
        else:
            console.print(data)
