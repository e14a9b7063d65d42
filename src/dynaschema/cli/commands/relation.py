"""``dynaschema relation ...`` commands.

Every command prints the response envelope returned by the relation manager
and exits with code 1 when it reports a failure.
"""

from typing import Annotated
from uuid import UUID

import typer

from dynaschema import DynaSchema
from dynaschema.cli.context import command_scope
from dynaschema.cli.output import OutputFormatter
from dynaschema.cli.parsing import parse_endpoint
from dynaschema.core.types import EntityRelation, RelationResponse, RelationType
from dynaschema.exceptions import FieldNotFoundError

app = typer.Typer(help="Manage relations between entities")

RelationId = Annotated[UUID, typer.Argument(help="Relation id")]


def _parse_key(value: str) -> UUID | str:
    """Read the argument as an id when it parses as a UUID, else as a name."""
    try:
        return UUID(value)
    except ValueError:
        return value


def _resolve_endpoint(db: DynaSchema, spec: str) -> tuple[UUID, UUID]:
    """Map ``Entity.field`` to (entity id, field id)."""
    entity_name, field_name = parse_endpoint(spec)
    entity = db.describe_entity(entity_name)
    field = entity.get_field_by_name(field_name)
    if field is None:
        raise FieldNotFoundError(field_name, entity.name, [f.name for f in entity.fields])
    return entity.id, field.id


def _describe_endpoint(db: DynaSchema, entity_id: UUID, field_id: UUID) -> str:
    entity = db.get_entity(entity_id)
    if entity is None:
        return f"{entity_id}.?"
    field = entity.get_field(field_id)
    return f"{entity.name}.{field.name if field else '?'}"


def _finish(formatter: OutputFormatter, response: RelationResponse) -> None:
    formatter.print_response(response)
    if not response.success:
        raise typer.Exit(code=1)


@app.command("list")
def relation_list(ctx: typer.Context) -> None:
    """List all relations."""
    with command_scope(ctx) as (cli_ctx, formatter):
        db = cli_ctx.get_db()
        response = db.relations.read_all()

        if cli_ctx.json_output:
            formatter.print_data(response.to_dict())
        elif response.success:
            relations = response.object or []
            rows = [
                {
                    "Name": r.name,
                    "Type": r.relation_type,
                    "Origin": _describe_endpoint(db, r.origin_entity_id, r.origin_field_id),
                    "Target": _describe_endpoint(db, r.target_entity_id, r.target_field_id),
                    "Id": r.id,
                }
                for r in relations
            ]
            formatter.print_table(
                f"Relations ({len(relations)} total)",
                rows,
                ["Name", "Type", "Origin", "Target", "Id"],
            )
        else:
            formatter.print_error(RuntimeError(response.message or "Failed to read relations"))

        if not response.success:
            raise typer.Exit(code=1)


@app.command("show")
def relation_show(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Relation id or name")],
) -> None:
    """Show a relation by id or name."""
    with command_scope(ctx) as (cli_ctx, formatter):
        response = cli_ctx.get_db().relations.read(_parse_key(key))
        # Not found is a successful read, but there is nothing to show
        if response.object is None:
            response.success = False
        _finish(formatter, response)


@app.command("create")
def relation_create(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Relation name")],
    relation_type: Annotated[RelationType, typer.Option("--type", "-t", help="Relation type")],
    origin: Annotated[str, typer.Option("--origin", "-o", help="Origin endpoint: Entity.field")],
    target: Annotated[str, typer.Option("--target", help="Target endpoint: Entity.field")],
    label: Annotated[
        str | None,
        typer.Option("--label", "-l", help="Display label (defaults to the name)"),
    ] = None,
) -> None:
    """Create a relation between two GUID fields.

    Examples:

        dynaschema relation create customer_orders --type one_to_many \\
            --origin customer.id --target order.customer_id
    """
    with command_scope(ctx) as (cli_ctx, formatter):
        db = cli_ctx.get_db()
        origin_entity_id, origin_field_id = _resolve_endpoint(db, origin)
        target_entity_id, target_field_id = _resolve_endpoint(db, target)
        relation = EntityRelation(
            name=name,
            label=label or name,
            relation_type=relation_type,
            origin_entity_id=origin_entity_id,
            origin_field_id=origin_field_id,
            target_entity_id=target_entity_id,
            target_field_id=target_field_id,
        )
        _finish(formatter, db.relations.create(relation))


@app.command("update")
def relation_update(
    ctx: typer.Context,
    relation_id: RelationId,
    label: Annotated[str | None, typer.Option("--label", "-l", help="New label")] = None,
) -> None:
    """Relabel a relation; name, type and endpoints are readonly."""
    with command_scope(ctx) as (cli_ctx, formatter):
        relations = cli_ctx.get_db().relations
        response = relations.read(relation_id)
        if response.object is None:
            response.success = False
        else:
            changes = {"label": label} if label is not None else {}
            response = relations.update(response.object.model_copy(update=changes))
        _finish(formatter, response)


@app.command("delete")
def relation_delete(
    ctx: typer.Context,
    relation_id: RelationId,
    force: Annotated[bool, typer.Option("--force", help="Skip confirmation prompt")] = False,
) -> None:
    """Delete a relation with its foreign key or join table."""
    with command_scope(ctx) as (cli_ctx, formatter):
        if not (force or cli_ctx.json_output) and not typer.confirm(
            f"Are you sure you want to delete relation {relation_id}?"
        ):
            typer.echo("Cancelled.")
            return
        _finish(formatter, cli_ctx.get_db().relations.delete(relation_id))


@app.command("check")
def relation_check(ctx: typer.Context, relation_id: RelationId) -> None:
    """Re-verify a relation against the current state of its fields."""
    with command_scope(ctx) as (cli_ctx, formatter):
        _finish(formatter, cli_ctx.get_db().relations.recheck(relation_id))
