"""``dynaschema entity ...`` commands."""

from typing import Annotated

import typer

from dynaschema.cli.context import command_scope
from dynaschema.cli.parsing import FIELD_SPEC_FORMAT, parse_field_spec

app = typer.Typer(help="Manage entities and their fields")

LabelOption = Annotated[
    str | None,
    typer.Option("--label", "-l", help="Display label (defaults to the name)"),
]


@app.command("list")
def entity_list(ctx: typer.Context) -> None:
    """List entities; JSON mode prints just the names."""
    with command_scope(ctx) as (cli_ctx, formatter):
        db = cli_ctx.get_db()
        names = db.list_entities()
        if cli_ctx.json_output:
            formatter.print_data(names)
            return

        rows = []
        for info in map(db.describe_entity, names):
            rows.append(
                {
                    "Name": info.name,
                    "Label": info.label,
                    "Fields": len(info.fields),
                    "Table": info.table_name,
                }
            )
        formatter.print_table(
            f"Entities ({len(names)} total)", rows, ["Name", "Label", "Fields", "Table"]
        )


@app.command("describe")
def entity_describe(
    ctx: typer.Context,
    entity_name: Annotated[str, typer.Argument(help="Entity name")],
) -> None:
    """Show an entity with its fields and their ids."""
    with command_scope(ctx) as (cli_ctx, formatter):
        formatter.print_entity_info(cli_ctx.get_db().describe_entity(entity_name))


@app.command("create")
def entity_create(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Entity name (e.g., customer, order)")],
    fields: Annotated[
        list[str] | None,
        typer.Option("--field", "-f", help=f"Field spec {FIELD_SPEC_FORMAT}; repeatable"),
    ] = None,
    label: LabelOption = None,
) -> None:
    """Create an entity; a required, unique ``id`` GUID field is always added.

    Examples:

        dynaschema entity create order -f "customer_id:guid" -f "total:number"
    """
    with command_scope(ctx) as (cli_ctx, formatter):
        specs = [parse_field_spec(spec) for spec in fields or []]
        entity = cli_ctx.get_db().create_entity(name, fields=specs, label=label)
        formatter.print_success(
            f"Entity '{entity.name}' created",
            {"id": str(entity.id), "table": entity.table_name, "fields": len(entity.fields)},
        )


@app.command("add-field")
def entity_add_field(
    ctx: typer.Context,
    entity_name: Annotated[str, typer.Argument(help="Entity name")],
    field_spec: Annotated[str, typer.Argument(help=f"Field spec {FIELD_SPEC_FORMAT}")],
    label: LabelOption = None,
) -> None:
    """Add a field to an existing entity.

    Examples:

        dynaschema entity add-field order "invoice_id:guid:unique"
    """
    with command_scope(ctx) as (cli_ctx, formatter):
        spec = parse_field_spec(field_spec)
        field = cli_ctx.get_db().add_field(
            entity_name,
            spec["name"],
            field_type=spec["type"],
            required=spec["required"],
            unique=spec["unique"],
            label=label,
        )
        formatter.print_success(
            f"Field '{field.name}' added to '{entity_name}'",
            {"id": str(field.id), "type": field.type},
        )


@app.command("modify-field")
def entity_modify_field(
    ctx: typer.Context,
    entity_name: Annotated[str, typer.Argument(help="Entity name")],
    field_name: Annotated[str, typer.Argument(help="Field name")],
    required: Annotated[
        bool | None, typer.Option("--required/--optional", help="Set the required flag")
    ] = None,
    unique: Annotated[
        bool | None, typer.Option("--unique/--not-unique", help="Set the unique flag")
    ] = None,
) -> None:
    """Change field flags in metadata only; run ``relation check`` afterwards."""
    with command_scope(ctx) as (cli_ctx, formatter):
        field = cli_ctx.get_db().modify_field(
            entity_name, field_name, required=required, unique=unique
        )
        formatter.print_success(
            f"Field '{field.name}' of '{entity_name}' modified",
            {"required": field.required, "unique": field.unique},
        )
