"""Command line entry point: ``dynaschema [OPTIONS] COMMAND``."""

import logging
from typing import Annotated, Any

import typer
from rich.logging import RichHandler

import dynaschema
from dynaschema.cli.commands import entity, relation
from dynaschema.cli.context import CLIContext
from dynaschema.core.config import Settings

app = typer.Typer(
    name="dynaschema",
    help="Define entities at runtime and connect them with typed relations.",
    no_args_is_help=True,
)
app.add_typer(entity.app, name="entity")
app.add_typer(relation.app, name="relation")


def _configure_logging() -> None:
    """Route the package logger through rich at DEBUG level."""
    logger = logging.getLogger("dynaschema")
    logger.setLevel(logging.DEBUG)
    if any(isinstance(h, RichHandler) for h in logger.handlers):
        return
    handler = RichHandler(rich_tracebacks=True, show_path=False)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.addHandler(handler)


@app.callback()
def main_callback(
    ctx: typer.Context,
    database: Annotated[
        str | None,
        typer.Option(
            "--database", "-d", envvar="DYNASCHEMA_URL", help="PostgreSQL or SQLite URL"
        ),
    ] = None,
    echo: Annotated[bool, typer.Option("--echo", "-e", help="Print emitted SQL")] = False,
    json_output: Annotated[
        bool, typer.Option("--json", "-j", help="Machine-readable JSON output")
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Log library activity and include error details in failed results",
        ),
    ] = False,
) -> None:
    """Resolve global options into the context passed to every command."""
    if verbose:
        _configure_logging()

    # Flags only switch things on; unset options fall back to DYNASCHEMA_* variables
    overrides: dict[str, Any] = {"database_url": database} if database else {}
    if echo:
        overrides["echo"] = True
    if verbose:
        overrides["debug"] = True
    ctx.obj = CLIContext(settings=Settings(**overrides), json_output=json_output)


@app.command()
def version() -> None:
    """Print the installed version."""
    typer.echo(f"DynaSchema v{dynaschema.__version__}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
