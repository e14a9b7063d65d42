"""Per-invocation state shared by CLI commands."""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

import typer

from dynaschema import DynaSchema
from dynaschema.cli.output import OutputFormatter
from dynaschema.core.config import Settings


@dataclass
class CLIContext:
    """Resolved settings plus the lazily opened database of one CLI run."""

    settings: Settings
    json_output: bool = False
    _db: DynaSchema | None = field(default=None, init=False, repr=False)

    @property
    def database_url(self) -> str:
        return self.settings.database_url

    def get_db(self) -> DynaSchema:
        """Open the database on first use and reuse it afterwards."""
        if self._db is None:
            self._db = DynaSchema.from_settings(self.settings)
        return self._db

    def close(self) -> None:
        db, self._db = self._db, None
        if db is not None:
            db.close()


@contextmanager
def command_scope(ctx: typer.Context) -> Iterator[tuple[CLIContext, OutputFormatter]]:
    """Run a command body with its context and formatter.

    Any exception escaping the body is printed and turned into exit code 1.
    The database is closed on the way out.
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)
    try:
        yield cli_ctx, formatter
    except typer.Exit:
        raise
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1) from e
    finally:
        cli_ctx.close()
