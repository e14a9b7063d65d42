"""Runtime settings resolved from ``DYNASCHEMA_*`` environment variables."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATABASE_URL = "sqlite:///./dynaschema.db"


class Settings(BaseSettings):
    """Connection and diagnostics settings.

    Environment Variables:
        DYNASCHEMA_URL: Database URL (default: sqlite:///./dynaschema.db)
        DYNASCHEMA_ECHO: Log every SQL statement
        DYNASCHEMA_DEBUG: Include exception details in failed relation results

    Keyword arguments take precedence over the environment.
    """

    model_config = SettingsConfigDict(
        env_prefix="DYNASCHEMA_",
        env_ignore_empty=True,
        populate_by_name=True,
        extra="ignore",
    )

    database_url: str = Field(default=DEFAULT_DATABASE_URL, validation_alias="DYNASCHEMA_URL")
    echo: bool = False
    debug: bool = False
