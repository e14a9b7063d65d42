"""Main DynaSchema engine."""

from __future__ import annotations

from types import EllipsisType
from typing import TYPE_CHECKING, Any

from dynaschema.core.connection import DatabaseConnection
from dynaschema.relations.manager import RelationManager
from dynaschema.relations.repository import RelationRepository
from dynaschema.relations.validator import RelationValidator
from dynaschema.schema.engine import SchemaEngine

if TYPE_CHECKING:
    from uuid import UUID

    from dynaschema.core.config import Settings
    from dynaschema.core.types import EntityInfo, FieldInfo


class DynaSchema:
    """Runtime-defined entities and the relations between them.

    Wires the connection, the schema engine and the relation components for
    one database. Entity operations raise on failure; relation operations go
    through :attr:`relations` and return response envelopes.

    Example:
        db = DynaSchema("sqlite:///./app.db")
        customer = db.create_entity("customer")
        order = db.create_entity(
            "order", fields=[{"name": "customer_id", "type": "guid"}]
        )
        response = db.relations.create(
            EntityRelation(
                name="customer_orders",
                label="Customer orders",
                relation_type=RelationType.ONE_TO_MANY,
                origin_entity_id=customer.id,
                origin_field_id=customer.get_field_by_name("id").id,
                target_entity_id=order.id,
                target_field_id=order.get_field_by_name("customer_id").id,
            )
        )
    """

    def __init__(self, url: str, echo: bool = False, debug: bool = False) -> None:
        """Initialize DynaSchema.

        Args:
            url: Database connection URL
            echo: Whether to echo SQL statements (for debugging)
            debug: Include exception details in relation failure messages
        """
        self._connection = DatabaseConnection(url, echo=echo)
        self._schema_engine = SchemaEngine(self._connection)
        self._relation_repository = RelationRepository(self._connection, self._schema_engine)
        self._relation_validator = RelationValidator(
            self._relation_repository, self._schema_engine
        )
        self._relation_manager = RelationManager(
            self._relation_repository, self._relation_validator, debug=debug
        )

        # Initialize meta-tables (schema and relation definitions)
        self._schema_engine.initialize()

    @classmethod
    def from_settings(cls, settings: Settings) -> DynaSchema:
        """Build an instance from :class:`~dynaschema.core.config.Settings`."""
        return cls(settings.database_url, echo=settings.echo, debug=settings.debug)

    @property
    def connection(self) -> DatabaseConnection:
        """Underlying database connection."""
        return self._connection

    @property
    def schema(self) -> SchemaEngine:
        """Entity and field definitions."""
        return self._schema_engine

    @property
    def relations(self) -> RelationManager:
        """Validated relation operations returning response envelopes."""
        return self._relation_manager

    @property
    def relation_repository(self) -> RelationRepository:
        """Relation persistence, including many-to-many join records."""
        return self._relation_repository

    def close(self) -> None:
        """Close the database connection."""
        self._connection.close()

    def __enter__(self) -> DynaSchema:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        """Context manager exit."""
        self.close()

    # === Entities ===

    def create_entity(
        self,
        name: str,
        fields: list[dict[str, Any]] | None = None,
        label: str | None = None,
    ) -> EntityInfo:
        """Create an entity; a system ``id`` GUID field is added automatically.

        Args:
            name: Entity name
            fields: Field specs, e.g. ``{"name": "email", "type": "text", "unique": True}``
            label: Display label (defaults to the name)

        Returns:
            The created entity
        """
        return self._schema_engine.create_entity(name, fields, label=label)

    def drop_entity(self, name: str) -> bool:
        """Delete an entity and its record table."""
        return self._schema_engine.drop_entity(name)

    def get_entity(self, entity_id: UUID | str) -> EntityInfo | None:
        """Get an entity by id, or None."""
        return self._schema_engine.get_entity(entity_id)

    def get_entity_by_name(self, name: str) -> EntityInfo | None:
        """Get an entity by case-insensitive name, or None."""
        return self._schema_engine.get_entity_by_name(name)

    def list_entities(self) -> list[str]:
        """List all entity names."""
        return self._schema_engine.list_entities()

    def describe_entity(self, name: str) -> EntityInfo:
        """Describe an entity; raises EntityNotFoundError if missing."""
        return self._schema_engine.describe_entity(name)

    def add_field(
        self,
        entity_name: str,
        name: str,
        field_type: str = "text",
        required: bool = False,
        unique: bool = False,
        label: str | None = None,
    ) -> FieldInfo:
        """Add a field to an entity."""
        return self._schema_engine.add_field(
            entity_name,
            name,
            field_type=field_type,
            required=required,
            unique=unique,
            label=label,
        )

    def modify_field(
        self,
        entity_name: str,
        field_name: str,
        required: bool | None = None,
        unique: bool | None = None,
        label: str | None | EllipsisType = ...,
    ) -> FieldInfo:
        """Change field attributes.

        Relations are not re-validated; call ``relations.recheck`` afterwards.
        """
        return self._schema_engine.modify_field(
            entity_name, field_name, required=required, unique=unique, label=label
        )
