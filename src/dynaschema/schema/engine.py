"""Entity and field definitions and the record tables behind them."""

from __future__ import annotations

import logging
from types import EllipsisType
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy.orm import Session

from dynaschema.core.types import EntityInfo, FieldInfo, FieldSpec, FieldType
from dynaschema.core.validation import validate_name
from dynaschema.exceptions import (
    EntityAlreadyExistsError,
    EntityNotFoundError,
    FieldAlreadyExistsError,
    FieldNotFoundError,
    InvalidFieldTypeError,
    ValidationError,
)
from dynaschema.schema.models import Base, EntityDefinition, FieldDefinition
from dynaschema.storage.ddl import SchemaDDL, entity_table_name

if TYPE_CHECKING:
    from dynaschema.core.connection import DatabaseConnection

logger = logging.getLogger(__name__)

SYSTEM_ID_FIELD = "id"


class SchemaEngine:
    """Manages entity and field definitions stored in meta-tables.

    Each entity is backed by a ``rec_<name>`` table whose ``id`` column is
    the system GUID field every entity gets. Metadata rows and the physical
    table change in the same transaction.
    """

    def __init__(self, connection: DatabaseConnection) -> None:
        self._connection = connection
        self._ddl = SchemaDDL(connection.engine)
        self._initialized = False

    @property
    def ddl(self) -> SchemaDDL:
        """DDL issuer bound to this engine's database."""
        return self._ddl

    def initialize(self) -> None:
        """Create the dsm_ meta-tables once per engine."""
        if not self._initialized:
            Base.metadata.create_all(self._connection.engine)
            self._initialized = True

    def _get_session(self) -> Session:
        return self._connection.get_session()

    @staticmethod
    def _validate_field_type(field_type: str) -> FieldType:
        try:
            return FieldType(field_type)
        except ValueError as e:
            raise InvalidFieldTypeError(field_type) from e

    @staticmethod
    def _validate_name(name: str, kind: str) -> None:
        errors = validate_name(name)
        if errors:
            raise ValidationError(f"Invalid {kind} name '{name}'.", errors)

    def _find_entity(self, session: Session, name: str) -> EntityDefinition | None:
        return session.query(EntityDefinition).filter_by(name_key=name.lower()).first()

    def _require_entity(self, session: Session, name: str) -> EntityDefinition:
        entity = self._find_entity(session, name)
        if not entity:
            available = [e[0] for e in session.query(EntityDefinition.name).all()]
            raise EntityNotFoundError(name, available)
        return entity

    def _require_field(self, entity: EntityDefinition, field_name: str) -> FieldDefinition:
        lowered = field_name.lower()
        field = next((f for f in entity.fields if f.name.lower() == lowered), None)
        if not field:
            raise FieldNotFoundError(field_name, entity.name, [f.name for f in entity.fields])
        return field

    @staticmethod
    def _to_field_info(field: FieldDefinition) -> FieldInfo:
        return FieldInfo(
            id=UUID(field.id),
            name=field.name,
            type=FieldType(field.field_type),
            required=field.is_required,
            unique=field.is_unique,
            label=field.label,
            is_system=field.is_system,
        )

    def _to_entity_info(self, entity: EntityDefinition) -> EntityInfo:
        return EntityInfo(
            id=UUID(entity.id),
            name=entity.name,
            label=entity.label,
            table_name=entity.table_name,
            fields=[self._to_field_info(f) for f in entity.fields],
            created_at=entity.created_at,
        )

    def list_entities(self) -> list[str]:
        """Entity names in alphabetical order."""
        self.initialize()
        with self._get_session() as session:
            rows = session.query(EntityDefinition.name).order_by(EntityDefinition.name_key)
            return [name for (name,) in rows]

    def get_entity(self, entity_id: UUID | str) -> EntityInfo | None:
        """Look an entity up by id; used to resolve relation endpoints."""
        self.initialize()
        with self._get_session() as session:
            entity = session.get(EntityDefinition, str(entity_id))
            return None if entity is None else self._to_entity_info(entity)

    def get_entity_by_name(self, name: str) -> EntityInfo | None:
        self.initialize()
        with self._get_session() as session:
            entity = self._find_entity(session, name)
            return None if entity is None else self._to_entity_info(entity)

    def entity_exists(self, name: str) -> bool:
        return self.get_entity_by_name(name) is not None

    def describe_entity(self, name: str) -> EntityInfo:
        """Like :meth:`get_entity_by_name`, but a missing entity is an error.

        Raises:
            EntityNotFoundError: Listing the entities that do exist
        """
        self.initialize()
        with self._get_session() as session:
            return self._to_entity_info(self._require_entity(session, name))

    def create_entity(
        self,
        name: str,
        fields: list[dict[str, Any]] | None = None,
        label: str | None = None,
    ) -> EntityInfo:
        """Create a new entity and its record table.

        A system ``id`` field (guid, required, unique) is always added first.

        Args:
            name: Entity name
            fields: List of field specifications
            label: Display label

        Returns:
            The created entity

        Raises:
            ValidationError: If the entity or a field name is malformed
            InvalidFieldTypeError: If a field type is unknown
            EntityAlreadyExistsError: If an entity with the same name exists
            FieldAlreadyExistsError: If two fields share a name
        """
        self.initialize()
        self._validate_name(name, "entity")

        specs: list[FieldSpec] = []
        seen = {SYSTEM_ID_FIELD}
        for raw in fields or []:
            self._validate_field_type(raw.get("type", FieldType.TEXT.value))
            spec = FieldSpec(**raw)
            self._validate_name(spec.name, "field")
            if spec.name.lower() in seen:
                raise FieldAlreadyExistsError(spec.name, name)
            seen.add(spec.name.lower())
            specs.append(spec)

        with self._get_session() as session:
            if self._find_entity(session, name):
                raise EntityAlreadyExistsError(name)

            entity = EntityDefinition(
                name=name,
                name_key=name.lower(),
                label=label or name,
                table_name=entity_table_name(name),
            )
            entity.fields.append(
                FieldDefinition(
                    name=SYSTEM_ID_FIELD,
                    label="Id",
                    field_type=FieldType.GUID.value,
                    is_required=True,
                    is_unique=True,
                    is_system=True,
                    position=0,
                )
            )
            for position, spec in enumerate(specs, start=1):
                entity.fields.append(
                    FieldDefinition(
                        name=spec.name,
                        label=spec.label or spec.name,
                        field_type=str(spec.type),
                        is_required=spec.required,
                        is_unique=spec.unique,
                        position=position,
                    )
                )
            session.add(entity)
            # Metadata rows first so SQLite runs the DDL inside the open transaction
            session.flush()

            self._ddl.create_entity_table(session, name, entity.fields)
            session.commit()

            logger.info("Created entity '%s' with %d fields", name, len(entity.fields))
            return self._to_entity_info(entity)

    def drop_entity(self, name: str) -> bool:
        """Delete an entity definition and its record table.

        Raises:
            EntityNotFoundError: If entity doesn't exist
        """
        self.initialize()

        with self._get_session() as session:
            entity = self._require_entity(session, name)
            session.delete(entity)
            session.flush()
            self._ddl.drop_entity_table(session, entity.name)
            session.commit()

            logger.info("Dropped entity '%s'", entity.name)
            return True

    def add_field(
        self,
        entity_name: str,
        name: str,
        field_type: str = "text",
        required: bool = False,
        unique: bool = False,
        label: str | None = None,
    ) -> FieldInfo:
        """Add a field to an entity and a column to its table.

        Raises:
            EntityNotFoundError: If entity doesn't exist
            FieldAlreadyExistsError: If field exists
            InvalidFieldTypeError: If field_type is invalid
            ValidationError: If the field name is malformed
        """
        self.initialize()
        self._validate_field_type(field_type)
        self._validate_name(name, "field")

        with self._get_session() as session:
            entity = self._require_entity(session, entity_name)
            if any(f.name.lower() == name.lower() for f in entity.fields):
                raise FieldAlreadyExistsError(name, entity.name)

            field = FieldDefinition(
                name=name,
                label=label or name,
                field_type=field_type,
                is_required=required,
                is_unique=unique,
                position=len(entity.fields),
            )
            entity.fields.append(field)
            session.flush()

            self._ddl.add_column(session, entity.name, field)
            session.commit()

            logger.info("Added field '%s' to entity '%s'", name, entity.name)
            return self._to_field_info(field)

    def modify_field(
        self,
        entity_name: str,
        field_name: str,
        required: bool | None = None,
        unique: bool | None = None,
        label: str | None | EllipsisType = ...,  # Use ... as sentinel to distinguish from None
    ) -> FieldInfo:
        """Modify field attributes (metadata only, the column is left untouched).

        Relations built on the field are not re-validated here; use the
        relation manager's recheck for that.

        Raises:
            EntityNotFoundError: If entity doesn't exist
            FieldNotFoundError: If field doesn't exist
        """
        self.initialize()

        with self._get_session() as session:
            entity = self._require_entity(session, entity_name)
            field = self._require_field(entity, field_name)

            if required is not None:
                field.is_required = required
            if unique is not None:
                field.is_unique = unique
            if label is not ...:
                field.label = label

            session.commit()
            return self._to_field_info(field)
