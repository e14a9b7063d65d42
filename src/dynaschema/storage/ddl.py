"""Physical schema operations for DynaSchema.

Entities are materialized as ``rec_<name>`` tables, many-to-many relations
as ``rel_<name>`` join tables, and one-to-one / one-to-many relations as a
``fk_<name>`` foreign key on the target table. Every method takes the
session of the caller's unit of work, so DDL commits or rolls back together
with the metadata rows describing it.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    Index,
    MetaData,
    String,
    Table,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.schema import CreateColumn

from dynaschema.core.types import FieldType

if TYPE_CHECKING:
    from uuid import UUID

    from sqlalchemy import Engine
    from sqlalchemy.orm import Session

    from dynaschema.schema.models import FieldDefinition

ENTITY_TABLE_PREFIX = "rec_"
JOIN_TABLE_PREFIX = "rel_"
FOREIGN_KEY_PREFIX = "fk_"

JOIN_ORIGIN_COLUMN = "origin_id"
JOIN_TARGET_COLUMN = "target_id"

# Mapping from field types to SQLAlchemy column types
FIELD_TYPE_MAP = {
    FieldType.GUID: lambda: String(36),
    FieldType.TEXT: lambda: Text(),
    FieldType.NUMBER: lambda: Float(),
    FieldType.BOOLEAN: lambda: Boolean(),
    FieldType.DATETIME: lambda: DateTime(timezone=True),
    FieldType.MULTISELECT: lambda: JSONB().with_variant(JSON(), "sqlite"),
}


def entity_table_name(entity_name: str) -> str:
    """Physical table name of an entity (e.g., Customer -> rec_customer)."""
    return f"{ENTITY_TABLE_PREFIX}{entity_name.lower()}"


def join_table_name(relation_name: str) -> str:
    """Physical join table name of a many-to-many relation."""
    return f"{JOIN_TABLE_PREFIX}{relation_name.lower()}"


def foreign_key_name(relation_name: str) -> str:
    """Constraint name of a one-to-one / one-to-many relation."""
    return f"{FOREIGN_KEY_PREFIX}{relation_name.lower()}"


def _column_type(field_type: str) -> Any:
    return FIELD_TYPE_MAP.get(FieldType(field_type), lambda: Text())()


class SchemaDDL:
    """Issues the DDL and join-table DML behind entities and relations."""

    def __init__(self, engine: Engine) -> None:
        """Initialize the DDL issuer.

        Args:
            engine: SQLAlchemy engine (used for dialect detection and inspection)
        """
        self._engine = engine
        self._is_postgresql = engine.dialect.name == "postgresql"

    @property
    def supports_foreign_key_alter(self) -> bool:
        """Whether constraints can be added to an existing table.

        SQLite only accepts foreign keys at CREATE TABLE time.
        """
        return self._is_postgresql

    # === Entity tables ===

    def _field_column(self, field: FieldDefinition) -> Column[Any]:
        if field.name == "id":
            return Column("id", String(36), primary_key=True)
        return Column(field.name, _column_type(field.field_type), nullable=not field.is_required)

    def create_entity_table(
        self, session: Session, entity_name: str, fields: Iterable[FieldDefinition]
    ) -> str:
        """Create the record table of an entity.

        Args:
            session: Unit of work
            entity_name: Entity name
            fields: Field definitions, including the system ``id`` field

        Returns:
            The created table name
        """
        table_name = entity_table_name(entity_name)
        fields = list(fields)

        columns = [self._field_column(f) for f in fields]
        indexes = [
            Index(f"ux_{table_name}_{f.name.lower()}", f.name, unique=True)
            for f in fields
            if f.is_unique and f.name != "id"
        ]

        # Fresh metadata per table avoids clashes with previously built tables
        table = Table(table_name, MetaData(), *columns, *indexes)
        table.create(session.connection())
        return table_name

    def drop_entity_table(self, session: Session, entity_name: str) -> None:
        """Drop the record table of an entity."""
        table_name = entity_table_name(entity_name)
        if self._is_postgresql:
            session.execute(text(f'DROP TABLE IF EXISTS "{table_name}" CASCADE'))
        else:
            session.execute(text(f'DROP TABLE IF EXISTS "{table_name}"'))

    def add_column(self, session: Session, entity_name: str, field: FieldDefinition) -> None:
        """Add a field column to an existing entity table.

        Added columns are always nullable: existing rows have no value for them.
        """
        table_name = entity_table_name(entity_name)
        column = Column(field.name, _column_type(field.field_type), nullable=True)
        column_spec = CreateColumn(column).compile(dialect=self._engine.dialect)
        session.execute(text(f'ALTER TABLE "{table_name}" ADD COLUMN {column_spec}'))

        if field.is_unique:
            index_name = f"ux_{table_name}_{field.name.lower()}"
            session.execute(
                text(f'CREATE UNIQUE INDEX "{index_name}" ON "{table_name}" ("{field.name}")')
            )

    # === One-to-one / one-to-many ===

    def create_foreign_key(
        self,
        session: Session,
        relation_name: str,
        origin_entity: str,
        origin_field: str,
        target_entity: str,
        target_field: str,
    ) -> str | None:
        """Add the foreign key backing a one-to-one or one-to-many relation.

        The target field references the origin field. Any stale constraint
        with the same name is dropped first.

        Returns:
            The constraint name, or None when the dialect cannot alter constraints
        """
        if not self.supports_foreign_key_alter:
            return None

        constraint_name = foreign_key_name(relation_name)
        origin_table = entity_table_name(origin_entity)
        target_table = entity_table_name(target_entity)

        self.drop_foreign_key(session, relation_name, target_entity)
        session.execute(
            text(
                f"""
            ALTER TABLE "{target_table}"
            ADD CONSTRAINT "{constraint_name}"
            FOREIGN KEY ("{target_field}")
            REFERENCES "{origin_table}" ("{origin_field}")
        """
            )
        )
        return constraint_name

    def drop_foreign_key(self, session: Session, relation_name: str, target_entity: str) -> None:
        """Remove the foreign key of a relation from its target table."""
        if not self.supports_foreign_key_alter:
            return
        target_table = entity_table_name(target_entity)
        constraint_name = foreign_key_name(relation_name)
        session.execute(
            text(f'ALTER TABLE "{target_table}" DROP CONSTRAINT IF EXISTS "{constraint_name}"')
        )

    # === Many-to-many ===

    def create_join_table(
        self,
        session: Session,
        relation_name: str,
        origin_entity: str,
        origin_field: str,
        target_entity: str,
        target_field: str,
    ) -> str:
        """Create the join table backing a many-to-many relation.

        Returns:
            The join table name
        """
        table_name = join_table_name(relation_name)
        origin_table = entity_table_name(origin_entity)
        target_table = entity_table_name(target_entity)

        session.execute(
            text(
                f"""
            CREATE TABLE "{table_name}" (
                "{JOIN_ORIGIN_COLUMN}" VARCHAR(36) NOT NULL
                    REFERENCES "{origin_table}" ("{origin_field}") ON DELETE CASCADE,
                "{JOIN_TARGET_COLUMN}" VARCHAR(36) NOT NULL
                    REFERENCES "{target_table}" ("{target_field}") ON DELETE CASCADE,
                PRIMARY KEY ("{JOIN_ORIGIN_COLUMN}", "{JOIN_TARGET_COLUMN}")
            )
        """
            )
        )
        return table_name

    def drop_join_table(self, session: Session, relation_name: str) -> None:
        """Drop the join table of a many-to-many relation if present."""
        table_name = join_table_name(relation_name)
        if self._is_postgresql:
            session.execute(text(f'DROP TABLE IF EXISTS "{table_name}" CASCADE'))
        else:
            session.execute(text(f'DROP TABLE IF EXISTS "{table_name}"'))

    def insert_join_record(
        self, session: Session, relation_name: str, origin_id: UUID, target_id: UUID
    ) -> None:
        """Link an origin record to a target record."""
        table_name = join_table_name(relation_name)
        session.execute(
            text(
                f'INSERT INTO "{table_name}" ("{JOIN_ORIGIN_COLUMN}", "{JOIN_TARGET_COLUMN}") '
                "VALUES (:origin_id, :target_id)"
            ),
            {"origin_id": str(origin_id), "target_id": str(target_id)},
        )

    def delete_join_records(
        self,
        session: Session,
        relation_name: str,
        origin_id: UUID | None = None,
        target_id: UUID | None = None,
    ) -> int:
        """Unlink records; filters by origin, target, or both.

        Returns:
            Number of removed links
        """
        conditions = []
        params: dict[str, str] = {}
        if origin_id is not None:
            conditions.append(f'"{JOIN_ORIGIN_COLUMN}" = :origin_id')
            params["origin_id"] = str(origin_id)
        if target_id is not None:
            conditions.append(f'"{JOIN_TARGET_COLUMN}" = :target_id')
            params["target_id"] = str(target_id)
        if not conditions:
            raise ValueError("origin_id or target_id is required to delete join records")

        table_name = join_table_name(relation_name)
        result = session.execute(
            text(f'DELETE FROM "{table_name}" WHERE {" AND ".join(conditions)}'), params
        )
        return result.rowcount or 0

    def select_join_records(
        self,
        session: Session,
        relation_name: str,
        origin_id: UUID | None = None,
        target_id: UUID | None = None,
    ) -> list[tuple[str, str]]:
        """List (origin_id, target_id) links, optionally filtered."""
        conditions = []
        params: dict[str, str] = {}
        if origin_id is not None:
            conditions.append(f'"{JOIN_ORIGIN_COLUMN}" = :origin_id')
            params["origin_id"] = str(origin_id)
        if target_id is not None:
            conditions.append(f'"{JOIN_TARGET_COLUMN}" = :target_id')
            params["target_id"] = str(target_id)

        table_name = join_table_name(relation_name)
        sql = f'SELECT "{JOIN_ORIGIN_COLUMN}", "{JOIN_TARGET_COLUMN}" FROM "{table_name}"'
        if conditions:
            sql += f" WHERE {' AND '.join(conditions)}"
        return [(row[0], row[1]) for row in session.execute(text(sql), params)]

    # === Introspection ===

    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists.

        Args:
            table_name: The table name to check

        Returns:
            True if table exists
        """
        with self._engine.connect() as conn:
            if self._is_postgresql:
                result = conn.execute(
                    text(
                        """
                    SELECT EXISTS (
                        SELECT FROM information_schema.tables
                        WHERE table_name = :table
                    )
                """
                    ),
                    {"table": table_name},
                )
                return result.scalar() or False
            else:
                result = conn.execute(
                    text(
                        """
                    SELECT name FROM sqlite_master
                    WHERE type='table' AND name = :table
                """
                    ),
                    {"table": table_name},
                )
                return result.fetchone() is not None

    def foreign_key_exists(self, relation_name: str, target_entity: str) -> bool:
        """Check if the foreign key of a relation exists (PostgreSQL only)."""
        if not self._is_postgresql:
            return False
        with self._engine.connect() as conn:
            result = conn.execute(
                text(
                    """
                SELECT EXISTS (
                    SELECT FROM information_schema.table_constraints
                    WHERE constraint_type = 'FOREIGN KEY'
                    AND table_name = :table AND constraint_name = :constraint
                )
            """
                ),
                {
                    "table": entity_table_name(target_entity),
                    "constraint": foreign_key_name(relation_name),
                },
            )
            return result.scalar() or False
