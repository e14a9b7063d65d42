"""Persistence of relation definitions and the physical schema behind them."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, overload
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from dynaschema.core.types import EntityRelation, RelationType
from dynaschema.exceptions import EntityNotFoundError, RelationNotFoundError, StorageError
from dynaschema.relations.cache import RelationCache
from dynaschema.schema.models import EntityRelationRecord

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from dynaschema.core.connection import DatabaseConnection
    from dynaschema.core.types import EntityInfo
    from dynaschema.schema.engine import SchemaEngine

logger = logging.getLogger(__name__)


class RelationRepository:
    """Stores relation definitions and materializes them.

    Each relation is one ``dsm_entity_relations`` row holding the serialized
    definition. Creating or deleting a relation also creates or drops its
    foreign key (one-to-one, one-to-many) or join table (many-to-many) in
    the same transaction, so either both changes are visible or neither is.
    """

    def __init__(self, connection: DatabaseConnection, schema: SchemaEngine) -> None:
        """Initialize the repository.

        Args:
            connection: Database connection to use
            schema: Schema engine resolving entities and fields

        Raises:
            ValueError: If a dependency is missing
        """
        if connection is None:
            raise ValueError("The database connection is required.")
        if schema is None:
            raise ValueError("The schema engine is required.")

        self._connection = connection
        self._schema = schema
        self._ddl = schema.ddl
        self._cache = RelationCache()

    @property
    def cache(self) -> RelationCache:
        """The relation cache owned by this repository."""
        return self._cache

    # === Record mapping ===

    @staticmethod
    def _to_record(relation: EntityRelation) -> EntityRelationRecord:
        return EntityRelationRecord(
            id=str(relation.id), json=relation.model_dump(mode="json")
        )

    @staticmethod
    def _from_record(record_json: dict) -> EntityRelation:
        try:
            return EntityRelation.model_validate(record_json)
        except PydanticValidationError as e:
            raise StorageError(f"Unreadable relation record: {e}", {"record": record_json}) from e

    @staticmethod
    def _physical_key(relation: EntityRelation) -> tuple[object, ...]:
        """What the foreign key or join table of a relation is built from."""
        return ((relation.name or "").lower(), relation.relation_type, *relation.endpoints)

    def _load_all(self) -> list[EntityRelation]:
        logger.debug("Loading relation definitions into cache")
        self._schema.initialize()
        with self._connection.get_session() as session:
            rows = session.execute(select(EntityRelationRecord.json)).scalars()
            return [self._from_record(row) for row in rows]

    # === Reads ===

    @overload
    def read(self) -> list[EntityRelation]: ...

    @overload
    def read(self, key: UUID | str) -> EntityRelation | None: ...

    def read(self, key: UUID | str | None = None) -> EntityRelation | list[EntityRelation] | None:
        """Read relations through the cache.

        Args:
            key: Relation id (UUID), relation name (str, case-insensitive), or
                nothing to list every relation

        Returns:
            The relation (None when not found), or the list of all relations
        """
        if key is None:
            return [r.model_copy(deep=True) for r in self._cache.get_or_load(self._load_all)]

        if isinstance(key, UUID):
            relation = self._cache.get_by_id(key, self._load_all)
        else:
            relation = self._cache.get_by_name(key, self._load_all)
        return relation.model_copy(deep=True) if relation else None

    # === Writes ===

    def _endpoints(self, relation: EntityRelation) -> tuple[EntityInfo, str, EntityInfo, str]:
        """Resolve (origin entity, origin field name, target entity, target field name)."""
        origin = self._schema.get_entity(relation.origin_entity_id)
        target = self._schema.get_entity(relation.target_entity_id)
        if origin is None:
            raise EntityNotFoundError(str(relation.origin_entity_id))
        if target is None:
            raise EntityNotFoundError(str(relation.target_entity_id))

        origin_field = origin.get_field(relation.origin_field_id)
        target_field = target.get_field(relation.target_field_id)
        if origin_field is None or target_field is None:
            raise StorageError(
                f"Relation '{relation.name}' references a field that no longer exists.",
                {"relation_id": str(relation.id)},
            )
        return origin, origin_field.name, target, target_field.name

    def _materialize(
        self,
        session: Session,
        relation: EntityRelation,
        endpoints: tuple[EntityInfo, str, EntityInfo, str],
    ) -> None:
        origin, origin_field, target, target_field = endpoints
        if relation.relation_type == RelationType.MANY_TO_MANY:
            self._ddl.drop_join_table(session, relation.name)
            self._ddl.create_join_table(
                session, relation.name, origin.name, origin_field, target.name, target_field
            )
        else:
            self._ddl.create_foreign_key(
                session, relation.name, origin.name, origin_field, target.name, target_field
            )

    def _dematerialize(
        self, session: Session, relation: EntityRelation, target: EntityInfo | None
    ) -> None:
        if relation.relation_type == RelationType.MANY_TO_MANY:
            self._ddl.drop_join_table(session, relation.name)
        elif target is not None:
            self._ddl.drop_foreign_key(session, relation.name, target.name)

    def create(self, relation: EntityRelation) -> bool:
        """Persist a relation and create its foreign key or join table.

        Args:
            relation: A validated relation with an id

        Returns:
            True on success, False if the transaction was rolled back
        """
        if relation.id is None:
            raise ValueError("The relation id must be assigned before create.")

        self._schema.initialize()
        # Resolved before the write session opens: SQLite in-memory databases
        # share one connection, and a nested session would end the transaction.
        endpoints = self._endpoints(relation)

        with self._cache.locked():
            # Validation ran before the lock was taken; a concurrent create may have won
            existing = self.read(relation.name or "")
            if existing is not None:
                logger.error(
                    "Relation '%s' was created concurrently as %s", relation.name, existing.id
                )
                return False

            with self._connection.get_session() as session:
                try:
                    session.add(self._to_record(relation))
                    # Metadata row first so SQLite runs the DDL inside the open transaction
                    session.flush()
                    self._materialize(session, relation, endpoints)
                    session.commit()
                except SQLAlchemyError:
                    session.rollback()
                    logger.exception("Failed to create relation '%s'; rolled back", relation.name)
                    return False
                finally:
                    self._cache.invalidate()

        logger.info("Created %s relation '%s'", relation.relation_type, relation.name)
        return True

    def update(self, relation: EntityRelation) -> bool:
        """Rewrite a relation's metadata record in place (no DDL).

        Only attributes the physical schema does not depend on may change.

        Returns:
            True if a record was updated

        Raises:
            ValueError: If the name, type or endpoints differ from the stored relation
        """
        self._schema.initialize()
        with self._cache.locked():
            with self._connection.get_session() as session:
                try:
                    record = session.get(EntityRelationRecord, str(relation.id))
                    if record is None:
                        return False
                    stored = self._from_record(record.json)
                    if self._physical_key(stored) != self._physical_key(relation):
                        raise ValueError(
                            f"Relation '{relation.name}': only the label can be updated."
                        )
                    record.json = relation.model_dump(mode="json")
                    session.commit()
                except SQLAlchemyError:
                    session.rollback()
                    logger.exception("Failed to update relation '%s'; rolled back", relation.name)
                    return False
                finally:
                    self._cache.invalidate()

        logger.info("Updated relation '%s'", relation.name)
        return True

    def delete(self, relation_id: UUID) -> bool:
        """Remove a relation and drop its foreign key or join table.

        Returns:
            True on success, False if the transaction was rolled back

        Raises:
            RelationNotFoundError: If no relation has this id
        """
        relation = self.read(relation_id)
        if relation is None:
            raise RelationNotFoundError(relation_id)

        target = self._schema.get_entity(relation.target_entity_id)

        with self._cache.locked():
            with self._connection.get_session() as session:
                try:
                    record = session.get(EntityRelationRecord, str(relation_id))
                    if record is not None:
                        session.delete(record)
                    session.flush()
                    self._dematerialize(session, relation, target)
                    session.commit()
                except SQLAlchemyError:
                    session.rollback()
                    logger.exception("Failed to delete relation '%s'; rolled back", relation.name)
                    return False
                finally:
                    self._cache.invalidate()

        logger.info("Deleted relation '%s'", relation.name)
        return True

    # === Join records ===

    def create_join_record(self, relation_id: UUID, origin_id: UUID, target_id: UUID) -> None:
        """Link an origin record to a target record through a many-to-many relation.

        Raises:
            RelationNotFoundError: If no relation has this id
        """
        relation = self.read(relation_id)
        if relation is None:
            raise RelationNotFoundError(relation_id)

        with self._connection.get_session() as session:
            self._ddl.insert_join_record(session, relation.name, origin_id, target_id)
            session.commit()

    def delete_join_record(
        self,
        relation: str | UUID,
        origin_id: UUID | None = None,
        target_id: UUID | None = None,
    ) -> int:
        """Unlink records of a many-to-many relation.

        A relation name is used as-is, without checking that the relation
        exists; a relation id must resolve.

        Args:
            relation: Relation name or id
            origin_id: Only remove links from this origin record
            target_id: Only remove links to this target record

        Returns:
            Number of removed links

        Raises:
            RelationNotFoundError: If a relation id does not resolve
            ValueError: If neither origin_id nor target_id is given
        """
        if isinstance(relation, UUID):
            found = self.read(relation)
            if found is None:
                raise RelationNotFoundError(relation)
            relation_name = found.name
        else:
            relation_name = relation

        with self._connection.get_session() as session:
            removed = self._ddl.delete_join_records(session, relation_name, origin_id, target_id)
            session.commit()
            return removed

    def read_join_records(
        self,
        relation_name: str,
        origin_id: UUID | None = None,
        target_id: UUID | None = None,
    ) -> list[tuple[str, str]]:
        """List (origin_id, target_id) links of a many-to-many relation."""
        with self._connection.get_session() as session:
            return self._ddl.select_join_records(session, relation_name, origin_id, target_id)
