"""Public entry point for relation operations."""

from __future__ import annotations

import logging
import traceback
from typing import TYPE_CHECKING, overload
from uuid import UUID, uuid4

from dynaschema.core.types import (
    ErrorModel,
    RelationListResponse,
    RelationResponse,
    ValidationIntent,
)

if TYPE_CHECKING:
    from dynaschema.core.types import EntityRelation
    from dynaschema.relations.repository import RelationRepository
    from dynaschema.relations.validator import RelationValidator

logger = logging.getLogger(__name__)


class RelationManager:
    """Validates, persists and reports on relations.

    Every operation returns a response envelope instead of raising:
    validation problems come back as ``errors``, and unexpected faults as a
    failed response whose message carries the fault details only in debug
    mode.
    """

    def __init__(
        self,
        repository: RelationRepository,
        validator: RelationValidator,
        debug: bool = False,
    ) -> None:
        """Initialize the manager.

        Args:
            repository: Relation persistence
            validator: Relation validation
            debug: Include exception details in failure messages
        """
        self._repository = repository
        self._validator = validator
        self._debug = debug

    def _fault_message(self, error: Exception, fallback: str | None) -> str | None:
        if self._debug:
            return "".join(traceback.format_exception(error))
        return fallback

    # === Reads ===

    @overload
    def read(self, key: str) -> RelationResponse: ...

    @overload
    def read(self, key: UUID) -> RelationResponse: ...

    def read(self, key: str | UUID) -> RelationResponse:
        """Read a relation by name (str) or id (UUID).

        A missing relation is a successful response with no object.
        """
        response = RelationResponse()

        if isinstance(key, str) and not key.strip():
            response.message = "The entity relation was not returned. Validation error occurred!"
            response.errors.append(
                ErrorModel(field="name", value=None, message="The name argument is empty.")
            )
            return response

        try:
            relation = self._repository.read(key)
        except Exception as e:
            logger.exception("Failed to read relation '%s'", key)
            response.message = self._fault_message(e, None)
            return response

        response.success = True
        if relation is not None:
            response.object = relation
            response.message = "The entity relation was successfully returned!"
        else:
            response.message = f"The entity relation '{key}' does not exist!"
        return response

    def read_all(self) -> RelationListResponse:
        """Read every relation."""
        response = RelationListResponse()
        try:
            response.object = self._repository.read()
            response.success = True
        except Exception as e:
            logger.exception("Failed to read relations")
            response.message = self._fault_message(e, None)
        return response

    # === Writes ===

    def create(self, relation: EntityRelation) -> RelationResponse:
        """Validate and create a relation; an id is assigned when missing."""
        response = RelationResponse(object=relation)
        try:
            response.errors = self._validator.validate(relation, ValidationIntent.CREATE)
            if response.errors:
                response.message = (
                    "The entity relation was not created. Validation error occurred!"
                )
                return response

            stored = relation.model_copy()
            if stored.id is None:
                stored.id = uuid4()

            if self._repository.create(stored):
                response.object = stored
                response.success = True
                response.message = "The entity relation was successfully created!"
            else:
                response.message = (
                    "The entity relation was not created! An internal error occurred!"
                )
        except Exception as e:
            logger.exception("Failed to create relation '%s'", relation.name)
            response.message = self._fault_message(
                e, "The entity relation was not created. An internal error occurred!"
            )
        return response

    def update(self, relation: EntityRelation) -> RelationResponse:
        """Validate and update a relation's label; name, type and endpoints are readonly."""
        response = RelationResponse(object=relation)
        try:
            response.errors = self._validator.validate(relation, ValidationIntent.UPDATE)
            if response.errors:
                response.message = (
                    "The entity relation was not updated. Validation error occurred!"
                )
                return response

            if self._repository.update(relation):
                response.success = True
                response.message = "The entity relation was successfully updated!"
            else:
                response.message = (
                    "The entity relation was not updated! An internal error occurred!"
                )
        except Exception as e:
            logger.exception("Failed to update relation '%s'", relation.name)
            response.message = self._fault_message(
                e, "The entity relation was not updated. An internal error occurred!"
            )
        return response

    def delete(self, relation_id: UUID) -> RelationResponse:
        """Delete a relation together with its foreign key or join table."""
        response = RelationResponse()
        try:
            relation = self._repository.read(relation_id)
            if relation is None:
                response.message = (
                    "The entity relation was not deleted! "
                    f"No instance with specified id ({relation_id}) was found!"
                )
                return response

            if self._repository.delete(relation_id):
                response.object = relation
                response.success = True
                response.message = "The entity relation was deleted!"
            else:
                response.message = (
                    "The entity relation was not deleted! An internal error occurred!"
                )
        except Exception as e:
            logger.exception("Failed to delete relation %s", relation_id)
            response.message = self._fault_message(
                e, "The entity relation was not deleted. An internal error occurred!"
            )
        return response

    def recheck(self, relation_id: UUID) -> RelationResponse:
        """Re-verify a stored relation against the current state of its fields.

        Useful after field attributes changed: reports required/unique
        violations and endpoints that no longer resolve.
        """
        response = self.read(relation_id)
        if not response.success:
            return response
        if response.object is None:
            response.success = False
            return response

        response.errors = self._validator.validate(response.object, ValidationIntent.RECHECK_ONLY)
        response.success = not response.errors
        response.message = (
            "The entity relation is consistent with its entities and fields."
            if response.success
            else "The entity relation is no longer consistent with its entities and fields!"
        )
        return response
