"""Validation of relation definitions.

Validation runs in two phases. The first checks identity, name, label and
that both endpoints resolve to GUID fields. The second (structural) phase
only runs when the first found nothing, because it dereferences the
resolved fields.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from dynaschema.core.types import ErrorModel, RelationType, ValidationIntent
from dynaschema.core.validation import validate_label, validate_name

if TYPE_CHECKING:
    from dynaschema.core.types import EntityRelation, FieldInfo
    from dynaschema.relations.repository import RelationRepository
    from dynaschema.schema.engine import SchemaEngine


# (attribute, reported error field, description) of everything fixed at creation.
# The name is fixed too: join tables and foreign keys are named after it.
READONLY_ATTRIBUTES = (
    ("name", "name", "name"),
    ("relation_type", "relationType", "relation type"),
    ("origin_entity_id", "originEntityId", "origin entity"),
    ("origin_field_id", "originFieldId", "origin field"),
    ("target_entity_id", "targetEntityId", "target entity"),
    ("target_field_id", "targetFieldId", "target field"),
)


def _comparable(value: object) -> object:
    # Physical names are lowercased, so a change of case alone is not a change
    return value.lower() if isinstance(value, str) else value


class RelationValidator:
    """Checks a candidate relation against the store for a given intent."""

    def __init__(self, repository: RelationRepository, schema: SchemaEngine) -> None:
        self._repository = repository
        self._schema = schema

    def validate(self, relation: EntityRelation, intent: ValidationIntent) -> list[ErrorModel]:
        """Validate a relation.

        Args:
            relation: Candidate relation
            intent: What the relation is validated for

        Returns:
            Field-level errors; empty when the relation is valid
        """
        errors: list[ErrorModel] = []

        # === Phase 1: identity and shape ===

        if intent == ValidationIntent.UPDATE:
            if relation.id is None:
                errors.append(ErrorModel(field="id", value=None, message="Id is required!"))
            elif self._repository.read(relation.id) is None:
                errors.append(
                    ErrorModel(
                        field="id",
                        value=str(relation.id),
                        message="Entity relation with such Id does not exist!",
                    )
                )
        elif intent == ValidationIntent.CREATE:
            # A missing id is assigned just before the relation is created
            if relation.id is not None and self._repository.read(relation.id) is not None:
                errors.append(
                    ErrorModel(
                        field="id",
                        value=str(relation.id),
                        message="Entity relation with such Id already exist!",
                    )
                )

        if intent in (ValidationIntent.CREATE, ValidationIntent.UPDATE):
            errors.extend(self._validate_name(relation, intent))

        errors.extend(validate_label(relation.label))

        origin_field = self._resolve_endpoint(relation, "origin", errors)
        target_field = self._resolve_endpoint(relation, "target", errors)

        if errors:
            return errors

        # === Phase 2: structure ===

        if intent == ValidationIntent.UPDATE:
            errors.extend(self._validate_readonly(relation))
        elif intent == ValidationIntent.CREATE:
            errors.extend(self._validate_collisions(relation))
            errors.extend(self._validate_field_constraints(relation, origin_field, target_field))
        elif intent == ValidationIntent.RECHECK_ONLY:
            errors.extend(self._validate_field_constraints(relation, origin_field, target_field))

        return errors

    def _validate_name(
        self, relation: EntityRelation, intent: ValidationIntent
    ) -> list[ErrorModel]:
        format_errors = validate_name(relation.name)
        if format_errors:
            return format_errors

        existing = self._repository.read(relation.name or "")
        if existing is None:
            return []
        if intent == ValidationIntent.UPDATE and existing.id == relation.id:
            return []
        return [
            ErrorModel(
                field="name",
                value=relation.name,
                message=f"Entity relation '{relation.name}' exists already!",
            )
        ]

    def _resolve_endpoint(
        self, relation: EntityRelation, side: str, errors: list[ErrorModel]
    ) -> FieldInfo | None:
        """Resolve the origin or target field, recording problems in ``errors``."""
        entity_id = getattr(relation, f"{side}_entity_id")
        field_id = getattr(relation, f"{side}_field_id")

        entity = self._schema.get_entity(entity_id)
        if entity is None:
            errors.append(
                ErrorModel(
                    field=f"{side}Entity",
                    value=str(entity_id),
                    message=f"The {side} entity does not exist.",
                )
            )
            return None

        field = entity.get_field(field_id)
        if field is None:
            errors.append(
                ErrorModel(
                    field=f"{side}Field",
                    value=str(field_id),
                    message=f"The {side} field does not exist.",
                )
            )
            return None

        if not field.is_guid:
            errors.append(
                ErrorModel(
                    field=f"{side}Field",
                    value=str(field_id),
                    message=f"The {side} field should be Unique Identifier (GUID) field.",
                )
            )
            return None

        return field

    def _validate_readonly(self, relation: EntityRelation) -> list[ErrorModel]:
        existing = self._repository.read(relation.id) if relation.id else None
        if existing is None:
            return []

        errors = []
        for attribute, key, description in READONLY_ATTRIBUTES:
            new_value = getattr(relation, attribute)
            if _comparable(getattr(existing, attribute)) != _comparable(new_value):
                errors.append(
                    ErrorModel(
                        field=key,
                        value=str(new_value),
                        message=f"The initially selected {description} is readonly "
                        "and cannot be changed.",
                    )
                )
        return errors

    def _validate_collisions(self, relation: EntityRelation) -> list[ErrorModel]:
        errors = []
        if (
            relation.origin_entity_id == relation.target_entity_id
            and relation.origin_field_id == relation.target_field_id
        ):
            errors.append(ErrorModel(message="The origin and target fields cannot be the same."))

        for existing in self._repository.read():
            if (
                existing.target_entity_id == relation.target_entity_id
                and existing.target_field_id == relation.target_field_id
            ):
                errors.append(
                    ErrorModel(message="There is already existing relation to specified target.")
                )
            elif existing.endpoints == relation.endpoints:
                errors.append(
                    ErrorModel(message="There is already existing relation with same parameters.")
                )
        return errors

    @staticmethod
    def _validate_field_constraints(
        relation: EntityRelation, origin_field: FieldInfo, target_field: FieldInfo
    ) -> list[ErrorModel]:
        """Required/unique rules per relation type.

        Both sides of one-to-one and many-to-many relations must be required
        and unique; for one-to-many only the origin ("one") side must be.
        """
        checked = [("origin", relation.origin_field_id, origin_field)]
        if relation.relation_type in (RelationType.ONE_TO_ONE, RelationType.MANY_TO_MANY):
            checked.append(("target", relation.target_field_id, target_field))

        errors = []
        for side, field_id, field in checked:
            if not field.required:
                errors.append(
                    ErrorModel(
                        field=f"{side}FieldId",
                        value=str(field_id),
                        message=f"The {side} field must be specified as Required",
                    )
                )
            if not field.unique:
                errors.append(
                    ErrorModel(
                        field=f"{side}FieldId",
                        value=str(field_id),
                        message=f"The {side} field must be specified as Unique",
                    )
                )
        return errors
