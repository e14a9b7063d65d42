"""Exception hierarchy.

Relation validation never raises; its problems come back as lists of
``ErrorModel``. What is raised here are metadata store faults, infrastructure
failures and caller misuse (unknown entity, unknown relation id).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from dynaschema.core.types import ErrorModel


def _listing(kind: str, names: list[str]) -> str:
    if not names:
        return f"No {kind} defined."
    return f"Available {kind}: {', '.join(names)}"


class DynaSchemaError(Exception):
    """Base class; ``context`` holds machine-readable details."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        return {"error": type(self).__name__, "message": self.message, "context": self.context}


class ConnectionError(DynaSchemaError):
    """The database is unreachable or its URL is unusable."""


class StorageError(DynaSchemaError):
    """A metadata record could not be written or read back."""


class ValidationError(DynaSchemaError):
    """An entity or field definition was rejected."""

    def __init__(self, message: str, errors: list[ErrorModel] | None = None) -> None:
        self.errors = list(errors or [])
        super().__init__(message, {"errors": [e.model_dump() for e in self.errors]})


class EntityNotFoundError(DynaSchemaError):
    def __init__(self, entity_name: str, available_entities: list[str] | None = None) -> None:
        self.entity_name = entity_name
        self.available_entities = list(available_entities or [])
        super().__init__(
            f"Entity '{entity_name}' not found. {_listing('entities', self.available_entities)}",
            {"entity_name": entity_name, "available_entities": self.available_entities},
        )


class EntityAlreadyExistsError(DynaSchemaError):
    """Entity names are unique regardless of case."""

    def __init__(self, entity_name: str) -> None:
        self.entity_name = entity_name
        super().__init__(f"Entity '{entity_name}' already exists.", {"entity_name": entity_name})


class FieldNotFoundError(DynaSchemaError):
    def __init__(
        self, field_name: str, entity_name: str, available_fields: list[str] | None = None
    ) -> None:
        self.field_name = field_name
        self.entity_name = entity_name
        self.available_fields = list(available_fields or [])
        super().__init__(
            f"Field '{field_name}' not found on '{entity_name}'. "
            f"{_listing('fields', self.available_fields)}",
            {
                "field_name": field_name,
                "entity_name": entity_name,
                "available_fields": self.available_fields,
            },
        )


class FieldAlreadyExistsError(DynaSchemaError):
    def __init__(self, field_name: str, entity_name: str) -> None:
        self.field_name = field_name
        self.entity_name = entity_name
        super().__init__(
            f"Field '{field_name}' already exists on '{entity_name}'.",
            {"field_name": field_name, "entity_name": entity_name},
        )


class InvalidFieldTypeError(DynaSchemaError):
    def __init__(self, field_type: str) -> None:
        # core.types is imported lazily: the core package imports this module
        from dynaschema.core.types import FieldType

        self.field_type = field_type
        valid = FieldType.values()
        super().__init__(
            f"Invalid field type '{field_type}'. Valid types: {', '.join(valid)}",
            {"field_type": field_type, "valid_types": valid},
        )


class RelationNotFoundError(DynaSchemaError):
    """Raised when a caller addresses a relation id that is not stored."""

    def __init__(self, relation_id: Any) -> None:
        self.relation_id = relation_id
        super().__init__(
            f"There is no entity relation with id '{relation_id}'.",
            {"relation_id": str(relation_id)},
        )
