"""Core types for DynaSchema.

All types are pydantic models so they serialize cleanly to JSON, both for
callers and for the relation records persisted in the metadata store.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class FieldType(StrEnum):
    """Field kinds an entity field can have."""

    GUID = "guid"  # Unique identifier; the only kind usable as a relation endpoint
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    MULTISELECT = "multiselect"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid field type values."""
        return [t.value for t in cls]


class RelationType(StrEnum):
    """Relation types between two entities."""

    ONE_TO_ONE = "one_to_one"  # e.g., User -> Profile
    ONE_TO_MANY = "one_to_many"  # e.g., Customer -> Orders (FK lives on the target)
    MANY_TO_MANY = "many_to_many"  # e.g., Product <-> Tag (join table)

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid relation type values."""
        return [t.value for t in cls]


class ValidationIntent(StrEnum):
    """What a relation is being validated for."""

    CREATE = "create"  # The relation is about to be created
    UPDATE = "update"  # An existing relation is about to be updated
    RECHECK_ONLY = "recheck_only"  # Re-verify an existing relation against current fields


class ErrorModel(BaseModel):
    """A single field-level validation error."""

    field: str | None = Field(default=None, description="Offending attribute, None if general")
    value: str | None = Field(default=None, description="Offending value as string")
    message: str


class FieldSpec(BaseModel):
    """Input shape of a field definition."""

    name: str = Field(..., description="Field name")
    type: FieldType = Field(default=FieldType.TEXT, description="Field kind")
    required: bool = Field(default=False, description="Whether a value is mandatory")
    unique: bool = Field(default=False, description="Whether values must be unique")
    label: str | None = Field(default=None, description="Display label")

    model_config = {"use_enum_values": True}


class FieldInfo(BaseModel):
    """Information about an existing field (output format)."""

    id: UUID
    name: str
    type: FieldType
    required: bool
    unique: bool
    label: str | None = None
    is_system: bool = False

    @property
    def is_guid(self) -> bool:
        """True when the field can be a relation endpoint."""
        return self.type == FieldType.GUID


class EntityInfo(BaseModel):
    """Information about an existing entity (output format)."""

    id: UUID
    name: str
    label: str | None = None
    table_name: str
    fields: list[FieldInfo] = Field(default_factory=list)
    created_at: datetime | None = None

    def get_field(self, field_id: UUID) -> FieldInfo | None:
        """Find a field of this entity by id."""
        return next((f for f in self.fields if f.id == field_id), None)

    def get_field_by_name(self, name: str) -> FieldInfo | None:
        """Find a field of this entity by case-insensitive name."""
        lowered = name.lower()
        return next((f for f in self.fields if f.name.lower() == lowered), None)


class EntityRelation(BaseModel):
    """A typed relation between two entities through two GUID fields.

    ``relation_type`` and both endpoints are fixed once the relation exists;
    only ``name`` and ``label`` may change through an update.
    """

    id: UUID | None = Field(default=None, description="Assigned on create when omitted")
    name: str | None = Field(default=None, description="Unique (case-insensitive) relation name")
    label: str | None = Field(default=None, description="Display label")
    relation_type: RelationType
    origin_entity_id: UUID
    origin_field_id: UUID
    target_entity_id: UUID
    target_field_id: UUID

    @property
    def endpoints(self) -> tuple[UUID, UUID, UUID, UUID]:
        """(origin entity, origin field, target entity, target field)."""
        return (
            self.origin_entity_id,
            self.origin_field_id,
            self.target_entity_id,
            self.target_field_id,
        )


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class RelationResponse(BaseModel):
    """Uniform result envelope for single-relation operations."""

    success: bool = False
    object: EntityRelation | None = None
    message: str | None = None
    errors: list[ErrorModel] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-compatible dictionary."""
        return self.model_dump(mode="json")


class RelationListResponse(BaseModel):
    """Uniform result envelope for list operations."""

    success: bool = False
    object: list[EntityRelation] | None = None
    message: str | None = None
    errors: list[ErrorModel] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-compatible dictionary."""
        return self.model_dump(mode="json")
