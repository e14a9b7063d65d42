"""Core components for DynaSchema."""

from dynaschema.core.config import Settings
from dynaschema.core.connection import DatabaseConnection
from dynaschema.core.types import (
    EntityInfo,
    EntityRelation,
    ErrorModel,
    FieldInfo,
    FieldSpec,
    FieldType,
    RelationListResponse,
    RelationResponse,
    RelationType,
    ValidationIntent,
)

__all__ = [
    "DatabaseConnection",
    "Settings",
    "FieldType",
    "FieldSpec",
    "FieldInfo",
    "EntityInfo",
    "EntityRelation",
    "ErrorModel",
    "RelationType",
    "RelationResponse",
    "RelationListResponse",
    "ValidationIntent",
]
