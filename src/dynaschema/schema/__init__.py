"""Schema management for DynaSchema."""

from dynaschema.schema.engine import SchemaEngine
from dynaschema.schema.models import EntityDefinition, EntityRelationRecord, FieldDefinition

__all__ = [
    "SchemaEngine",
    "EntityDefinition",
    "EntityRelationRecord",
    "FieldDefinition",
]
