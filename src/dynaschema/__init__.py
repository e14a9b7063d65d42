"""DynaSchema - runtime-defined entities and typed relations.

Entities and their fields are stored as metadata rows and materialized as
``rec_<name>`` tables. Relations between entities are validated against the
current schema and backed by a foreign key (one-to-one, one-to-many) or a
join table (many-to-many), created in the same transaction as the relation
definition itself.

Example:
    from dynaschema import DynaSchema, EntityRelation, RelationType

    db = DynaSchema("sqlite:///./app.db")

    customer = db.create_entity("customer")
    order = db.create_entity(
        "order",
        fields=[{"name": "customer_id", "type": "guid"}],
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
    if not response.success:
        print(response.message, response.errors)
"""

from dynaschema.core.config import Settings
from dynaschema.core.engine import DynaSchema
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
from dynaschema.exceptions import (
    DynaSchemaError,
    EntityAlreadyExistsError,
    EntityNotFoundError,
    FieldAlreadyExistsError,
    FieldNotFoundError,
    InvalidFieldTypeError,
    RelationNotFoundError,
    StorageError,
    ValidationError,
)
from dynaschema.relations import (
    RelationCache,
    RelationManager,
    RelationRepository,
    RelationValidator,
)

__version__ = "0.1.0"

__all__ = [
    # Main classes
    "DynaSchema",
    "Settings",
    # Types
    "FieldType",
    "FieldSpec",
    "FieldInfo",
    "EntityInfo",
    "RelationType",
    "EntityRelation",
    "ErrorModel",
    "ValidationIntent",
    "RelationResponse",
    "RelationListResponse",
    # Relations
    "RelationCache",
    "RelationRepository",
    "RelationValidator",
    "RelationManager",
    # Exceptions
    "DynaSchemaError",
    "EntityNotFoundError",
    "EntityAlreadyExistsError",
    "FieldNotFoundError",
    "FieldAlreadyExistsError",
    "InvalidFieldTypeError",
    "RelationNotFoundError",
    "StorageError",
    "ValidationError",
]
