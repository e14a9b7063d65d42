"""Meta-tables describing entities, their fields and the relations between them.

Entities and fields are plain rows. A relation is kept as a single JSON
document per row so its shape can grow without a meta-table migration.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

JSONType = JSONB().with_variant(JSON(), "sqlite")

META_TABLE_PREFIX = "dsm_"


def generate_uuid() -> str:
    return str(uuid4())


def utc_now() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    pass


class EntityDefinition(Base):
    """One runtime-defined entity and the name of its record table."""

    __tablename__ = f"{META_TABLE_PREFIX}entity_definitions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Lowercased copy of name so uniqueness ignores case
    name_key: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    label: Mapped[str | None] = mapped_column(String(255))
    table_name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    fields: Mapped[list[FieldDefinition]] = relationship(
        back_populates="entity",
        cascade="all, delete-orphan",
        order_by="FieldDefinition.position",
    )


class FieldDefinition(Base):
    """A column of an entity's record table, with its required/unique flags."""

    __tablename__ = f"{META_TABLE_PREFIX}field_definitions"
    __table_args__ = (UniqueConstraint("entity_id", "name", name="uq_dsm_field_entity_name"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    entity_id: Mapped[str] = mapped_column(
        ForeignKey(f"{META_TABLE_PREFIX}entity_definitions.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    label: Mapped[str | None] = mapped_column(String(255))
    field_type: Mapped[str] = mapped_column(String(50), nullable=False)
    is_required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_unique: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    position: Mapped[int] = mapped_column(default=0, nullable=False)

    entity: Mapped[EntityDefinition] = relationship(back_populates="fields")


class EntityRelationRecord(Base):
    """Serialized ``EntityRelation`` keyed by its id."""

    __tablename__ = f"{META_TABLE_PREFIX}entity_relations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    json: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
