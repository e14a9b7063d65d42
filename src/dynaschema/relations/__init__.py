"""Entity relations: validation, persistence, caching and orchestration."""

from dynaschema.relations.cache import RelationCache
from dynaschema.relations.manager import RelationManager
from dynaschema.relations.repository import RelationRepository
from dynaschema.relations.validator import RelationValidator

__all__ = [
    "RelationCache",
    "RelationManager",
    "RelationRepository",
    "RelationValidator",
]
