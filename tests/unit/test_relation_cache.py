"""Tests for the relation cache."""

import threading
from uuid import uuid4

from dynaschema.core.types import EntityRelation, RelationType
from dynaschema.relations.cache import RelationCache


def _relation(name: str) -> EntityRelation:
    return EntityRelation(
        id=uuid4(),
        name=name,
        label=name,
        relation_type=RelationType.ONE_TO_MANY,
        origin_entity_id=uuid4(),
        origin_field_id=uuid4(),
        target_entity_id=uuid4(),
        target_field_id=uuid4(),
    )


class CountingLoader:
    """Loader stub recording how often the store is hit."""

    def __init__(self, relations: list[EntityRelation]) -> None:
        self.relations = relations
        self.calls = 0

    def __call__(self) -> list[EntityRelation]:
        self.calls += 1
        return list(self.relations)


class TestRelationCache:
    """Tests for RelationCache."""

    def test_loads_once(self):
        """The loader runs only on the first read."""
        loader = CountingLoader([_relation("a"), _relation("b")])
        cache = RelationCache()

        assert not cache.is_loaded
        assert len(cache.get_or_load(loader)) == 2
        assert len(cache.get_or_load(loader)) == 2
        assert cache.is_loaded
        assert loader.calls == 1

    def test_empty_set_is_cached(self):
        """An empty store does not cause a reload on every read."""
        loader = CountingLoader([])
        cache = RelationCache()

        assert cache.get_or_load(loader) == []
        assert cache.get_or_load(loader) == []
        assert loader.calls == 1

    def test_lookup_by_id_and_name(self):
        """Relations are indexed by id and by case-insensitive name."""
        relation = _relation("Customer_Orders")
        loader = CountingLoader([relation])
        cache = RelationCache()

        assert cache.get_by_id(relation.id, loader) == relation
        assert cache.get_by_name("customer_orders", loader) == relation
        assert cache.get_by_name("CUSTOMER_ORDERS", loader) == relation
        assert cache.get_by_id(uuid4(), loader) is None
        assert cache.get_by_name("missing", loader) is None
        assert loader.calls == 1

    def test_invalidate_forces_reload(self):
        """After invalidation the next read sees the store again."""
        loader = CountingLoader([_relation("a")])
        cache = RelationCache()
        cache.get_or_load(loader)

        loader.relations.append(_relation("b"))
        assert len(cache.get_or_load(loader)) == 1

        cache.invalidate()
        assert not cache.is_loaded
        assert len(cache.get_or_load(loader)) == 2
        assert loader.calls == 2

    def test_locked_blocks_readers(self):
        """Readers wait while a writer holds the cache lock."""
        loader = CountingLoader([_relation("a")])
        cache = RelationCache()
        results: list[int] = []

        with cache.locked():
            reader = threading.Thread(target=lambda: results.append(len(cache.get_or_load(loader))))
            reader.start()
            reader.join(timeout=0.1)
            assert reader.is_alive()
            assert results == []

        reader.join(timeout=5)
        assert results == [1]

    def test_locked_is_reentrant(self):
        """The lock holder can read through the cache."""
        loader = CountingLoader([_relation("a")])
        cache = RelationCache()

        with cache.locked():
            assert len(cache.get_or_load(loader)) == 1
            cache.invalidate()
