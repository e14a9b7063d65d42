"""In-process cache of relation definitions."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from uuid import UUID

from dynaschema.core.types import EntityRelation


class RelationCache:
    """Holds every relation definition, indexed by id and by lowercase name.

    One re-entrant lock guards population and every mutation. The cache is
    either fully loaded or empty: writers call :meth:`invalidate` and the
    next reader reloads the whole set.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._by_id: dict[UUID, EntityRelation] = {}
        self._by_name: dict[str, EntityRelation] = {}
        self._loaded = False

    @property
    def is_loaded(self) -> bool:
        """Whether the cache currently mirrors the store."""
        return self._loaded

    @contextmanager
    def locked(self) -> Iterator[None]:
        """Hold the cache lock for the duration of a write."""
        with self._lock:
            yield

    def invalidate(self) -> None:
        """Drop every cached relation; the next read reloads from the store."""
        with self._lock:
            self._by_id = {}
            self._by_name = {}
            self._loaded = False

    def get_or_load(
        self, loader: Callable[[], Iterable[EntityRelation]]
    ) -> list[EntityRelation]:
        """Return all relations, calling ``loader`` first if the cache is cold."""
        with self._lock:
            if not self._loaded:
                relations = list(loader())
                self._by_id = {r.id: r for r in relations if r.id is not None}
                self._by_name = {r.name.lower(): r for r in relations if r.name}
                self._loaded = True
            return list(self._by_id.values())

    def get_by_id(
        self, relation_id: UUID, loader: Callable[[], Iterable[EntityRelation]]
    ) -> EntityRelation | None:
        """Find a relation by id, loading the cache if needed."""
        with self._lock:
            self.get_or_load(loader)
            return self._by_id.get(relation_id)

    def get_by_name(
        self, name: str, loader: Callable[[], Iterable[EntityRelation]]
    ) -> EntityRelation | None:
        """Find a relation by case-insensitive name, loading the cache if needed."""
        with self._lock:
            self.get_or_load(loader)
            return self._by_name.get(name.lower())
