"""In-memory store, unit of work and event sink.

Entities handed out by a unit of work are private copies; nothing becomes
visible to other units of work until ``commit``. This mirrors the isolation the
SQLAlchemy adapter gets from its session and keeps rejected or failed records
from leaking partial state.

The store keeps an identifier index so a lookup only copies the entities it
can actually return.
"""

from __future__ import annotations

import copy
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from refrecon.domain.ports import ReconciliationRepositories

if TYPE_CHECKING:
    from collections.abc import Iterable
    from types import TracebackType
    from uuid import UUID

    from refrecon.domain.model import EntityKind, IdentifierTypeName, IndexComposition
    from refrecon.domain.model.reference import ReferenceEntityType
    from refrecon.domain.ports import IdentifierHint, ReferenceDataEvent

type IdentifierKey = tuple[str, str, str]


def _identifier_keys(entity: ReferenceEntityType) -> set[IdentifierKey]:
    return {(str(entity.kind), *identifier.key) for identifier in entity.identifiers}


@dataclass
class InMemoryReferenceStore:
    """Committed state shared by all in-memory units of work.

    Write through :meth:`apply` only; the lookup indexes are maintained there.
    """

    entities: dict[UUID, ReferenceEntityType] = field(default_factory=dict)
    compositions: dict[UUID, IndexComposition] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _by_identifier: defaultdict[IdentifierKey, set[UUID]] = field(
        default_factory=lambda: defaultdict(set), init=False, repr=False
    )
    _keys_of: dict[UUID, set[IdentifierKey]] = field(default_factory=dict, init=False, repr=False)
    _by_internal_id: dict[str, UUID] = field(default_factory=dict, init=False, repr=False)
    _position: dict[UUID, int] = field(default_factory=dict, init=False, repr=False)

    def snapshot(self) -> tuple[ReferenceEntityType, ...]:
        with self.lock:
            return tuple(copy.deepcopy(list(self.entities.values())))

    def apply(
        self,
        entities: Iterable[ReferenceEntityType],
        compositions: Iterable[IndexComposition],
    ) -> None:
        with self.lock:
            for entity in entities:
                self._put(copy.deepcopy(entity))
            for composition in compositions:
                self.compositions[composition.id] = copy.deepcopy(composition)

    def _put(self, entity: ReferenceEntityType) -> None:
        for key in self._keys_of.get(entity.id, set()):
            self._by_identifier[key].discard(entity.id)
        keys = _identifier_keys(entity)
        for key in keys:
            self._by_identifier[key].add(entity.id)
        self._keys_of[entity.id] = keys
        if entity.internal_id is not None:
            self._by_internal_id[entity.internal_id] = entity.id
        self._position.setdefault(entity.id, len(self._position))
        self.entities[entity.id] = entity

    # Lookups; callers hold ``lock``

    def ids_with(self, keys: Iterable[IdentifierKey]) -> set[UUID]:
        found: set[UUID] = set()
        for key in keys:
            found |= self._by_identifier.get(key, set())
        return found

    def id_of_internal_id(self, internal_id: str) -> UUID | None:
        return self._by_internal_id.get(internal_id)

    def position(self, entity_id: UUID) -> int:
        return self._position.get(entity_id, len(self._position))


class InMemoryEntityRepository:
    def __init__(self, store: InMemoryReferenceStore) -> None:
        self._store = store
        self._loaded: dict[UUID, ReferenceEntityType] = {}
        self.pending: dict[UUID, ReferenceEntityType] = {}

    def _local(self) -> dict[UUID, ReferenceEntityType]:
        merged = dict(self._loaded)
        merged.update(self.pending)
        return merged

    def _load(self, entity_ids: Iterable[UUID]) -> list[ReferenceEntityType]:
        """Private copies of ``entity_ids`` plus everything this unit already holds."""

        with self._store.lock:
            for entity_id in entity_ids:
                stored = self._store.entities.get(entity_id)
                if stored is not None and entity_id not in self._loaded:
                    self._loaded[entity_id] = copy.deepcopy(stored)
            local = self._local()
            return sorted(local.values(), key=lambda entity: self._store.position(entity.id))

    def find_candidates(
        self, kind: EntityKind, hints: Iterable[IdentifierHint]
    ) -> tuple[ReferenceEntityType, ...]:
        wanted = {(str(identifier_type), value) for identifier_type, value in hints}
        if not wanted:
            return ()
        with self._store.lock:
            ids = self._store.ids_with((str(kind), *key) for key in wanted)
        return tuple(
            entity
            for entity in self._load(ids)
            if entity.kind == kind and any(i.key in wanted for i in entity.identifiers)
        )

    def find_by_identifier(
        self, kind: EntityKind, identifier_type: IdentifierTypeName, value: str
    ) -> ReferenceEntityType | None:
        for entity in self.find_candidates(kind, [(identifier_type, value)]):
            if entity.has_identifier(identifier_type, value):
                return entity
        return None

    def get_by_internal_id(self, internal_id: str) -> ReferenceEntityType | None:
        with self._store.lock:
            entity_id = self._store.id_of_internal_id(internal_id)
        for entity in self._load([entity_id] if entity_id is not None else []):
            if entity.internal_id == internal_id:
                return entity
        return None

    def save(self, entity: ReferenceEntityType) -> ReferenceEntityType:
        self.pending[entity.id] = entity
        return entity


class InMemoryCompositionRepository:
    def __init__(self, store: InMemoryReferenceStore) -> None:
        self._store = store
        self.pending: dict[UUID, IndexComposition] = {}

    def add(self, composition: IndexComposition) -> None:
        self.pending[composition.id] = composition

    def for_index(self, index_id: UUID) -> tuple[IndexComposition, ...]:
        with self._store.lock:
            stored = {
                c.id: copy.deepcopy(c)
                for c in self._store.compositions.values()
                if c.index_id == index_id
            }
        stored.update((c.id, c) for c in self.pending.values() if c.index_id == index_id)
        return tuple(sorted(stored.values(), key=lambda c: c.effective_date))


class InMemoryUnitOfWork:
    """Unit of work over an :class:`InMemoryReferenceStore`."""

    def __init__(self, store: InMemoryReferenceStore) -> None:
        self.store = store
        self._repositories: ReconciliationRepositories | None = None

    def __enter__(self) -> InMemoryUnitOfWork:
        self._repositories = ReconciliationRepositories(
            entities=InMemoryEntityRepository(self.store),
            compositions=InMemoryCompositionRepository(self.store),
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if exc_type is not None:
            self.rollback()
        self._repositories = None
        return False

    @property
    def repositories(self) -> ReconciliationRepositories:
        if self._repositories is None:
            raise RuntimeError("Unit of work not entered")
        return self._repositories

    def commit(self) -> None:
        entities = self._entity_repository()
        compositions = self._composition_repository()
        self.store.apply(entities.pending.values(), compositions.pending.values())
        entities.pending.clear()
        compositions.pending.clear()

    def rollback(self) -> None:
        self._entity_repository().pending.clear()
        self._composition_repository().pending.clear()

    def _entity_repository(self) -> InMemoryEntityRepository:
        repository = self.repositories.entities
        if not isinstance(repository, InMemoryEntityRepository):
            raise TypeError("InMemoryUnitOfWork requires in-memory repositories")
        return repository

    def _composition_repository(self) -> InMemoryCompositionRepository:
        repository = self.repositories.compositions
        if not isinstance(repository, InMemoryCompositionRepository):
            raise TypeError("InMemoryUnitOfWork requires in-memory repositories")
        return repository


@dataclass
class InMemoryEventPublisher:
    """Collects published events; used by tests and dry runs."""

    events: list[ReferenceDataEvent] = field(default_factory=list["ReferenceDataEvent"])
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def publish(self, event: ReferenceDataEvent) -> None:
        with self._lock:
            self.events.append(event)
