"""Persistence ports for reference entities and index compositions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from refrecon.domain.model import EntityKind, IdentifierTypeName, IndexComposition
    from refrecon.domain.model.reference import ReferenceEntityType


type IdentifierHint = tuple[IdentifierTypeName, str]


@runtime_checkable
class EntityRepository(Protocol):
    def find_candidates(
        self, kind: EntityKind, hints: Iterable[IdentifierHint]
    ) -> tuple[ReferenceEntityType, ...]:
        """Entities of ``kind`` owning at least one of the (type, value) hints.

        Implementations look candidates up through an identifier index; callers
        never rely on a full scan.
        """
        ...

    def find_by_identifier(
        self, kind: EntityKind, identifier_type: IdentifierTypeName, value: str
    ) -> ReferenceEntityType | None: ...

    def get_by_internal_id(self, internal_id: str) -> ReferenceEntityType | None: ...

    def save(self, entity: ReferenceEntityType) -> ReferenceEntityType: ...


@runtime_checkable
class CompositionRepository(Protocol):
    def add(self, composition: IndexComposition) -> None: ...

    def for_index(self, index_id: UUID) -> tuple[IndexComposition, ...]: ...
