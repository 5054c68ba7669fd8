"""Identifiers owned by reference entities.

An identifier points to (owner_kind, owner_id). Several identifiers of the same
type may coexist on one entity as long as they come from different sources; the
disagreement is kept for audit instead of being discarded.
"""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from refrecon.domain.model.entity import ReferenceEntity, new_id

if TYPE_CHECKING:
    from uuid import UUID

    from refrecon.domain.model.enums import EntityKind, IdentifierTypeName


@dataclass(eq=False, kw_only=True)
class Identifier:
    type: IdentifierTypeName
    value: str
    source: str
    priority: int

    owner_kind: EntityKind
    owner_id: UUID

    is_primary: bool = False
    ordinal: int = 0
    id: UUID = field(default_factory=new_id)

    @property
    def key(self) -> tuple[str, str]:
        return (str(self.type), self.value)


@dataclass(eq=False, kw_only=True)
class IdentifiedMixin(ReferenceEntity, ABC):
    """Capability: owns identifiers."""

    _identifiers: list[Identifier] = field(
        default_factory=list["Identifier"], repr=False, init=False
    )

    @property
    def identifiers(self) -> tuple[Identifier, ...]:
        return tuple(sorted(self._identifiers, key=lambda identifier: identifier.ordinal))

    @property
    def primary_identifier(self) -> Identifier | None:
        for identifier in self._identifiers:
            if identifier.is_primary:
                return identifier
        return None

    def identifiers_of(self, identifier_type: IdentifierTypeName) -> tuple[Identifier, ...]:
        """Identifiers of one type in insertion order."""
        return tuple(i for i in self.identifiers if i.type == identifier_type)

    def identifier_from(
        self, identifier_type: IdentifierTypeName, source: str
    ) -> Identifier | None:
        for identifier in self.identifiers_of(identifier_type):
            if identifier.source == source:
                return identifier
        return None

    def has_identifier(self, identifier_type: IdentifierTypeName, value: str) -> bool:
        return any(i.value == value for i in self.identifiers_of(identifier_type))

    def identifier_types(self) -> tuple[IdentifierTypeName, ...]:
        seen: dict[IdentifierTypeName, None] = {}
        for identifier in self.identifiers:
            seen.setdefault(identifier.type, None)
        return tuple(seen)

    def add_identifier(
        self,
        identifier_type: IdentifierTypeName,
        value: str,
        *,
        source: str,
        priority: int,
        is_primary: bool = False,
    ) -> Identifier:
        ordinal = max((i.ordinal for i in self._identifiers), default=-1) + 1
        identifier = Identifier(
            type=identifier_type,
            value=value,
            source=source,
            priority=priority,
            owner_kind=self.kind,
            owner_id=self.id,
            is_primary=is_primary,
            ordinal=ordinal,
        )
        self._identifiers.append(identifier)
        return identifier

    def remove_identifier(self, identifier: Identifier) -> None:
        self._identifiers.remove(identifier)
