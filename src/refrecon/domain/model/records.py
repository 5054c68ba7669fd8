"""Immutable single-source snapshots produced by vendor adapters."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from types import MappingProxyType
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

if TYPE_CHECKING:
    from refrecon.domain.model.enums import EntityKind, IdentifierTypeName


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class RecordIdentifier:
    """An identifier as reported by a vendor; ``type`` may be left for detection."""

    type: IdentifierTypeName | None
    value: str


@dataclass(frozen=True, slots=True, kw_only=True)
class IncomingRecord:
    """One entity as reported by one vendor in one batch."""

    kind: EntityKind
    source: str | None
    external_id: str | None
    identifier_type: IdentifierTypeName | None
    identifiers: tuple[RecordIdentifier, ...] = ()
    attributes: Mapping[str, object] = field(default_factory=dict[str, object])
    batch_id: str | None = None
    record_id: UUID = field(default_factory=uuid4)
    observed_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    @property
    def duplicate_key(self) -> tuple[str | None, str | None, str | None]:
        """Key under which two records of one batch count as the same entry."""
        identifier_type = str(self.identifier_type) if self.identifier_type else None
        return (self.external_id, identifier_type, self.source)

    def declared_identifiers(self) -> tuple[RecordIdentifier, ...]:
        """External id first, then the additional identifiers, without repeats."""

        declared: list[RecordIdentifier] = []
        if self.external_id and self.identifier_type:
            declared.append(RecordIdentifier(type=self.identifier_type, value=self.external_id))
        for identifier in self.identifiers:
            if identifier not in declared:
                declared.append(identifier)
        return tuple(declared)


@dataclass(frozen=True, slots=True, kw_only=True)
class CompositionRecord:
    """An index-to-constituent relationship as reported by a vendor."""

    index_identifier: str | None
    index_identifier_type: IdentifierTypeName | None
    constituent_identifier: str | None
    constituent_identifier_type: IdentifierTypeName | None
    weight: str | float | None = None
    composition_type: str | None = None
    effective_date: date | None = None
    expiry_date: date | None = None
    source: str | None = None
    is_active: bool | None = None
    batch_id: str | None = None
