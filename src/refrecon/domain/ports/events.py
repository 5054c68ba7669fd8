"""Reference-data change events and the publishing port."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable
from uuid import UUID, uuid4

if TYPE_CHECKING:
    from collections.abc import Mapping

    from refrecon.domain.model import EntityKind, Operation


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class IdentifierSnapshot:
    type: str
    value: str
    source: str
    is_primary: bool


@dataclass(frozen=True, slots=True, kw_only=True)
class ReferenceDataEvent:
    """Finalised entity state handed to downstream consumers."""

    entity_kind: EntityKind
    operation: Operation
    source: str
    internal_id: str
    entity_id: UUID
    primary_identifier_type: str | None
    primary_identifier_value: str | None
    attributes: Mapping[str, object]
    identifiers: tuple[IdentifierSnapshot, ...]
    batch_id: str | None = None
    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=_utcnow)


@runtime_checkable
class ChangeEventPublisher(Protocol):
    def publish(self, event: ReferenceDataEvent) -> None: ...
