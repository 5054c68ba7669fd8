"""JSON-lines sink for reference-data change events."""

from __future__ import annotations

import logging
import threading
from datetime import datetime  # noqa: TC003
from typing import TYPE_CHECKING, Any
from uuid import UUID  # noqa: TC003

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from pathlib import Path
    from types import TracebackType

    from refrecon.domain.ports import ReferenceDataEvent

log = logging.getLogger(__name__)


class IdentifierPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    value: str
    source: str
    is_primary: bool


class EventPayload(BaseModel):
    """Wire shape of a :class:`ReferenceDataEvent`."""

    model_config = ConfigDict(frozen=True)

    event_id: UUID
    entity_kind: str
    operation: str
    source: str
    internal_id: str
    entity_id: UUID
    primary_identifier_type: str | None
    primary_identifier_value: str | None
    attributes: dict[str, Any]
    identifiers: list[IdentifierPayload]
    batch_id: str | None
    occurred_at: datetime

    @classmethod
    def from_event(cls, event: ReferenceDataEvent) -> EventPayload:
        return cls(
            event_id=event.event_id,
            entity_kind=str(event.entity_kind),
            operation=str(event.operation),
            source=event.source,
            internal_id=event.internal_id,
            entity_id=event.entity_id,
            primary_identifier_type=event.primary_identifier_type,
            primary_identifier_value=event.primary_identifier_value,
            attributes=dict(event.attributes),
            identifiers=[
                IdentifierPayload(
                    type=i.type, value=i.value, source=i.source, is_primary=i.is_primary
                )
                for i in event.identifiers
            ],
            batch_id=event.batch_id,
            occurred_at=event.occurred_at,
        )


class JsonLinesEventPublisher:
    """Appends one JSON document per event to ``path``."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = threading.Lock()
        self.published = 0

    def publish(self, event: ReferenceDataEvent) -> None:
        line = EventPayload.from_event(event).model_dump_json()
        with self._lock:
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
            self.published += 1
        log.debug("Published %s event for %s", event.operation, event.internal_id)

    def __enter__(self) -> JsonLinesEventPublisher:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        log.info("Wrote %s events to %s", self.published, self.path)
