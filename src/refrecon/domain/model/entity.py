"""
Base building blocks:
surrogate identity and the write-once internal identifier.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar
from uuid import UUID, uuid4

if TYPE_CHECKING:
    from datetime import datetime

    from refrecon.domain.model.enums import EntityKind


def new_id() -> UUID:
    return uuid4()


@dataclass(eq=False, kw_only=True)
class ReferenceEntity:
    """A security or counterparty known to the reference store.

    ``id`` is a storage surrogate. ``internal_id`` is the business identifier
    handed out to downstream systems; it is written once and never changes,
    even when the canonical identifier moves to a better scheme later on.
    """

    id: UUID = field(default_factory=new_id)
    primary_identifier_type: str | None = None
    primary_identifier_value: str | None = None
    updated_at: datetime | None = None

    _internal_id: str | None = field(default=None, init=False, repr=False)

    # class-level discriminator; subclasses must override
    ENTITY_KIND: ClassVar[EntityKind]

    @property
    def kind(self) -> EntityKind:
        return self.ENTITY_KIND

    @property
    def internal_id(self) -> str | None:
        return self._internal_id

    def assign_internal_id(self, value: str) -> None:
        if self._internal_id is not None and self._internal_id != value:
            raise ValueError(
                f"internal id already assigned ({self._internal_id}); refusing to change it"
            )
        self._internal_id = value
