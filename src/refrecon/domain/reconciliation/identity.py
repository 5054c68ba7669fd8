"""Internal identifier derivation and canonical (primary) identifier selection."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from .errors import UnidentifiableEntityError
from .priorities import (
    DEFAULT_INTERNAL_ID_PREFIX,
    CanonicalTypeOrder,
    SourcePriorityTable,
)

if TYPE_CHECKING:
    from refrecon.domain.model import Identifier
    from refrecon.domain.model.reference import ReferenceEntityType

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class IdentityAssigner:
    """Derives write-once internal ids and keeps the primary identifier current."""

    canonical_types: CanonicalTypeOrder = field(default_factory=CanonicalTypeOrder)
    priorities: SourcePriorityTable = field(default_factory=SourcePriorityTable)
    prefix: str = DEFAULT_INTERNAL_ID_PREFIX
    allow_timestamp_fallback: bool = False
    clock: Callable[[], datetime] = _utcnow

    def canonical_identifier(self, entity: ReferenceEntityType) -> Identifier | None:
        """First identifier in canonical type order; within a type, the most trusted."""

        for identifier_type in self.canonical_types.types_for(entity.kind):
            candidates = entity.identifiers_of(identifier_type)
            if candidates:
                return min(candidates, key=lambda i: self.priorities.rank(i.source))
        return None

    def refresh_primary(self, entity: ReferenceEntityType) -> Identifier | None:
        """Recompute the primary flag and the denormalised primary fields.

        Runs on every merge, including for entities whose internal id is already
        fixed: the canonical identifier may move (e.g. an ISIN arrives where only
        a ticker was known) while the internal id stays put.
        """

        primary = self.canonical_identifier(entity)
        if primary is None and entity.identifiers:
            primary = entity.identifiers[0]
        for identifier in entity.identifiers:
            identifier.is_primary = identifier is primary

        new_type = str(primary.type) if primary is not None else None
        new_value = primary.value if primary is not None else None
        if (entity.primary_identifier_type, entity.primary_identifier_value) != (
            new_type,
            new_value,
        ):
            log.debug(
                "Primary identifier of %s moved from %s=%s to %s=%s",
                entity.internal_id or entity.id,
                entity.primary_identifier_type,
                entity.primary_identifier_value,
                new_type,
                new_value,
            )
            entity.primary_identifier_type = new_type
            entity.primary_identifier_value = new_value
        return primary

    def derive_internal_id(self, entity: ReferenceEntityType) -> str:
        canonical = self.canonical_identifier(entity)
        if canonical is not None:
            return f"{self.prefix}-{canonical.type}-{canonical.value}"

        identifiers = entity.identifiers
        if identifiers:
            first = identifiers[0]
            return f"{self.prefix}-{entity.kind}-{first.type}-{first.value}"

        if not self.allow_timestamp_fallback:
            raise UnidentifiableEntityError(
                f"{entity.kind} {entity.id} has no identifiers; refusing to mint an "
                "internal id that could not be reproduced on replay"
            )
        millis = int(self.clock().timestamp() * 1000)
        internal_id = f"{self.prefix}-{entity.kind}-{millis}"
        log.warning(
            "Minted timestamp internal id %s for %s without identifiers; "
            "it cannot be matched on replay",
            internal_id,
            entity.kind,
        )
        return internal_id

    def assign_if_missing(self, entity: ReferenceEntityType) -> ReferenceEntityType:
        self.refresh_primary(entity)
        if entity.internal_id is None:
            entity.assign_internal_id(self.derive_internal_id(entity))
            log.debug("Assigned internal id %s to %s", entity.internal_id, entity.id)
        return entity
