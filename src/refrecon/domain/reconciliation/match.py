"""Find the existing entity an incoming record refers to."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .priorities import UNRANKED, CanonicalTypeOrder

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from refrecon.domain.model import EntityKind, RecordIdentifier
    from refrecon.domain.model.reference import ReferenceEntityType

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EntityMatcher:
    """Multi-key matching in canonical type order.

    Source is deliberately ignored on both sides: a value match is enough, no
    matter which vendor supplied the stored identifier.
    """

    canonical_types: CanonicalTypeOrder = field(default_factory=CanonicalTypeOrder)

    def match_order(
        self, kind: EntityKind, identifiers: Sequence[RecordIdentifier]
    ) -> tuple[RecordIdentifier, ...]:
        """Canonical types first, in canonical order, then the rest as reported."""

        def position(item: tuple[int, RecordIdentifier]) -> tuple[int, int]:
            index, identifier = item
            if identifier.type is None:
                return (UNRANKED, index)
            return (self.canonical_types.rank(kind, identifier.type), index)

        return tuple(identifier for _, identifier in sorted(enumerate(identifiers), key=position))

    def find_match(
        self,
        kind: EntityKind,
        identifiers: Sequence[RecordIdentifier],
        candidates: Iterable[ReferenceEntityType],
    ) -> ReferenceEntityType | None:
        pool = [candidate for candidate in candidates if candidate.kind == kind]
        if not identifiers or not pool:
            return None

        for identifier in self.match_order(kind, identifiers):
            if identifier.type is None:
                continue
            for candidate in pool:
                if candidate.has_identifier(identifier.type, identifier.value):
                    log.debug(
                        "Matched %s on %s=%s (internal id %s)",
                        kind,
                        identifier.type,
                        identifier.value,
                        candidate.internal_id,
                    )
                    return candidate
        return None
