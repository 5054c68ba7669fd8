"""Diagnostics for identifier disagreements retained on an entity."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from refrecon.domain.model import Identifier, IdentifierTypeName
    from refrecon.domain.model.reference import ReferenceEntityType

    from .priorities import SourcePriorityTable

log = logging.getLogger(__name__)


def conflicting_identifiers(
    entity: ReferenceEntityType,
) -> dict[IdentifierTypeName, tuple[Identifier, ...]]:
    """Identifier types for which the entity holds more than one distinct value."""

    conflicts: dict[IdentifierTypeName, tuple[Identifier, ...]] = {}
    for identifier_type in entity.identifier_types():
        identifiers = entity.identifiers_of(identifier_type)
        if len({i.value for i in identifiers}) > 1:
            conflicts[identifier_type] = identifiers
    return conflicts


def log_identifier_conflicts(entity: ReferenceEntityType, priorities: SourcePriorityTable) -> int:
    """Log one WARNING per conflicting identifier type; return how many were found."""

    conflicts = conflicting_identifiers(entity)
    for identifier_type, identifiers in conflicts.items():
        described = ", ".join(
            f"{i.value} from {priorities.display_name(i.source)} "
            f"(priority {priorities.rank(i.source)}{', primary' if i.is_primary else ''})"
            for i in sorted(identifiers, key=lambda i: priorities.rank(i.source))
        )
        log.warning(
            "%s %s has conflicting %s values: %s",
            entity.kind,
            entity.internal_id or entity.id,
            identifier_type,
            described,
        )
    return len(conflicts)
