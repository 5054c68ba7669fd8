"""Public domain model surface."""

from __future__ import annotations

from refrecon.domain.model.entity import ReferenceEntity, new_id
from refrecon.domain.model.enums import (
    EntityKind,
    IdentifierType,
    IdentifierTypeName,
    Operation,
    normalize_identifier_type,
)
from refrecon.domain.model.identifiers import IdentifiedMixin, Identifier
from refrecon.domain.model.records import CompositionRecord, IncomingRecord, RecordIdentifier
from refrecon.domain.model.reference import (
    DEFAULT_COMPOSITION_TYPE,
    ENTITY_CLASS_BY_KIND,
    Counterparty,
    IndexComposition,
    ReferenceEntityType,
    Security,
    new_entity,
)

__all__ = [
    "DEFAULT_COMPOSITION_TYPE",
    "ENTITY_CLASS_BY_KIND",
    "CompositionRecord",
    "Counterparty",
    "EntityKind",
    "IdentifiedMixin",
    "Identifier",
    "IdentifierType",
    "IdentifierTypeName",
    "IncomingRecord",
    "IndexComposition",
    "Operation",
    "RecordIdentifier",
    "ReferenceEntity",
    "ReferenceEntityType",
    "Security",
    "new_entity",
    "new_id",
]
