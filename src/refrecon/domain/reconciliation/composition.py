"""Index composition links between already reconciled securities."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING

from refrecon.domain.model import (
    DEFAULT_COMPOSITION_TYPE,
    EntityKind,
    IndexComposition,
    normalize_identifier_type,
)

from .contracts import FieldError, FieldErrorCode
from .errors import NotFoundError, RecordValidationError
from .priorities import normalize_source
from .validate import IdentifierValidator

if TYPE_CHECKING:
    from collections.abc import Callable

    from refrecon.domain.model import CompositionRecord, IdentifierTypeName
    from refrecon.domain.model.reference import ReferenceEntityType
    from refrecon.domain.ports import EntityRepository

log = logging.getLogger(__name__)

_REQUIRED_FIELDS = (
    ("index_identifier", "Index id is required"),
    ("index_identifier_type", "Index id type is required"),
    ("constituent_identifier", "Constituent id is required"),
    ("constituent_identifier_type", "Constituent id type is required"),
)


def parse_weight(raw: str | float | None) -> float | None:
    """Weights arrive as text from most vendors; unparsable ones are dropped."""

    if raw is None or isinstance(raw, float):
        return raw
    text = str(raw).strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        log.warning("Invalid weight %r in composition record; storing without weight", raw)
        return None


@dataclass(frozen=True, slots=True)
class CompositionLinker:
    identifier_validator: IdentifierValidator = field(default_factory=IdentifierValidator)
    today: Callable[[], date] = date.today

    def validate(self, record: CompositionRecord) -> tuple[FieldError, ...]:
        errors: list[FieldError] = []
        for name, message in _REQUIRED_FIELDS:
            value = getattr(record, name)
            if value is None or not str(value).strip():
                errors.append(FieldError(name, message, FieldErrorCode.REQUIRED))
        if errors:
            return tuple(errors)

        for value_field, type_field in (
            ("index_identifier", "index_identifier_type"),
            ("constituent_identifier", "constituent_identifier_type"),
        ):
            identifier_type = normalize_identifier_type(str(getattr(record, type_field)))
            error = self.identifier_validator.validate(
                identifier_type, getattr(record, value_field), field_name=value_field
            )
            if error is not None:
                errors.append(error)
        return tuple(errors)

    def link(self, record: CompositionRecord, entities: EntityRepository) -> IndexComposition:
        """Build the composition link for ``record``.

        Raises ``RecordValidationError`` for malformed records and
        ``NotFoundError`` when the index or the constituent is not stored yet.
        """

        errors = self.validate(record)
        if errors:
            raise RecordValidationError(errors)
        index = _find_security(
            entities, record.index_identifier_type, record.index_identifier, role="index"
        )
        constituent = _find_security(
            entities,
            record.constituent_identifier_type,
            record.constituent_identifier,
            role="constituent",
        )

        return IndexComposition(
            index_id=index.id,
            constituent_id=constituent.id,
            weight=parse_weight(record.weight),
            composition_type=record.composition_type or DEFAULT_COMPOSITION_TYPE,
            effective_date=record.effective_date or self.today(),
            expiry_date=record.expiry_date,
            source=normalize_source(record.source) if record.source else None,
            is_active=True if record.is_active is None else record.is_active,
        )


def _find_security(
    entities: EntityRepository,
    identifier_type: IdentifierTypeName | None,
    value: str | None,
    *,
    role: str,
) -> ReferenceEntityType:
    resolved_type = normalize_identifier_type(str(identifier_type))
    resolved_value = str(value).strip()
    security = entities.find_by_identifier(EntityKind.SECURITY, resolved_type, resolved_value)
    if security is None:
        raise NotFoundError(EntityKind.SECURITY, resolved_type, resolved_value, role=role)
    return security
