"""Identifier format rules, type detection and record-level validation.

Validation never raises mid-batch: every problem becomes a ``FieldError`` and
the caller decides what to do with the accumulated list.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from refrecon.domain.model import (
    EntityKind,
    IdentifierType,
    RecordIdentifier,
    normalize_identifier_type,
)

from .contracts import FieldError, FieldErrorCode, ValidationResult
from .errors import FormatError
from .priorities import CanonicalTypeOrder

if TYPE_CHECKING:
    from refrecon.domain.model import IdentifierTypeName, IncomingRecord


IDENTIFIER_PATTERNS: Final[Mapping[IdentifierTypeName, re.Pattern[str]]] = MappingProxyType(
    {
        IdentifierType.ISIN: re.compile(r"[A-Z]{2}[A-Z0-9]{9}[0-9]"),
        IdentifierType.CUSIP: re.compile(r"[A-Z0-9]{8}[0-9]"),
        IdentifierType.SEDOL: re.compile(r"[A-Z0-9]{6}[0-9]"),
        IdentifierType.BLOOMBERG_ID: re.compile(r"BBG[A-Z0-9]{9}"),
        IdentifierType.REUTERS_ID: re.compile(r"RIC:[A-Z0-9.]{2,10}"),
        IdentifierType.TICKER: re.compile(r"[A-Z0-9.\-]{1,15}"),
    }
)

# Schemes with a literal prefix are tried before the length-based rules: "BBG" plus
# nine characters also fits the ISIN shape.
PREFIXED_TYPES: Final[tuple[IdentifierType, ...]] = (
    IdentifierType.BLOOMBERG_ID,
    IdentifierType.REUTERS_ID,
)

# Rules overlap in length, so the order is the tie-break. Do not reorder.
DETECTION_ORDER: Final[tuple[IdentifierType, ...]] = (
    IdentifierType.ISIN,
    IdentifierType.CUSIP,
    IdentifierType.SEDOL,
    IdentifierType.BLOOMBERG_ID,
    IdentifierType.REUTERS_ID,
    IdentifierType.TICKER,
)

REQUIRED_ATTRIBUTES: Final[Mapping[EntityKind, tuple[str, ...]]] = MappingProxyType(
    {
        EntityKind.SECURITY: ("security_type",),
        EntityKind.COUNTERPARTY: ("name", "counterparty_type"),
    }
)


def _is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def identifier_field_name(identifier_type: IdentifierTypeName | None, position: int) -> str:
    if identifier_type is None:
        return f"identifiers[{position}]"
    return str(identifier_type).lower()


class IdentifierValidator:
    """Checks the lexical shape of one identifier value given its declared type.

    Types without a rule (LEI, BIC, vendor-specific schemes) pass unchecked.
    """

    def __init__(
        self, patterns: Mapping[IdentifierTypeName, re.Pattern[str]] | None = None
    ) -> None:
        self._patterns = IDENTIFIER_PATTERNS if patterns is None else patterns

    def validate(
        self,
        identifier_type: IdentifierTypeName,
        value: str | None,
        *,
        field_name: str | None = None,
    ) -> FieldError | None:
        name = field_name or str(identifier_type).lower()
        if value is None or not value.strip():
            return FieldError(name, f"{identifier_type} value is empty", FieldErrorCode.FORMAT)
        pattern = self._patterns.get(identifier_type)
        if pattern is None or pattern.fullmatch(value):
            return None
        return FieldError(
            name,
            f"{value!r} is not a valid {identifier_type} (expected {pattern.pattern})",
            FieldErrorCode.FORMAT,
        )

    def is_valid(self, identifier_type: IdentifierTypeName, value: str | None) -> bool:
        return self.validate(identifier_type, value) is None

    def check(self, identifier_type: IdentifierTypeName, value: str) -> None:
        """Raising variant of :meth:`validate`."""
        error = self.validate(identifier_type, value)
        if error is not None:
            raise FormatError(identifier_type, value, error.message)


class IdentifierTypeDetector:
    def __init__(
        self,
        patterns: Mapping[IdentifierTypeName, re.Pattern[str]] | None = None,
        order: tuple[IdentifierType, ...] = DETECTION_ORDER,
    ) -> None:
        self._patterns = IDENTIFIER_PATTERNS if patterns is None else patterns
        prefixed = tuple(t for t in order if t in PREFIXED_TYPES)
        self._order = prefixed + tuple(t for t in order if t not in PREFIXED_TYPES)

    def detect(self, value: str | None) -> IdentifierType | None:
        """Return the first type whose rule matches ``value``.

        Prefixed schemes go first, then the length-based rules in detection order.
        """

        if value is None or not value.strip():
            return None
        candidate = value.strip()
        for identifier_type in self._order:
            if self._patterns[identifier_type].fullmatch(candidate):
                return identifier_type
        return None


@dataclass(frozen=True, slots=True)
class RecordValidator:
    """Required-field and identifier checks for one incoming record."""

    canonical_types: CanonicalTypeOrder = field(default_factory=CanonicalTypeOrder)
    identifier_validator: IdentifierValidator = field(default_factory=IdentifierValidator)
    detector: IdentifierTypeDetector = field(default_factory=IdentifierTypeDetector)
    required_attributes: Mapping[EntityKind, tuple[str, ...]] = field(
        default_factory=lambda: REQUIRED_ATTRIBUTES
    )

    def validate(self, record: IncomingRecord) -> ValidationResult:
        errors: list[FieldError] = []

        if _is_blank(record.external_id):
            errors.append(_required("external_id", "External id is required"))
        if _is_blank(record.identifier_type):
            errors.append(_required("identifier_type", "Identifier type is required"))
        if _is_blank(record.source):
            errors.append(_required("source", "Source is required"))
        for name in self.required_attributes.get(record.kind, ()):
            if _is_blank(record.attributes.get(name)):
                errors.append(_required(name, f"{name.replace('_', ' ').capitalize()} is required"))

        identifiers = self._resolve_identifiers(record, errors)

        if not any(self.canonical_types.is_canonical(record.kind, i.type) for i in identifiers):
            accepted = ", ".join(str(t) for t in self.canonical_types.types_for(record.kind))
            errors.append(
                FieldError(
                    "identifiers",
                    f"At least one valid identifier of {accepted} is required",
                    FieldErrorCode.UNRECOGNIZED,
                )
            )

        return ValidationResult(errors=tuple(errors), identifiers=tuple(identifiers))

    def _resolve_identifiers(
        self, record: IncomingRecord, errors: list[FieldError]
    ) -> list[RecordIdentifier]:
        resolved: dict[IdentifierTypeName, RecordIdentifier] = {}
        for position, declared in enumerate(record.declared_identifiers()):
            if declared.type is None:
                identifier_type: IdentifierTypeName | None = self.detector.detect(declared.value)
                if identifier_type is None:
                    errors.append(
                        FieldError(
                            identifier_field_name(None, position),
                            f"Cannot detect identifier type of {declared.value!r}",
                            FieldErrorCode.UNDETECTABLE,
                        )
                    )
                    continue
            else:
                identifier_type = normalize_identifier_type(str(declared.type))

            name = (
                "external_id"
                if position == 0 and declared.value == record.external_id
                else identifier_field_name(identifier_type, position)
            )
            error = self.identifier_validator.validate(
                identifier_type, declared.value, field_name=name
            )
            if error is not None:
                errors.append(error)
                continue

            previous = resolved.get(identifier_type)
            if previous is not None:
                if previous.value != declared.value:
                    errors.append(
                        FieldError(
                            name,
                            f"Record reports two {identifier_type} values "
                            f"({previous.value!r} and {declared.value!r})",
                            FieldErrorCode.CONFLICTING,
                        )
                    )
                continue
            resolved[identifier_type] = RecordIdentifier(type=identifier_type, value=declared.value)
        return list(resolved.values())


def _required(name: str, message: str) -> FieldError:
    return FieldError(name, message, FieldErrorCode.REQUIRED)
