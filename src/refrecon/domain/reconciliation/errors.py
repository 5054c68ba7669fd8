"""Error taxonomy of the reconciliation engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from refrecon.domain.model.enums import EntityKind, IdentifierTypeName

    from .contracts import FieldError


class ReconciliationError(Exception):
    """Base class for reconciliation failures."""


class FormatError(ReconciliationError):
    """An identifier value breaks the structural rule of its type."""

    def __init__(self, identifier_type: IdentifierTypeName, value: str, message: str) -> None:
        super().__init__(message)
        self.identifier_type = identifier_type
        self.value = value


class RecordValidationError(ReconciliationError):
    """A record failed validation; carries one entry per violated field."""

    def __init__(self, errors: tuple[FieldError, ...]) -> None:
        fields = ", ".join(error.field for error in errors)
        super().__init__(f"Record failed validation on: {fields}")
        self.errors = errors


class NotFoundError(ReconciliationError):
    """A related entity referenced by identifier does not exist (yet)."""

    def __init__(
        self,
        kind: EntityKind,
        identifier_type: IdentifierTypeName,
        value: str,
        *,
        role: str | None = None,
    ) -> None:
        subject = f"{role} {kind}" if role else str(kind)
        super().__init__(f"No {subject} found for {identifier_type}={value}")
        self.kind = kind
        self.identifier_type = identifier_type
        self.value = value
        self.role = role


class AttributeMappingError(ReconciliationError):
    """Reading, converting or writing one named attribute failed."""

    def __init__(self, attribute: str, reason: str) -> None:
        super().__init__(f"Cannot map attribute {attribute!r}: {reason}")
        self.attribute = attribute
        self.reason = reason


class UnidentifiableEntityError(ReconciliationError):
    """An entity has no identifiers to derive a reproducible internal id from."""
