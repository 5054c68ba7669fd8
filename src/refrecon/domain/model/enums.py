"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class EntityKind(StrEnum):
    """Discriminator for reference entities and identifier ownership."""

    SECURITY = "SECURITY"
    COUNTERPARTY = "COUNTERPARTY"


class IdentifierType(StrEnum):
    ISIN = "ISIN"
    CUSIP = "CUSIP"
    SEDOL = "SEDOL"
    BLOOMBERG_ID = "BLOOMBERG_ID"
    REUTERS_ID = "REUTERS_ID"
    TICKER = "TICKER"

    # Counterparty schemes
    LEI = "LEI"
    BIC = "BIC"
    SWIFT = "SWIFT"


class Operation(StrEnum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"


# Vendors may report schemes outside the closed enumeration; those travel as plain strings.
type IdentifierTypeName = str | IdentifierType


def normalize_identifier_type(value: str) -> IdentifierTypeName:
    """Upper-case ``value`` and return the enum member when it names one."""

    normalized = value.strip().upper()
    try:
        return IdentifierType(normalized)
    except ValueError:
        return normalized
