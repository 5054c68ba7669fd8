from __future__ import annotations

from datetime import UTC, datetime

import pytest

from refrecon.domain.model import Counterparty, IdentifierType, Security
from refrecon.domain.reconciliation import IdentityAssigner, UnidentifiableEntityError
from tests.helpers.records import APPLE_CUSIP, APPLE_ISIN


def test_internal_id_uses_the_canonical_identifier() -> None:
    security = Security()
    security.add_identifier(IdentifierType.TICKER, "AAPL", source="REUTERS", priority=10)
    security.add_identifier(IdentifierType.CUSIP, APPLE_CUSIP, source="RIMES", priority=50)

    IdentityAssigner().assign_if_missing(security)

    assert security.internal_id == f"IMS-CUSIP-{APPLE_CUSIP}"
    assert security.primary_identifier_type == "CUSIP"
    assert security.primary_identifier_value == APPLE_CUSIP
    primary = security.primary_identifier
    assert primary is not None
    assert primary.type is IdentifierType.CUSIP


def test_canonical_identifier_prefers_the_most_trusted_source_within_a_type() -> None:
    security = Security()
    security.add_identifier(IdentifierType.ISIN, "US9999999999", source="RIMES", priority=50)
    security.add_identifier(IdentifierType.ISIN, APPLE_ISIN, source="REUTERS", priority=10)

    canonical = IdentityAssigner().canonical_identifier(security)

    assert canonical is not None
    assert canonical.value == APPLE_ISIN


def test_non_canonical_identifier_falls_back_to_kind_qualified_id() -> None:
    counterparty = Counterparty(name="Desk 7")
    counterparty.add_identifier("INTERNAL_CODE", "D7", source="MANUAL", priority=1)

    IdentityAssigner(prefix="REF").assign_if_missing(counterparty)

    assert counterparty.internal_id == "REF-COUNTERPARTY-INTERNAL_CODE-D7"
    assert counterparty.primary_identifier_value == "D7"


def test_internal_id_never_changes_once_assigned() -> None:
    security = Security()
    security.add_identifier(IdentifierType.TICKER, "AAPL", source="REUTERS", priority=10)
    assigner = IdentityAssigner()
    assigner.assign_if_missing(security)

    security.add_identifier(IdentifierType.ISIN, APPLE_ISIN, source="REUTERS", priority=10)
    assigner.assign_if_missing(security)

    assert security.internal_id == "IMS-TICKER-AAPL"
    assert security.primary_identifier_type == "ISIN"
    assert [i.is_primary for i in security.identifiers] == [False, True]


def test_entity_without_identifiers_is_refused_by_default() -> None:
    with pytest.raises(UnidentifiableEntityError):
        IdentityAssigner().assign_if_missing(Security())


def test_timestamp_fallback_when_enabled(caplog: pytest.LogCaptureFixture) -> None:
    fixed = datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)
    assigner = IdentityAssigner(allow_timestamp_fallback=True, clock=lambda: fixed)
    security = Security()

    assigner.assign_if_missing(security)

    assert security.internal_id == f"IMS-SECURITY-{int(fixed.timestamp() * 1000)}"
    assert "cannot be matched on replay" in caplog.text
