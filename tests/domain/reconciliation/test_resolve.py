from __future__ import annotations

from typing import TYPE_CHECKING

from refrecon.domain.model import IdentifierType, RecordIdentifier, Security
from refrecon.domain.reconciliation import (
    ConflictResolver,
    DecisionAction,
    DecisionTarget,
    ResolutionOutcome,
)
from tests.helpers.records import APPLE_ISIN, make_security, make_security_record

if TYPE_CHECKING:
    import pytest

OTHER_ISIN = "US9999999999"


def _isin(value: str = APPLE_ISIN) -> tuple[RecordIdentifier, ...]:
    return (RecordIdentifier(IdentifierType.ISIN, value),)


def _resolve(
    entity: Security, value: str, *, source: str, attributes: dict[str, object] | None = None
) -> ResolutionOutcome:
    record = make_security_record(value, source=source, attributes=attributes or {})
    return ConflictResolver().resolve(entity, record, _isin(value))


def test_populate_fills_a_fresh_entity() -> None:
    security = Security()
    record = make_security_record(
        source="bloomberg", attributes={"security_type": "EQUITY", "issue_date": "1980-12-12"}
    )

    outcome = ConflictResolver().populate(security, record, _isin())

    assert security.security_type == "EQUITY"
    assert str(security.issue_date) == "1980-12-12"
    assert [i.source for i in security.identifiers] == ["BLOOMBERG"]
    assert {d.action for d in outcome.decisions} == {DecisionAction.FILLED, DecisionAction.ADDED}
    assert outcome.conflicts == ()


def test_lower_priority_identifier_is_kept_as_secondary() -> None:
    security = make_security(source="REUTERS", priority=10)

    outcome = _resolve(security, OTHER_ISIN, source="BLOOMBERG")

    primary = security.primary_identifier
    assert primary is not None
    assert (primary.value, primary.source) == (APPLE_ISIN, "REUTERS")
    secondary = security.identifier_from(IdentifierType.ISIN, "BLOOMBERG")
    assert secondary is not None
    assert secondary.value == OTHER_ISIN
    assert not secondary.is_primary
    assert secondary.priority == 20
    assert [d.action for d in outcome.decisions] == [DecisionAction.SECONDARY_ADDED]


def test_higher_priority_identifier_overwrites_and_keeps_the_old_value() -> None:
    security = make_security(source="MARKIT", priority=30)

    outcome = _resolve(security, OTHER_ISIN, source="REUTERS")

    primary = security.primary_identifier
    assert primary is not None
    assert (primary.value, primary.source, primary.priority) == (OTHER_ISIN, "REUTERS", 10)
    assert security.primary_identifier_value == OTHER_ISIN
    displaced = security.identifier_from(IdentifierType.ISIN, "MARKIT")
    assert displaced is not None
    assert displaced.value == APPLE_ISIN
    decision = outcome.decisions[0]
    assert decision.action is DecisionAction.OVERWRITTEN
    assert decision.existing_value == APPLE_ISIN
    assert decision.winning_source == "REUTERS"


def test_same_source_update_replaces_its_own_value() -> None:
    security = make_security(source="BLOOMBERG", priority=20)

    outcome = _resolve(security, OTHER_ISIN, source="BLOOMBERG")

    assert [i.value for i in security.identifiers_of(IdentifierType.ISIN)] == [OTHER_ISIN]
    assert security.primary_identifier_value == OTHER_ISIN
    assert outcome.decisions[0].action is DecisionAction.OVERWRITTEN


def test_secondary_source_updates_its_own_disagreement() -> None:
    security = make_security(source="REUTERS", priority=10)
    _resolve(security, OTHER_ISIN, source="BLOOMBERG")

    outcome = _resolve(security, "US1111111111", source="BLOOMBERG")

    values = {i.source: i.value for i in security.identifiers_of(IdentifierType.ISIN)}
    assert values == {"REUTERS": APPLE_ISIN, "BLOOMBERG": "US1111111111"}
    assert outcome.decisions[0].action is DecisionAction.SECONDARY_UPDATED


def test_agreeing_source_withdraws_its_earlier_disagreement() -> None:
    security = make_security(source="REUTERS", priority=10)
    _resolve(security, OTHER_ISIN, source="BLOOMBERG")

    outcome = _resolve(security, APPLE_ISIN, source="BLOOMBERG")

    assert [i.source for i in security.identifiers_of(IdentifierType.ISIN)] == ["REUTERS"]
    assert [d.action for d in outcome.decisions] == [DecisionAction.WITHDRAWN]


def test_more_trusted_source_corroborates_the_same_value() -> None:
    security = make_security(source="RIMES", priority=50)

    outcome = _resolve(security, APPLE_ISIN, source="REUTERS")

    primary = security.primary_identifier
    assert primary is not None
    assert (primary.source, primary.priority) == ("REUTERS", 10)
    assert len(security.identifiers) == 1
    assert [d.action for d in outcome.decisions] == [DecisionAction.CORROBORATED]


def test_identical_record_changes_nothing() -> None:
    security = make_security(security_type="EQUITY")

    outcome = _resolve(
        security, APPLE_ISIN, source="REUTERS", attributes={"security_type": "EQUITY"}
    )

    assert outcome.decisions == []
    assert not outcome.changed


def test_attribute_overwritten_by_more_trusted_source() -> None:
    security = make_security(source="MARKIT", priority=30, security_type="EQUITY")

    outcome = _resolve(security, APPLE_ISIN, source="REUTERS", attributes={"security_type": "ETF"})

    assert security.security_type == "ETF"
    attribute_decisions = [d for d in outcome.decisions if d.target is DecisionTarget.ATTRIBUTE]
    assert attribute_decisions[0].action is DecisionAction.OVERWRITTEN
    assert attribute_decisions[0].existing_source == "MARKIT"


def test_attribute_retained_against_less_trusted_or_equal_source() -> None:
    security = make_security(source="BLOOMBERG", priority=20, security_type="EQUITY")

    lower = _resolve(security, APPLE_ISIN, source="RIMES", attributes={"security_type": "ETF"})
    equal = _resolve(security, APPLE_ISIN, source="BLOOMBERG", attributes={"security_type": "ETF"})

    assert security.security_type == "EQUITY"
    assert lower.decisions[0].action is DecisionAction.RETAINED
    assert equal.decisions[0].action is DecisionAction.RETAINED


def test_unknown_source_never_overwrites() -> None:
    security = make_security(source="RIMES", priority=50, security_type="EQUITY")

    _resolve(security, APPLE_ISIN, source="SOME_NEW_VENDOR", attributes={"security_type": "ETF"})

    assert security.security_type == "EQUITY"


def test_absent_or_blank_incoming_values_never_erase() -> None:
    security = make_security(source="RIMES", priority=50, security_type="EQUITY", issuer="Apple")

    outcome = _resolve(
        security,
        APPLE_ISIN,
        source="REUTERS",
        attributes={"security_type": None, "issuer": "   "},
    )

    assert (security.security_type, security.issuer) == ("EQUITY", "Apple")
    assert all(d.target is DecisionTarget.IDENTIFIER for d in outcome.decisions)


def test_unmapped_and_unconvertible_attributes_are_skipped(
    caplog: pytest.LogCaptureFixture,
) -> None:
    security = make_security()

    outcome = _resolve(
        security,
        APPLE_ISIN,
        source="REUTERS",
        attributes={"favourite_colour": "red", "maturity_date": "soon", "currency": "USD"},
    )

    assert outcome.unmapped_attributes == ["favourite_colour"]
    assert outcome.skipped_attributes == ["maturity_date"]
    assert security.currency == "USD"
    assert security.maturity_date is None
    assert "Skipping attribute 'maturity_date'" in caplog.text


def test_existing_source_uses_primary_then_best_source() -> None:
    resolver = ConflictResolver()
    security = Security()
    security.add_identifier(IdentifierType.TICKER, "AAPL", source="RIMES", priority=50)
    security.add_identifier(IdentifierType.CUSIP, "037833100", source="MARKIT", priority=30)

    assert resolver.existing_source(security) == "MARKIT"
    assert resolver.existing_source(Security()) == "UNKNOWN"

    security.identifiers[0].is_primary = True
    assert resolver.existing_source(security) == "RIMES"


def test_decided_conflicts_are_logged(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level("INFO", logger="refrecon.domain.reconciliation.resolve")
    security = make_security(source="REUTERS", priority=10)

    _resolve(security, OTHER_ISIN, source="UNHEARD_OF")

    assert "Conflict on identifier ISIN" in caplog.text
    assert "unranked" in caplog.text
