from __future__ import annotations

import pytest

from refrecon.domain.model import IdentifierType, RecordIdentifier
from refrecon.domain.reconciliation import (
    FieldErrorCode,
    FormatError,
    IdentifierTypeDetector,
    IdentifierValidator,
    RecordValidator,
)
from tests.helpers.records import (
    APPLE_CUSIP,
    APPLE_FIGI,
    APPLE_ISIN,
    APPLE_SEDOL,
    make_counterparty_record,
    make_security_record,
)


@pytest.mark.parametrize(
    ("identifier_type", "value"),
    [
        (IdentifierType.ISIN, APPLE_ISIN),
        (IdentifierType.CUSIP, APPLE_CUSIP),
        (IdentifierType.SEDOL, APPLE_SEDOL),
        (IdentifierType.BLOOMBERG_ID, APPLE_FIGI),
        (IdentifierType.REUTERS_ID, "RIC:AAPL.O"),
        (IdentifierType.TICKER, "BRK-B"),
        (IdentifierType.LEI, "anything goes"),
        ("FIGI_SHARE_CLASS", "unchecked"),
    ],
)
def test_identifier_validator_accepts_well_formed_values(
    identifier_type: IdentifierType | str, value: str
) -> None:
    assert IdentifierValidator().is_valid(identifier_type, value)


@pytest.mark.parametrize(
    ("identifier_type", "value"),
    [
        (IdentifierType.ISIN, "US037833100"),
        (IdentifierType.ISIN, "us0378331005"),
        (IdentifierType.CUSIP, "03783310A"),
        (IdentifierType.SEDOL, "204625"),
        (IdentifierType.BLOOMBERG_ID, "BBX000B9XRY4"),
        (IdentifierType.REUTERS_ID, "AAPL.O"),
        (IdentifierType.TICKER, "TOO-LONG-FOR-A-TICKER"),
        (IdentifierType.LEI, "   "),
    ],
)
def test_identifier_validator_rejects_malformed_values(
    identifier_type: IdentifierType, value: str
) -> None:
    error = IdentifierValidator().validate(identifier_type, value)

    assert error is not None
    assert error.code is FieldErrorCode.FORMAT
    assert error.field == str(identifier_type).lower()


def test_identifier_validator_check_raises_format_error() -> None:
    with pytest.raises(FormatError) as exc:
        IdentifierValidator().check(IdentifierType.CUSIP, "BAD")

    assert exc.value.identifier_type is IdentifierType.CUSIP
    assert exc.value.value == "BAD"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (APPLE_ISIN, IdentifierType.ISIN),
        (APPLE_CUSIP, IdentifierType.CUSIP),
        (APPLE_SEDOL, IdentifierType.SEDOL),
        (APPLE_FIGI, IdentifierType.BLOOMBERG_ID),
        ("RIC:AAPL.O", IdentifierType.REUTERS_ID),
        ("AAPL", IdentifierType.TICKER),
        (" AAPL ", IdentifierType.TICKER),
        ("not an id", None),
        ("", None),
        (None, None),
    ],
)
def test_detector_follows_the_fixed_order(
    value: str | None, expected: IdentifierType | None
) -> None:
    assert IdentifierTypeDetector().detect(value) is expected


def test_detector_prefers_cusip_over_ticker_for_nine_digits() -> None:
    assert IdentifierTypeDetector().detect("123456789") is IdentifierType.CUSIP


def test_valid_security_record_resolves_identifiers() -> None:
    record = make_security_record(
        identifiers=(
            RecordIdentifier(IdentifierType.CUSIP, APPLE_CUSIP),
            RecordIdentifier(None, "AAPL"),
        )
    )

    result = RecordValidator().validate(record)

    assert result.is_valid
    assert [(i.type, i.value) for i in result.identifiers] == [
        (IdentifierType.ISIN, APPLE_ISIN),
        (IdentifierType.CUSIP, APPLE_CUSIP),
        (IdentifierType.TICKER, "AAPL"),
    ]


def test_validation_reports_every_violated_field() -> None:
    record = make_security_record(
        external_id=None,
        identifier_type=None,
        source=" ",
        attributes={},
    )

    result = RecordValidator().validate(record)

    assert not result.is_valid
    assert set(result.fields) == {
        "external_id",
        "identifier_type",
        "source",
        "security_type",
        "identifiers",
    }
    codes = {error.field: error.code for error in result.errors}
    assert codes["identifiers"] is FieldErrorCode.UNRECOGNIZED
    assert codes["source"] is FieldErrorCode.REQUIRED


def test_counterparty_requires_name_and_type() -> None:
    record = make_counterparty_record(attributes={"name": "Barclays"})

    result = RecordValidator().validate(record)

    assert result.fields == ("counterparty_type",)


def test_malformed_external_id_is_reported_under_external_id() -> None:
    record = make_security_record("US037833100")

    result = RecordValidator().validate(record)

    assert "external_id" in result.fields
    assert {e.code for e in result.errors} == {FieldErrorCode.FORMAT, FieldErrorCode.UNRECOGNIZED}


def test_malformed_secondary_identifier_is_dropped_but_reported() -> None:
    record = make_security_record(identifiers=(RecordIdentifier(IdentifierType.SEDOL, "12"),))

    result = RecordValidator().validate(record)

    assert result.fields == ("sedol",)
    assert [i.type for i in result.identifiers] == [IdentifierType.ISIN]


def test_undetectable_identifier_is_an_error() -> None:
    record = make_security_record(identifiers=(RecordIdentifier(None, "no such id!"),))

    result = RecordValidator().validate(record)

    assert result.fields == ("identifiers[1]",)
    assert result.errors[0].code is FieldErrorCode.UNDETECTABLE


def test_two_values_of_one_type_in_one_record_conflict() -> None:
    record = make_security_record(
        identifiers=(RecordIdentifier(IdentifierType.ISIN, "US5949181045"),)
    )

    result = RecordValidator().validate(record)

    assert [e.code for e in result.errors] == [FieldErrorCode.CONFLICTING]


def test_record_without_canonical_identifier_is_unrecognized() -> None:
    record = make_security_record("FOO", identifier_type="VENDOR_CODE")

    result = RecordValidator().validate(record)

    assert result.fields == ("identifiers",)
