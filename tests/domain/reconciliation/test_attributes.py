from __future__ import annotations

from datetime import date, datetime

import pytest

from refrecon.domain.model import Counterparty, EntityKind, Security
from refrecon.domain.reconciliation import AttributeMappingError, accessors_for
from refrecon.domain.reconciliation.attributes import (
    as_date,
    as_flag,
    as_text,
    snapshot_attributes,
)


def test_accessor_tables_cover_each_kind() -> None:
    assert "security_type" in accessors_for(EntityKind.SECURITY)
    assert "security_type" not in accessors_for(EntityKind.COUNTERPARTY)
    assert "kyc_status" in accessors_for(EntityKind.COUNTERPARTY)


def test_converters() -> None:
    assert as_text("  EQUITY ") == "EQUITY"
    assert as_text(" ") is None
    assert as_text(42) == "42"
    assert as_date("2030-06-30") == date(2030, 6, 30)
    assert as_date(datetime(2030, 6, 30, 12, 0)) == date(2030, 6, 30)
    assert as_flag("Y") is True
    assert as_flag("false") is False
    assert as_flag("") is None


@pytest.mark.parametrize(
    ("name", "value"),
    [("maturity_date", "30/06/2030"), ("is_basket_product", "perhaps"), ("issuer", True)],
)
def test_coerce_wraps_conversion_failures(name: str, value: object) -> None:
    accessor = accessors_for(EntityKind.SECURITY)[name]

    with pytest.raises(AttributeMappingError) as exc:
        accessor.coerce(value)

    assert exc.value.attribute == name


def test_accessor_writes_through_the_explicit_setter() -> None:
    security = Security()
    accessor = accessors_for(EntityKind.SECURITY)["is_basket_product"]

    accessor.write(security, accessor.coerce("yes"))  # type: ignore[arg-type]

    assert security.is_basket_product is True


def test_snapshot_lists_every_enumerated_attribute() -> None:
    counterparty = Counterparty(name="Barclays", country="GB")

    snapshot = snapshot_attributes(counterparty)

    assert snapshot["name"] == "Barclays"
    assert snapshot["country"] == "GB"
    assert snapshot["risk_rating"] is None
    assert set(snapshot) == set(accessors_for(EntityKind.COUNTERPARTY))
