"""Enumerated business attributes per entity kind.

Each attribute the engine may compare or overwrite is listed here with an
explicit getter, setter and converter. Names outside these tables are never
touched, so a vendor payload cannot reach arbitrary entity state.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from types import MappingProxyType
from typing import Final, cast

from refrecon.domain.model import Counterparty, EntityKind, Security

from .errors import AttributeMappingError

_TRUE_STRINGS: Final[frozenset[str]] = frozenset({"true", "t", "yes", "y", "1"})
_FALSE_STRINGS: Final[frozenset[str]] = frozenset({"false", "f", "no", "n", "0"})


def as_text(value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise TypeError(f"expected text, got boolean {value!r}")
    if isinstance(value, str | int | float):
        text = str(value).strip()
        return text or None
    raise TypeError(f"expected text, got {type(value).__name__}")


def as_date(value: object) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        return date.fromisoformat(text) if text else None
    raise TypeError(f"expected a date, got {type(value).__name__}")


def as_flag(value: object) -> bool | None:
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, int):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if not lowered:
            return None
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ValueError(f"expected a boolean flag, got {value!r}")


@dataclass(frozen=True)
class AttributeAccessor[TEntity]:
    name: str
    getter: Callable[[TEntity], object]
    setter: Callable[[TEntity, object], None]
    convert: Callable[[object], object] = as_text

    def coerce(self, value: object) -> object:
        try:
            return self.convert(value)
        except (TypeError, ValueError) as exc:
            raise AttributeMappingError(self.name, str(exc)) from exc

    def read(self, entity: TEntity) -> object:
        try:
            return self.getter(entity)
        except (AttributeError, TypeError) as exc:
            raise AttributeMappingError(self.name, f"read failed: {exc}") from exc

    def write(self, entity: TEntity, value: object) -> None:
        try:
            self.setter(entity, value)
        except (AttributeError, TypeError, ValueError) as exc:
            raise AttributeMappingError(self.name, f"write failed: {exc}") from exc


def _set_security_type(entity: Security, value: object) -> None:
    entity.security_type = cast(str, value)


def _set_issuer(entity: Security, value: object) -> None:
    entity.issuer = cast(str, value)


def _set_description(entity: Security, value: object) -> None:
    entity.description = cast(str, value)


def _set_currency(entity: Security, value: object) -> None:
    entity.currency = cast(str, value)


def _set_issue_date(entity: Security, value: object) -> None:
    entity.issue_date = cast(date, value)


def _set_maturity_date(entity: Security, value: object) -> None:
    entity.maturity_date = cast(date, value)


def _set_market(entity: Security, value: object) -> None:
    entity.market = cast(str, value)


def _set_exchange(entity: Security, value: object) -> None:
    entity.exchange = cast(str, value)


def _set_security_status(entity: Security, value: object) -> None:
    entity.status = cast(str, value)


def _set_is_basket_product(entity: Security, value: object) -> None:
    entity.is_basket_product = cast(bool, value)


def _set_basket_type(entity: Security, value: object) -> None:
    entity.basket_type = cast(str, value)


def _set_name(entity: Counterparty, value: object) -> None:
    entity.name = cast(str, value)


def _set_short_name(entity: Counterparty, value: object) -> None:
    entity.short_name = cast(str, value)


def _set_counterparty_type(entity: Counterparty, value: object) -> None:
    entity.counterparty_type = cast(str, value)


def _set_category(entity: Counterparty, value: object) -> None:
    entity.category = cast(str, value)


def _set_counterparty_status(entity: Counterparty, value: object) -> None:
    entity.status = cast(str, value)


def _set_kyc_status(entity: Counterparty, value: object) -> None:
    entity.kyc_status = cast(str, value)


def _set_risk_rating(entity: Counterparty, value: object) -> None:
    entity.risk_rating = cast(str, value)


def _set_country(entity: Counterparty, value: object) -> None:
    entity.country = cast(str, value)


def _set_region(entity: Counterparty, value: object) -> None:
    entity.region = cast(str, value)


type SecurityAccessor = AttributeAccessor[Security]
type CounterpartyAccessor = AttributeAccessor[Counterparty]

SECURITY_ATTRIBUTES: Final[tuple[SecurityAccessor, ...]] = (
    AttributeAccessor("security_type", lambda s: s.security_type, _set_security_type),
    AttributeAccessor("issuer", lambda s: s.issuer, _set_issuer),
    AttributeAccessor("description", lambda s: s.description, _set_description),
    AttributeAccessor("currency", lambda s: s.currency, _set_currency),
    AttributeAccessor("issue_date", lambda s: s.issue_date, _set_issue_date, as_date),
    AttributeAccessor("maturity_date", lambda s: s.maturity_date, _set_maturity_date, as_date),
    AttributeAccessor("market", lambda s: s.market, _set_market),
    AttributeAccessor("exchange", lambda s: s.exchange, _set_exchange),
    AttributeAccessor("status", lambda s: s.status, _set_security_status),
    AttributeAccessor(
        "is_basket_product", lambda s: s.is_basket_product, _set_is_basket_product, as_flag
    ),
    AttributeAccessor("basket_type", lambda s: s.basket_type, _set_basket_type),
)

COUNTERPARTY_ATTRIBUTES: Final[tuple[CounterpartyAccessor, ...]] = (
    AttributeAccessor("name", lambda c: c.name, _set_name),
    AttributeAccessor("short_name", lambda c: c.short_name, _set_short_name),
    AttributeAccessor("counterparty_type", lambda c: c.counterparty_type, _set_counterparty_type),
    AttributeAccessor("category", lambda c: c.category, _set_category),
    AttributeAccessor("status", lambda c: c.status, _set_counterparty_status),
    AttributeAccessor("kyc_status", lambda c: c.kyc_status, _set_kyc_status),
    AttributeAccessor("risk_rating", lambda c: c.risk_rating, _set_risk_rating),
    AttributeAccessor("country", lambda c: c.country, _set_country),
    AttributeAccessor("region", lambda c: c.region, _set_region),
)

type AccessorTable = Mapping[str, AttributeAccessor[Security] | AttributeAccessor[Counterparty]]

ATTRIBUTE_TABLES: Final[Mapping[EntityKind, AccessorTable]] = MappingProxyType(
    {
        EntityKind.SECURITY: MappingProxyType({a.name: a for a in SECURITY_ATTRIBUTES}),
        EntityKind.COUNTERPARTY: MappingProxyType({a.name: a for a in COUNTERPARTY_ATTRIBUTES}),
    }
)


def accessors_for(kind: EntityKind) -> AccessorTable:
    return ATTRIBUTE_TABLES[kind]


def snapshot_attributes(entity: Security | Counterparty) -> dict[str, object]:
    """Current values of every enumerated attribute, for events and exports."""

    table = cast(
        "Mapping[str, AttributeAccessor[Security | Counterparty]]", accessors_for(entity.kind)
    )
    return {name: accessor.read(entity) for name, accessor in table.items()}
