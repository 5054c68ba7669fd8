"""Securities, counterparties and index compositions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, ClassVar, Final

from refrecon.domain.model.entity import new_id
from refrecon.domain.model.enums import EntityKind
from refrecon.domain.model.identifiers import IdentifiedMixin

if TYPE_CHECKING:
    from uuid import UUID

DEFAULT_COMPOSITION_TYPE: Final[str] = "PRIMARY"


@dataclass(eq=False, kw_only=True)
class Security(IdentifiedMixin):
    ENTITY_KIND: ClassVar[EntityKind] = EntityKind.SECURITY

    security_type: str | None = None
    issuer: str | None = None
    description: str | None = None
    currency: str | None = None
    issue_date: date | None = None
    maturity_date: date | None = None
    market: str | None = None
    exchange: str | None = None
    status: str | None = None
    is_basket_product: bool | None = None
    basket_type: str | None = None

    @property
    def is_etf(self) -> bool:
        return bool(self.is_basket_product) and self.basket_type == "ETF"

    @property
    def is_index(self) -> bool:
        return bool(self.is_basket_product) and self.basket_type == "INDEX"


@dataclass(eq=False, kw_only=True)
class Counterparty(IdentifiedMixin):
    ENTITY_KIND: ClassVar[EntityKind] = EntityKind.COUNTERPARTY

    name: str | None = None
    short_name: str | None = None
    counterparty_type: str | None = None
    category: str | None = None
    status: str | None = None
    kyc_status: str | None = None
    risk_rating: str | None = None
    country: str | None = None
    region: str | None = None


type ReferenceEntityType = Security | Counterparty

ENTITY_CLASS_BY_KIND: Final[dict[EntityKind, type[Security] | type[Counterparty]]] = {
    EntityKind.SECURITY: Security,
    EntityKind.COUNTERPARTY: Counterparty,
}


def new_entity(kind: EntityKind, *, entity_id: UUID | None = None) -> Security | Counterparty:
    return ENTITY_CLASS_BY_KIND[kind](id=entity_id or new_id())


@dataclass(eq=False, kw_only=True)
class IndexComposition:
    """Membership of a constituent security in an index or basket security."""

    index_id: UUID
    constituent_id: UUID
    weight: float | None = None
    composition_type: str = DEFAULT_COMPOSITION_TYPE
    effective_date: date = field(default_factory=date.today)
    expiry_date: date | None = None
    source: str | None = None
    is_active: bool = True
    id: UUID = field(default_factory=new_id)

    @property
    def link_key(self) -> tuple[UUID, UUID, str, date]:
        """A constituent appears once per index, composition type and effective date."""
        return (self.index_id, self.constituent_id, self.composition_type, self.effective_date)

    def refresh_from(self, other: IndexComposition) -> None:
        self.weight = other.weight
        self.expiry_date = other.expiry_date
        self.source = other.source
        self.is_active = other.is_active
