"""SQLAlchemy mapping metadata for the reference-data model."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING, Any, Final

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    Dialect,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    and_,
    orm,
)
from sqlalchemy.orm import configure_mappers, relationship

from refrecon.domain.model import (
    Counterparty,
    EntityKind,
    Identifier,
    IndexComposition,
    Security,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def _entity_columns() -> list[Column[Any]]:
    return [
        Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
        Column("internal_id", String, key="_internal_id", nullable=True, unique=True),
        Column("primary_identifier_type", String, nullable=True),
        Column("primary_identifier_value", String, nullable=True),
        Column("updated_at", UTCDateTime(), nullable=True),
    ]


# Core tables -----------------------------------------------------------------

security_table = Table(
    "security",
    mapper_registry.metadata,
    *_entity_columns(),
    Column("security_type", String, nullable=True),
    Column("issuer", String, nullable=True),
    Column("description", String, nullable=True),
    Column("currency", String(3), nullable=True),
    Column("issue_date", Date, nullable=True),
    Column("maturity_date", Date, nullable=True),
    Column("market", String, nullable=True),
    Column("exchange", String, nullable=True),
    Column("status", String, nullable=True),
    Column("is_basket_product", Boolean, nullable=True),
    Column("basket_type", String, nullable=True),
)

counterparty_table = Table(
    "counterparty",
    mapper_registry.metadata,
    *_entity_columns(),
    Column("name", String, nullable=True),
    Column("short_name", String, nullable=True),
    Column("counterparty_type", String, nullable=True),
    Column("category", String, nullable=True),
    Column("status", String, nullable=True),
    Column("kyc_status", String, nullable=True),
    Column("risk_rating", String, nullable=True),
    Column("country", String, nullable=True),
    Column("region", String, nullable=True),
)

# No uniqueness on (type, source, owner): the resolver may move a slot from one
# source to another and drop the old holder in one flush, and SQLAlchemy
# processes deletes after updates.
identifier_table = Table(
    "identifier",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("type", String, nullable=False),
    Column("value", String, nullable=False),
    Column("source", String, nullable=False),
    Column("priority", BigInteger, nullable=False),
    Column("is_primary", Boolean, nullable=False, default=False),
    Column("ordinal", Integer, nullable=False, default=0),
    Column("owner_kind", Enum(EntityKind, native_enum=False), nullable=False),
    Column("owner_id", UUIDColumnType, nullable=False),
    Index("ix_identifier_lookup", "type", "value", "owner_kind"),
    Index("ix_identifier_owner", "owner_kind", "owner_id"),
)

index_composition_table = Table(
    "index_composition",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("index_id", UUIDColumnType, ForeignKey("security.id"), nullable=False),
    Column("constituent_id", UUIDColumnType, ForeignKey("security.id"), nullable=False),
    Column("weight", Float, nullable=True),
    Column("composition_type", String, nullable=False),
    Column("effective_date", Date, nullable=False),
    Column("expiry_date", Date, nullable=True),
    Column("source", String, nullable=True),
    Column("is_active", Boolean, nullable=False, default=True),
    Index("ix_index_composition_index", "index_id"),
    UniqueConstraint(
        "index_id",
        "constituent_id",
        "composition_type",
        "effective_date",
        name="uq_index_composition_link",
    ),
)

TABLE_BY_KIND: Final[dict[EntityKind, Table]] = {
    EntityKind.SECURITY: security_table,
    EntityKind.COUNTERPARTY: counterparty_table,
}

def _identifiers_relationship(
    entity_table: Table, kind: EntityKind
) -> orm.RelationshipProperty[Identifier]:
    return relationship(
        Identifier,
        cascade="all, delete-orphan",
        primaryjoin=and_(
            identifier_table.c.owner_id == entity_table.c.id,
            identifier_table.c.owner_kind == kind,
        ),
        foreign_keys=[identifier_table.c.owner_id],
        order_by=identifier_table.c.ordinal,
        overlaps="_identifiers",
    )


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(
        Security,
        security_table,
        properties={
            "_identifiers": _identifiers_relationship(security_table, EntityKind.SECURITY),
        },
    )

    mapper_registry.map_imperatively(
        Counterparty,
        counterparty_table,
        properties={
            "_identifiers": _identifiers_relationship(
                counterparty_table, EntityKind.COUNTERPARTY
            ),
        },
    )

    mapper_registry.map_imperatively(
        Identifier,
        identifier_table,
    )

    mapper_registry.map_imperatively(
        IndexComposition,
        index_composition_table,
    )

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
