"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from sqlalchemy import and_, or_, select

from refrecon.adapters.sqlalchemy.mappings import (
    TABLE_BY_KIND,
    identifier_table,
    index_composition_table,
)
from refrecon.domain.model import ENTITY_CLASS_BY_KIND, EntityKind, IndexComposition

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from sqlalchemy import Select
    from sqlalchemy.orm import Session

    from refrecon.domain.model import IdentifierTypeName
    from refrecon.domain.model.reference import ReferenceEntityType
    from refrecon.domain.ports import IdentifierHint


class SqlAlchemyEntityRepository:
    """Securities and counterparties, looked up through the identifier index."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def find_candidates(
        self, kind: EntityKind, hints: Iterable[IdentifierHint]
    ) -> tuple[ReferenceEntityType, ...]:
        clauses = [
            and_(
                identifier_table.c.type == str(identifier_type),
                identifier_table.c.value == value,
            )
            for identifier_type, value in hints
        ]
        if not clauses:
            return ()
        owner_ids = (
            select(identifier_table.c.owner_id)
            .where(identifier_table.c.owner_kind == kind)
            .where(or_(*clauses))
        )
        return self._load(kind, owner_ids)

    def find_by_identifier(
        self, kind: EntityKind, identifier_type: IdentifierTypeName, value: str
    ) -> ReferenceEntityType | None:
        owner_ids = (
            select(identifier_table.c.owner_id)
            .where(identifier_table.c.owner_kind == kind)
            .where(identifier_table.c.type == str(identifier_type))
            .where(identifier_table.c.value == value)
        )
        found = self._load(kind, owner_ids)
        return found[0] if found else None

    def get_by_internal_id(self, internal_id: str) -> ReferenceEntityType | None:
        for kind in EntityKind:
            table = TABLE_BY_KIND[kind]
            stmt = select(ENTITY_CLASS_BY_KIND[kind]).where(
                table.c._internal_id == internal_id  # noqa: SLF001
            )
            entity = self.session.execute(stmt).scalar_one_or_none()
            if entity is not None:
                return cast("ReferenceEntityType", entity)
        return None

    def save(self, entity: ReferenceEntityType) -> ReferenceEntityType:
        self.session.add(entity)
        self.session.flush()
        return entity

    def _load(
        self, kind: EntityKind, owner_ids: Select[tuple[UUID]]
    ) -> tuple[ReferenceEntityType, ...]:
        table = TABLE_BY_KIND[kind]
        stmt = (
            select(ENTITY_CLASS_BY_KIND[kind])
            .where(table.c.id.in_(owner_ids))
            .order_by(table.c.updated_at)
        )
        return tuple(cast("ReferenceEntityType", e) for e in self.session.scalars(stmt))


class SqlAlchemyCompositionRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, composition: IndexComposition) -> None:
        self.session.add(composition)

    def for_index(self, index_id: UUID) -> tuple[IndexComposition, ...]:
        stmt = (
            select(IndexComposition)
            .where(index_composition_table.c.index_id == index_id)
            .order_by(index_composition_table.c.effective_date)
        )
        return tuple(self.session.scalars(stmt))
