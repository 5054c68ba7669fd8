"""SQLAlchemy adapter package for refrecon."""

from __future__ import annotations

from .mappings import (
    TABLE_BY_KIND,
    create_all_tables,
    mapper_registry,
    start_mappers,
)
from .repositories import SqlAlchemyCompositionRepository, SqlAlchemyEntityRepository
from .unit_of_work import (
    SqlAlchemyUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "TABLE_BY_KIND",
    "SqlAlchemyCompositionRepository",
    "SqlAlchemyEntityRepository",
    "SqlAlchemyUnitOfWork",
    "StartupError",
    "configured_engine",
    "create_all_tables",
    "is_started",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
