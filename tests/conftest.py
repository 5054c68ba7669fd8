from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session, sessionmaker

from refrecon.adapters.memory import InMemoryReferenceStore
from refrecon.adapters.sqlalchemy import create_all_tables, start_mappers
from refrecon.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyUnitOfWork,
    build_engine,
    shutdown,
    startup,
)
from refrecon.config import DatabaseConfig

IN_MEMORY_URI = "sqlite+pysqlite:///:memory:"

os.environ.setdefault("DATABASE_URI", IN_MEMORY_URI)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = build_engine(DatabaseConfig(uri=IN_MEMORY_URI))
    start_mappers()
    create_all_tables(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    session = sessionmaker(bind=sqlite_engine, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)
    try:
        yield SqlAlchemyUnitOfWork
    finally:
        shutdown()


@pytest.fixture
def memory_store() -> InMemoryReferenceStore:
    return InMemoryReferenceStore()
