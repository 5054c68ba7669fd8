"""Engine lifecycle and the SQLAlchemy unit of work.

``startup`` must run once per process before any :class:`SqlAlchemyUnitOfWork`
is created; each unit of work then owns one session for one record.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from refrecon.adapters.sqlalchemy.mappings import create_all_tables, start_mappers
from refrecon.adapters.sqlalchemy.repositories import (
    SqlAlchemyCompositionRepository,
    SqlAlchemyEntityRepository,
)
from refrecon.config import DatabaseConfig, get_database_config
from refrecon.domain.ports import ReconciliationRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


class StartupError(RuntimeError):
    """The adapter was used before ``startup`` or started twice."""


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(config: DatabaseConfig) -> Engine:
    """Create an engine for ``config``; sqlite gets cross-thread use and FK checks."""

    options: dict[str, Any] = {"echo": config.echo}
    if config.is_sqlite:
        options["connect_args"] = {"check_same_thread": False}
    engine = create_engine(config.uri, **options)
    if config.is_sqlite:
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


@dataclass(slots=True)
class _AdapterState:
    engine: Engine | None = None
    sessions: sessionmaker[Session] | None = None

    def bind(self, engine: Engine | None) -> None:
        self.engine = engine
        self.sessions = (
            sessionmaker(bind=engine, expire_on_commit=False) if engine is not None else None
        )

    def session_factory(self) -> sessionmaker[Session]:
        if self.sessions is None:
            raise StartupError(
                "SQLAlchemy adapter not started; call "
                "refrecon.adapters.sqlalchemy.startup() first"
            )
        return self.sessions


_STATE = _AdapterState()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Bind the adapter to an engine and make sure the schema exists."""

    if _STATE.engine is not None and not force:
        raise StartupError("SQLAlchemy adapter already started. Pass force=True to rebind.")

    if engine is None:
        config = get_database_config()
        if database_uri is not None:
            config = DatabaseConfig(uri=database_uri, echo=config.echo)
        engine = build_engine(config)
    start_mappers()
    create_all_tables(engine)
    _STATE.bind(engine)
    log.debug("SQLAlchemy adapter started on %s", engine.url.render_as_string())


def configured_engine() -> Engine | None:
    return _STATE.engine


def is_started() -> bool:
    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the engine and forget it; mainly for tests."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.bind(None)


class SqlAlchemyUnitOfWork:
    """One session, one transaction: a single record or composition link."""

    def __init__(self) -> None:
        self._sessions = _STATE.session_factory()
        self._session: Session | None = None
        self._repositories: ReconciliationRepositories | None = None

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        if self._session is not None:
            raise StartupError("Unit of work already entered")
        self._session = self._sessions()
        self._repositories = ReconciliationRepositories(
            entities=SqlAlchemyEntityRepository(self._session),
            compositions=SqlAlchemyCompositionRepository(self._session),
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        session = self.session
        try:
            if exc_type is not None:
                session.rollback()
        finally:
            session.close()
            self._session = None
            self._repositories = None
        return False

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work not entered")
        return self._session

    @property
    def repositories(self) -> ReconciliationRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work not entered")
        return self._repositories

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


if TYPE_CHECKING:
    from refrecon.domain.ports import ReconciliationUnitOfWork

    _uow_check: ReconciliationUnitOfWork = SqlAlchemyUnitOfWork()
