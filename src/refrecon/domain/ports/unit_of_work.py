"""Transaction boundary the reconciliation service runs each record in."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from refrecon.domain.ports.persistence import CompositionRepository, EntityRepository


@dataclass(slots=True)
class ReconciliationRepositories:
    """Repositories touched while reconciling one record."""

    entities: EntityRepository
    compositions: CompositionRepository


@runtime_checkable
class ReconciliationUnitOfWork(Protocol):
    """Nothing written through ``repositories`` is visible to others before ``commit``.

    Leaving the context with an exception rolls the transaction back.
    """

    @property
    def repositories(self) -> ReconciliationRepositories: ...

    def __enter__(self) -> ReconciliationUnitOfWork: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...
