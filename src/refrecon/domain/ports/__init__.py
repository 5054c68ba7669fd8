"""Ports the reconciliation engine depends on."""

from __future__ import annotations

from .events import ChangeEventPublisher, IdentifierSnapshot, ReferenceDataEvent
from .persistence import CompositionRepository, EntityRepository, IdentifierHint
from .unit_of_work import ReconciliationRepositories, ReconciliationUnitOfWork

__all__ = [
    "ChangeEventPublisher",
    "CompositionRepository",
    "EntityRepository",
    "IdentifierHint",
    "IdentifierSnapshot",
    "ReconciliationRepositories",
    "ReconciliationUnitOfWork",
    "ReferenceDataEvent",
]
