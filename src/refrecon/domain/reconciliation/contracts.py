"""Public result types of the reconciliation engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from refrecon.domain.model import Operation

if TYPE_CHECKING:
    from refrecon.domain.model import (
        CompositionRecord,
        IncomingRecord,
        IndexComposition,
        RecordIdentifier,
        ReferenceEntity,
    )


class ReconciliationState(StrEnum):
    RECEIVED = "received"
    VALIDATED = "validated"
    MATCHED = "matched"
    NOT_MATCHED = "not_matched"
    MERGED = "merged"
    IDENTITY_ASSIGNED = "identity_assigned"
    EMITTED = "emitted"
    REJECTED = "rejected"
    FAILED = "failed"


TERMINAL_STATES = frozenset(
    {ReconciliationState.EMITTED, ReconciliationState.REJECTED, ReconciliationState.FAILED}
)


class FieldErrorCode(StrEnum):
    REQUIRED = "required"
    FORMAT = "format"
    UNRECOGNIZED = "unrecognized"
    UNDETECTABLE = "undetectable"
    CONFLICTING = "conflicting"
    DUPLICATE = "duplicate"


@dataclass(frozen=True, slots=True)
class FieldError:
    """One violated field of one record."""

    field: str
    message: str
    code: FieldErrorCode

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Accumulated field errors plus the identifiers that passed, types resolved."""

    errors: tuple[FieldError, ...] = ()
    identifiers: tuple[RecordIdentifier, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def fields(self) -> tuple[str, ...]:
        return tuple(error.field for error in self.errors)


class DecisionTarget(StrEnum):
    ATTRIBUTE = "attribute"
    IDENTIFIER = "identifier"


class DecisionAction(StrEnum):
    FILLED = "filled"  # no existing value
    OVERWRITTEN = "overwritten"  # incoming source outranked the existing one
    RETAINED = "retained"  # existing value kept
    ADDED = "added"  # first identifier of its type
    SECONDARY_ADDED = "secondary_added"
    SECONDARY_UPDATED = "secondary_updated"
    CORROBORATED = "corroborated"  # same value, more trusted source
    WITHDRAWN = "withdrawn"  # a source dropped its disagreeing value


@dataclass(frozen=True, slots=True, kw_only=True)
class ConflictDecision:
    target: DecisionTarget
    name: str
    action: DecisionAction
    existing_value: object = None
    incoming_value: object = None
    existing_source: str | None = None
    incoming_source: str | None = None

    @property
    def winning_source(self) -> str | None:
        if self.action is DecisionAction.RETAINED:
            return self.existing_source
        return self.incoming_source


@dataclass(slots=True)
class ResolutionOutcome:
    """What a merge did to one entity."""

    decisions: list[ConflictDecision] = field(default_factory=list["ConflictDecision"])
    skipped_attributes: list[str] = field(default_factory=list[str])
    unmapped_attributes: list[str] = field(default_factory=list[str])

    def record(self, decision: ConflictDecision) -> None:
        self.decisions.append(decision)

    @property
    def changed(self) -> bool:
        return any(d.action is not DecisionAction.RETAINED for d in self.decisions)

    @property
    def conflicts(self) -> tuple[ConflictDecision, ...]:
        """Decisions taken between two differing values."""
        return tuple(
            d
            for d in self.decisions
            if d.action
            in {
                DecisionAction.OVERWRITTEN,
                DecisionAction.RETAINED,
                DecisionAction.SECONDARY_ADDED,
                DecisionAction.SECONDARY_UPDATED,
            }
        )


@dataclass(slots=True, kw_only=True)
class ReconciliationResult:
    """Outcome of reconciling one incoming record.

    Consumed by the event builder (``entity`` + ``operation``) and by the
    batch report, which counts it and keeps ``error_message`` for reprocessing.
    """

    record: IncomingRecord
    state: ReconciliationState = ReconciliationState.RECEIVED
    trail: list[ReconciliationState] = field(
        default_factory=lambda: [ReconciliationState.RECEIVED]
    )
    entity: ReferenceEntity | None = None
    operation: Operation | None = None
    errors: tuple[FieldError, ...] = ()
    outcome: ResolutionOutcome | None = None
    failure: str | None = None

    def advance(self, state: ReconciliationState) -> None:
        if self.state in TERMINAL_STATES:
            raise ValueError(f"Result already terminal ({self.state}); cannot move to {state}")
        self.state = state
        self.trail.append(state)

    def reject(self, errors: tuple[FieldError, ...]) -> None:
        self.errors = errors
        self.advance(ReconciliationState.REJECTED)

    def fail(self, message: str) -> None:
        self.failure = message
        self.advance(ReconciliationState.FAILED)

    @property
    def is_emitted(self) -> bool:
        return self.state is ReconciliationState.EMITTED

    @property
    def is_rejected(self) -> bool:
        return self.state is ReconciliationState.REJECTED

    @property
    def is_failed(self) -> bool:
        return self.state is ReconciliationState.FAILED

    @property
    def error_message(self) -> str | None:
        if self.errors:
            return "; ".join(str(error) for error in self.errors)
        return self.failure


class BatchStatus(StrEnum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(slots=True, kw_only=True)
class BatchReport:
    """Aggregate counts of a batch run."""

    batch_id: str | None = None
    total: int = 0
    created: int = 0
    updated: int = 0
    rejected: int = 0
    failed: int = 0
    results: list[ReconciliationResult] = field(default_factory=list["ReconciliationResult"])

    def add(self, result: ReconciliationResult) -> None:
        self.results.append(result)
        if result.is_emitted:
            if result.operation is Operation.CREATE:
                self.created += 1
            else:
                self.updated += 1
        elif result.is_rejected:
            self.rejected += 1
        elif result.is_failed:
            self.failed += 1

    @property
    def processed(self) -> int:
        return self.created + self.updated

    @property
    def pending(self) -> int:
        return max(self.total - self.processed - self.rejected - self.failed, 0)

    @property
    def completion_percentage(self) -> float:
        if self.total == 0:
            return 100.0
        return 100.0 * (self.total - self.pending) / self.total

    @property
    def status(self) -> BatchStatus:
        if self.rejected or self.failed:
            return BatchStatus.FAILED
        if self.pending == 0:
            return BatchStatus.COMPLETED
        return BatchStatus.IN_PROGRESS

    @property
    def unsuccessful(self) -> tuple[ReconciliationResult, ...]:
        return tuple(r for r in self.results if r.is_rejected or r.is_failed)


@dataclass(slots=True, kw_only=True)
class CompositionReport:
    """Aggregate counts of a composition-linking run.

    ``missing_dependency`` is kept apart from ``rejected`` so callers can retry
    records whose index or constituent simply has not been loaded yet.
    ``refreshed`` counts the linked records that updated an existing link.
    """

    batch_id: str | None = None
    total: int = 0
    linked: int = 0
    refreshed: int = 0
    rejected: int = 0
    missing_dependency: int = 0
    failed: int = 0
    links: list[IndexComposition] = field(default_factory=list["IndexComposition"])
    retryable: list[CompositionRecord] = field(default_factory=list["CompositionRecord"])

    @property
    def status(self) -> BatchStatus:
        if self.rejected or self.failed or self.missing_dependency:
            return BatchStatus.FAILED
        if self.linked == self.total:
            return BatchStatus.COMPLETED
        return BatchStatus.IN_PROGRESS
