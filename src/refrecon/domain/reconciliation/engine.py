"""Per-record orchestration: validate, match, merge, assign identity, emit."""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from refrecon.domain.model import Operation, new_entity, new_id
from refrecon.domain.ports import IdentifierSnapshot, ReferenceDataEvent

from .attributes import snapshot_attributes
from .composition import CompositionLinker
from .conflicts import log_identifier_conflicts
from .contracts import (
    BatchReport,
    CompositionReport,
    DecisionTarget,
    FieldError,
    FieldErrorCode,
    ReconciliationResult,
    ReconciliationState,
)
from .errors import NotFoundError, RecordValidationError
from .identity import IdentityAssigner
from .locks import KeyedLocks
from .match import EntityMatcher
from .priorities import ReconciliationPolicy, normalize_source
from .resolve import ConflictResolver
from .validate import RecordValidator

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from uuid import UUID

    from refrecon.domain.model import (
        CompositionRecord,
        EntityKind,
        IncomingRecord,
        IndexComposition,
        RecordIdentifier,
    )
    from refrecon.domain.model.reference import ReferenceEntityType
    from refrecon.domain.ports import ChangeEventPublisher, ReconciliationUnitOfWork

log = logging.getLogger(__name__)

type UnitOfWorkFactory = Callable[[], ReconciliationUnitOfWork]

DUPLICATE_IN_BATCH = "Duplicate entry in batch"


def _identity_keys(kind: EntityKind, identifiers: Iterable[RecordIdentifier]) -> list[str]:
    return [f"{kind}:{identifier.type}:{identifier.value}" for identifier in identifiers]


def _entity_key(entity_id: UUID) -> str:
    return f"entity:{entity_id}"


@dataclass(kw_only=True)
class ReconciliationService:
    """Reconciles incoming vendor records into the reference store.

    The only stateful component: it reads candidates and writes entities
    through the unit of work, and publishes an event once the entity is
    committed. Each record runs in its own unit of work, so a record either
    ends REJECTED without touching the store or EMITTED after its commit.
    """

    unit_of_work_factory: UnitOfWorkFactory
    policy: ReconciliationPolicy = field(default_factory=ReconciliationPolicy)
    publisher: ChangeEventPublisher | None = None
    locks: KeyedLocks = field(default_factory=KeyedLocks)

    validator: RecordValidator = field(init=False)
    matcher: EntityMatcher = field(init=False)
    resolver: ConflictResolver = field(init=False)
    assigner: IdentityAssigner = field(init=False)
    linker: CompositionLinker = field(default_factory=CompositionLinker)

    def __post_init__(self) -> None:
        policy = self.policy
        self.validator = RecordValidator(canonical_types=policy.canonical_types)
        self.matcher = EntityMatcher(canonical_types=policy.canonical_types)
        self.resolver = ConflictResolver(priorities=policy.priorities)
        self.assigner = IdentityAssigner(
            canonical_types=policy.canonical_types,
            priorities=policy.priorities,
            prefix=policy.internal_id_prefix,
            allow_timestamp_fallback=policy.allow_timestamp_fallback,
        )

    # Single record --------------------------------------------------------------

    def reconcile(self, record: IncomingRecord) -> ReconciliationResult:
        result = ReconciliationResult(record=record)

        validation = self.validator.validate(record)
        if not validation.is_valid:
            result.reject(validation.errors)
            log.info(
                "Rejected %s record %s from %s: %s",
                record.kind,
                record.external_id,
                record.source,
                result.error_message,
            )
            return result
        result.advance(ReconciliationState.VALIDATED)

        identifiers = validation.identifiers
        with self.locks.hold(_identity_keys(record.kind, identifiers)):
            # a new entity's id is reserved here so its lock is held from the first commit
            entity_id = self._peek_match(record.kind, identifiers) or new_id()
            # publishing under the entity lock keeps events in commit order per entity
            with self.locks.hold([_entity_key(entity_id)]):
                entity = self._merge(record, identifiers, result, new_entity_id=entity_id)
                self._emit(entity, result)
        return result

    def _peek_match(
        self, kind: EntityKind, identifiers: Sequence[RecordIdentifier]
    ) -> UUID | None:
        with self.unit_of_work_factory() as uow:
            entity = self._find(uow, kind, identifiers)
            return entity.id if entity is not None else None

    def _find(
        self,
        uow: ReconciliationUnitOfWork,
        kind: EntityKind,
        identifiers: Sequence[RecordIdentifier],
    ) -> ReferenceEntityType | None:
        hints = [(i.type, i.value) for i in identifiers if i.type is not None]
        candidates = uow.repositories.entities.find_candidates(kind, hints)
        return self.matcher.find_match(kind, identifiers, candidates)

    def _merge(
        self,
        record: IncomingRecord,
        identifiers: Sequence[RecordIdentifier],
        result: ReconciliationResult,
        *,
        new_entity_id: UUID | None = None,
    ) -> ReferenceEntityType:
        with self.unit_of_work_factory() as uow:
            entity = self._find(uow, record.kind, identifiers)
            if entity is None:
                result.advance(ReconciliationState.NOT_MATCHED)
                entity = new_entity(record.kind, entity_id=new_entity_id)
                result.operation = Operation.CREATE
                result.outcome = self.resolver.populate(entity, record, identifiers)
            else:
                result.advance(ReconciliationState.MATCHED)
                result.operation = Operation.UPDATE
                result.outcome = self.resolver.resolve(entity, record, identifiers)
            result.advance(ReconciliationState.MERGED)

            self.assigner.assign_if_missing(entity)
            result.advance(ReconciliationState.IDENTITY_ASSIGNED)

            entity.updated_at = record.observed_at
            saved = uow.repositories.entities.save(entity)
            uow.commit()

        result.entity = saved
        if result.operation is Operation.CREATE:
            log.info("Created %s %s from %s", record.kind, saved.internal_id, record.source)
        outcome = result.outcome
        if outcome is not None and any(
            d.target is DecisionTarget.IDENTIFIER for d in outcome.conflicts
        ):
            log_identifier_conflicts(saved, self.policy.priorities)
        return saved

    def _emit(self, entity: ReferenceEntityType, result: ReconciliationResult) -> None:
        if self.publisher is not None:
            self.publisher.publish(self.build_event(entity, result))
        result.advance(ReconciliationState.EMITTED)

    def build_event(
        self, entity: ReferenceEntityType, result: ReconciliationResult
    ) -> ReferenceDataEvent:
        if entity.internal_id is None or result.operation is None:
            raise ValueError("Only reconciled entities can be turned into events")
        priorities = self.policy.priorities
        return ReferenceDataEvent(
            entity_kind=entity.kind,
            operation=result.operation,
            source=priorities.display_name(normalize_source(result.record.source)),
            internal_id=entity.internal_id,
            entity_id=entity.id,
            primary_identifier_type=entity.primary_identifier_type,
            primary_identifier_value=entity.primary_identifier_value,
            attributes=snapshot_attributes(entity),
            identifiers=tuple(
                IdentifierSnapshot(
                    type=str(i.type), value=i.value, source=i.source, is_primary=i.is_primary
                )
                for i in entity.identifiers
            ),
            batch_id=result.record.batch_id,
        )

    def find_entity(self, internal_id: str) -> ReferenceEntityType | None:
        with self.unit_of_work_factory() as uow:
            return uow.repositories.entities.get_by_internal_id(internal_id)

    # Batches ----------------------------------------------------------------------

    def reconcile_batch(
        self,
        records: Iterable[IncomingRecord],
        *,
        batch_id: str | None = None,
        max_workers: int = 1,
    ) -> BatchReport:
        """Reconcile many records; failures are reported per record, never raised.

        Duplicate entries within the batch, keyed on (external id, identifier
        type, source), are rejected; the first occurrence is processed.
        """

        pending = list(records)
        report = BatchReport(batch_id=batch_id, total=len(pending))

        seen: set[tuple[str | None, str | None, str | None]] = set()
        unique: list[IncomingRecord] = []
        duplicates: list[IncomingRecord] = []
        for record in pending:
            key = record.duplicate_key
            if key in seen:
                duplicates.append(record)
                continue
            seen.add(key)
            unique.append(record)

        if max_workers > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                results = list(executor.map(self._reconcile_guarded, unique))
        else:
            results = [self._reconcile_guarded(record) for record in unique]

        for result in results:
            report.add(result)
        for record in duplicates:
            result = ReconciliationResult(record=record)
            result.reject(
                (FieldError("external_id", DUPLICATE_IN_BATCH, FieldErrorCode.DUPLICATE),)
            )
            report.add(result)

        log.info(
            "Batch %s finished: total=%s, created=%s, updated=%s, rejected=%s, failed=%s, "
            "status=%s",
            batch_id,
            report.total,
            report.created,
            report.updated,
            report.rejected,
            report.failed,
            report.status,
        )
        return report

    def reprocess(self, report: BatchReport, *, max_workers: int = 1) -> BatchReport:
        """Run the rejected and failed records of ``report`` again."""

        retry = [
            result.record
            for result in report.unsuccessful
            if not any(error.code is FieldErrorCode.DUPLICATE for error in result.errors)
        ]
        log.info("Reprocessing %s failed records of batch %s", len(retry), report.batch_id)
        return self.reconcile_batch(retry, batch_id=report.batch_id, max_workers=max_workers)

    def _reconcile_guarded(self, record: IncomingRecord) -> ReconciliationResult:
        try:
            return self.reconcile(record)
        except Exception as exc:
            log.exception(
                "Failed to reconcile %s record %s from %s",
                record.kind,
                record.external_id,
                record.source,
            )
            result = ReconciliationResult(record=record)
            result.fail(f"{type(exc).__name__}: {exc}")
            return result

    # Compositions -----------------------------------------------------------------

    def link_compositions(
        self, records: Iterable[CompositionRecord], *, batch_id: str | None = None
    ) -> CompositionReport:
        pending = list(records)
        report = CompositionReport(batch_id=batch_id, total=len(pending))
        for record in pending:
            try:
                with self.unit_of_work_factory() as uow:
                    link, refreshed = self._upsert_link(record, uow)
                    uow.commit()
            except RecordValidationError as exc:
                report.rejected += 1
                log.info("Rejected composition record: %s", exc)
            except NotFoundError as exc:
                report.missing_dependency += 1
                report.retryable.append(record)
                log.warning("Composition dependency missing, retry later: %s", exc)
            except Exception:
                report.failed += 1
                log.exception("Failed to link composition record %s", record)
            else:
                report.linked += 1
                report.refreshed += refreshed
                report.links.append(link)

        log.info(
            "Composition batch %s finished: total=%s, linked=%s, refreshed=%s, rejected=%s, "
            "missing_dependency=%s, failed=%s",
            batch_id,
            report.total,
            report.linked,
            report.refreshed,
            report.rejected,
            report.missing_dependency,
            report.failed,
        )
        return report

    def _upsert_link(
        self, record: CompositionRecord, uow: ReconciliationUnitOfWork
    ) -> tuple[IndexComposition, bool]:
        """Add the link, or refresh the stored one with the same link key."""

        link = self.linker.link(record, uow.repositories.entities)
        compositions = uow.repositories.compositions
        for stored in compositions.for_index(link.index_id):
            if stored.link_key == link.link_key:
                stored.refresh_from(link)
                compositions.add(stored)
                log.debug("Refreshed composition link %s", stored.id)
                return stored, True
        compositions.add(link)
        return link, False
