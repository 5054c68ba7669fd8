"""Application orchestration entry points."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING
from uuid import uuid4

from refrecon.adapters.events import JsonLinesEventPublisher
from refrecon.adapters.memory import InMemoryEventPublisher
from refrecon.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, is_started, startup
from refrecon.adapters.vendor import (
    RowError,
    VendorCompositionRow,
    VendorCounterpartyRow,
    VendorSecurityRow,
    read_rows,
    translate_composition_row,
    translate_counterparty_row,
    translate_security_row,
)
from refrecon.config import ReconciliationConfig, get_reconciliation_config
from refrecon.domain.model import EntityKind, IdentifierType, IncomingRecord
from refrecon.domain.reconciliation import (
    BatchReport,
    CompositionReport,
    IdentifierTypeDetector,
    ReconciliationService,
    RecordValidator,
    UnitOfWorkFactory,
    ValidationResult,
    conflicting_identifiers,
    log_identifier_conflicts,
    snapshot_attributes,
)

if TYPE_CHECKING:
    from pathlib import Path

    from refrecon.domain.model import Identifier, IdentifierTypeName
    from refrecon.domain.model.reference import ReferenceEntityType
    from refrecon.domain.ports import ChangeEventPublisher


log = getLogger(__name__)


@dataclass(slots=True)
class ReconcileFileResult:
    report: BatchReport
    row_errors: list[RowError] = field(default_factory=list["RowError"])


@dataclass(slots=True)
class CompositionFileResult:
    report: CompositionReport
    row_errors: list[RowError] = field(default_factory=list["RowError"])


@dataclass(slots=True)
class ValidateFileResult:
    results: list[tuple[IncomingRecord, ValidationResult]] = field(
        default_factory=list[tuple[IncomingRecord, ValidationResult]]
    )
    row_errors: list[RowError] = field(default_factory=list["RowError"])

    @property
    def invalid(self) -> list[tuple[IncomingRecord, ValidationResult]]:
        return [(record, result) for record, result in self.results if not result.is_valid]


@dataclass(slots=True)
class EntityInspection:
    """A stored entity with its current attributes and unresolved identifier conflicts."""

    entity: ReferenceEntityType
    attributes: dict[str, object]
    conflicts: dict[IdentifierTypeName, tuple[Identifier, ...]]


def _ensure_started() -> None:
    if not is_started():
        startup()


def build_service(
    *,
    config: ReconciliationConfig | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    publisher: ChangeEventPublisher | None = None,
) -> ReconciliationService:
    effective_config = config or get_reconciliation_config()
    if unit_of_work_factory is None:
        _ensure_started()
        unit_of_work_factory = SqlAlchemyUnitOfWork
    return ReconciliationService(
        unit_of_work_factory=unit_of_work_factory,
        policy=effective_config.policy,
        publisher=publisher,
    )


def load_records(
    path: Path,
    kind: EntityKind,
    *,
    source: str | None = None,
    batch_id: str | None = None,
) -> tuple[list[IncomingRecord], list[RowError]]:
    """Read a vendor JSON-lines file of ``kind`` rows into incoming records."""

    if kind is EntityKind.SECURITY:
        securities = read_rows(path, VendorSecurityRow)
        records = [
            translate_security_row(row, source=source, batch_id=batch_id)
            for row in securities.rows
        ]
        return records, securities.errors
    counterparties = read_rows(path, VendorCounterpartyRow)
    records = [
        translate_counterparty_row(row, source=source, batch_id=batch_id)
        for row in counterparties.rows
    ]
    return records, counterparties.errors


def reconcile_file(
    path: Path,
    kind: EntityKind,
    *,
    source: str | None = None,
    batch_id: str | None = None,
    events_path: Path | None = None,
    config: ReconciliationConfig | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> ReconcileFileResult:
    """Reconcile a vendor file into the store and publish one event per emitted record.

    Events go to ``events_path`` as JSON lines when given and are otherwise kept
    in memory only.
    """

    effective_config = config or get_reconciliation_config()
    effective_batch_id = batch_id or str(uuid4())
    records, row_errors = load_records(path, kind, source=source, batch_id=effective_batch_id)
    log.info(
        "Starting reconciliation of %s %s records from %s: batch=%s, workers=%s",
        len(records),
        kind,
        path,
        effective_batch_id,
        effective_config.batch_workers,
    )

    if events_path is not None:
        with JsonLinesEventPublisher(events_path) as publisher:
            report = _run_batch(
                records,
                batch_id=effective_batch_id,
                config=effective_config,
                unit_of_work_factory=unit_of_work_factory,
                publisher=publisher,
            )
    else:
        report = _run_batch(
            records,
            batch_id=effective_batch_id,
            config=effective_config,
            unit_of_work_factory=unit_of_work_factory,
            publisher=InMemoryEventPublisher(),
        )
    return ReconcileFileResult(report=report, row_errors=row_errors)


def _run_batch(
    records: list[IncomingRecord],
    *,
    batch_id: str,
    config: ReconciliationConfig,
    unit_of_work_factory: UnitOfWorkFactory | None,
    publisher: ChangeEventPublisher,
) -> BatchReport:
    service = build_service(
        config=config, unit_of_work_factory=unit_of_work_factory, publisher=publisher
    )
    return service.reconcile_batch(records, batch_id=batch_id, max_workers=config.batch_workers)


def link_composition_file(
    path: Path,
    *,
    source: str | None = None,
    batch_id: str | None = None,
    config: ReconciliationConfig | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> CompositionFileResult:
    effective_batch_id = batch_id or str(uuid4())
    loaded = read_rows(path, VendorCompositionRow)
    records = [
        translate_composition_row(row, source=source, batch_id=effective_batch_id)
        for row in loaded.rows
    ]
    service = build_service(config=config, unit_of_work_factory=unit_of_work_factory)
    report = service.link_compositions(records, batch_id=effective_batch_id)
    return CompositionFileResult(report=report, row_errors=loaded.errors)


def validate_file(
    path: Path,
    kind: EntityKind,
    *,
    source: str | None = None,
    config: ReconciliationConfig | None = None,
) -> ValidateFileResult:
    """Check a vendor file without touching the store."""

    effective_config = config or get_reconciliation_config()
    validator = RecordValidator(canonical_types=effective_config.policy.canonical_types)
    records, row_errors = load_records(path, kind, source=source)
    result = ValidateFileResult(row_errors=row_errors)
    for record in records:
        result.results.append((record, validator.validate(record)))
    log.info(
        "Validated %s %s records from %s: %s invalid, %s unreadable lines",
        len(records),
        kind,
        path,
        len(result.invalid),
        len(row_errors),
    )
    return result


def detect_identifier_type(value: str) -> IdentifierType | None:
    return IdentifierTypeDetector().detect(value)


def inspect_entity(
    internal_id: str,
    *,
    config: ReconciliationConfig | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> EntityInspection | None:
    """Look an entity up by internal id and report identifier conflicts it still holds."""

    effective_config = config or get_reconciliation_config()
    service = build_service(config=effective_config, unit_of_work_factory=unit_of_work_factory)
    entity = service.find_entity(internal_id.strip())
    if entity is None:
        return None
    log_identifier_conflicts(entity, effective_config.policy.priorities)
    return EntityInspection(
        entity=entity,
        attributes=snapshot_attributes(entity),
        conflicts=conflicting_identifiers(entity),
    )
