from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import pytest

from refrecon.adapters.memory import InMemoryReferenceStore, InMemoryUnitOfWork
from refrecon.app import (
    detect_identifier_type,
    inspect_entity,
    link_composition_file,
    reconcile_file,
    validate_file,
)
from refrecon.config import ReconciliationConfig
from refrecon.domain.model import EntityKind, IdentifierType
from refrecon.domain.reconciliation import BatchStatus

from tests.helpers.records import APPLE_CUSIP, APPLE_ISIN, SP500_ISIN

if TYPE_CHECKING:
    from pathlib import Path


def _write_lines(path: Path, rows: list[dict[str, object] | str]) -> Path:
    lines = [row if isinstance(row, str) else json.dumps(row) for row in rows]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def _apple_row(**overrides: object) -> dict[str, object]:
    row: dict[str, object] = {
        "externalId": APPLE_ISIN,
        "identifierType": "ISIN",
        "cusip": APPLE_CUSIP,
        "securityType": "EQUITY",
    }
    row.update(overrides)
    return row


def test_reconcile_file_writes_store_and_events(tmp_path: Path) -> None:
    store = InMemoryReferenceStore()
    vendor_file = _write_lines(
        tmp_path / "bloomberg.jsonl",
        [_apple_row(), "{broken", _apple_row(externalId=None, cusip=None)],
    )
    events_path = tmp_path / "events.jsonl"

    result = reconcile_file(
        vendor_file,
        EntityKind.SECURITY,
        source="BLOOMBERG",
        batch_id="batch-1",
        events_path=events_path,
        config=ReconciliationConfig(),
        unit_of_work_factory=lambda: InMemoryUnitOfWork(store),
    )

    assert [error.line_number for error in result.row_errors] == [2]
    assert result.report.batch_id == "batch-1"
    assert result.report.created == 1
    assert result.report.rejected == 1
    assert result.report.status is BatchStatus.FAILED

    (stored,) = store.snapshot()
    assert stored.internal_id == f"IMS-ISIN-{APPLE_ISIN}"
    events = [json.loads(line) for line in events_path.read_text(encoding="utf-8").splitlines()]
    assert [event["internal_id"] for event in events] == [stored.internal_id]
    assert events[0]["batch_id"] == "batch-1"


def test_reconcile_file_without_events_path_keeps_events_in_memory(tmp_path: Path) -> None:
    store = InMemoryReferenceStore()
    vendor_file = _write_lines(tmp_path / "reuters.jsonl", [_apple_row(source="REUTERS")])

    result = reconcile_file(
        vendor_file,
        EntityKind.SECURITY,
        config=ReconciliationConfig(),
        unit_of_work_factory=lambda: InMemoryUnitOfWork(store),
    )

    assert result.report.status is BatchStatus.COMPLETED
    assert result.report.batch_id is not None
    assert not list(tmp_path.glob("events*"))


def test_link_composition_file(tmp_path: Path) -> None:
    store = InMemoryReferenceStore()

    def factory() -> InMemoryUnitOfWork:
        return InMemoryUnitOfWork(store)

    securities = _write_lines(
        tmp_path / "securities.jsonl",
        [
            _apple_row(),
            {"externalId": SP500_ISIN, "identifierType": "ISIN", "securityType": "INDEX"},
        ],
    )
    reconcile_file(
        securities,
        EntityKind.SECURITY,
        source="RIMES",
        config=ReconciliationConfig(),
        unit_of_work_factory=factory,
    )
    compositions = _write_lines(
        tmp_path / "compositions.jsonl",
        [
            {
                "indexId": SP500_ISIN,
                "indexIdType": "ISIN",
                "constituentId": APPLE_ISIN,
                "constituentIdType": "ISIN",
                "weight": "6.5",
            },
            {
                "indexId": SP500_ISIN,
                "indexIdType": "ISIN",
                "constituentId": "US5949181045",
                "constituentIdType": "ISIN",
            },
        ],
    )

    result = link_composition_file(
        compositions,
        source="RIMES",
        config=ReconciliationConfig(),
        unit_of_work_factory=factory,
    )

    assert result.report.linked == 1
    assert result.report.missing_dependency == 1
    (link,) = store.compositions.values()
    assert link.weight == 6.5
    assert link.source == "RIMES"


def test_validate_file_reports_invalid_rows_without_storing(tmp_path: Path) -> None:
    vendor_file = _write_lines(
        tmp_path / "bloomberg.jsonl",
        [_apple_row(), _apple_row(externalId="US037833100X", cusip=None)],
    )

    result = validate_file(
        vendor_file, EntityKind.SECURITY, source="BLOOMBERG", config=ReconciliationConfig()
    )

    assert len(result.results) == 2
    ((record, outcome),) = result.invalid
    assert record.external_id == "US037833100X"
    assert [error.field for error in outcome.errors][0] == "external_id"


def test_detect_identifier_type() -> None:
    assert detect_identifier_type(APPLE_ISIN) is IdentifierType.ISIN
    assert detect_identifier_type("BBG000B9XRY4") is IdentifierType.BLOOMBERG_ID
    assert detect_identifier_type("") is None


def test_inspect_entity_reports_retained_identifier_conflicts(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    store = InMemoryReferenceStore()

    def uow_factory() -> InMemoryUnitOfWork:
        return InMemoryUnitOfWork(store)

    for source, isin in (("REUTERS", APPLE_ISIN), ("BLOOMBERG", "US9999999999")):
        reconcile_file(
            _write_lines(tmp_path / f"{source}.jsonl", [_apple_row(externalId=isin)]),
            EntityKind.SECURITY,
            source=source,
            config=ReconciliationConfig(),
            unit_of_work_factory=uow_factory,
        )

    with caplog.at_level(logging.WARNING, logger="refrecon.domain.reconciliation.conflicts"):
        inspection = inspect_entity(
            f" IMS-ISIN-{APPLE_ISIN} ",
            config=ReconciliationConfig(),
            unit_of_work_factory=uow_factory,
        )

    assert inspection is not None
    assert inspection.attributes["security_type"] == "EQUITY"
    assert {i.value for i in inspection.conflicts["ISIN"]} == {APPLE_ISIN, "US9999999999"}
    assert "conflicting ISIN values" in caplog.text


def test_inspect_entity_returns_none_for_unknown_internal_id() -> None:
    store = InMemoryReferenceStore()

    assert (
        inspect_entity(
            "IMS-ISIN-UNKNOWN",
            config=ReconciliationConfig(),
            unit_of_work_factory=lambda: InMemoryUnitOfWork(store),
        )
        is None
    )
