from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from refrecon.app import (
    detect_identifier_type,
    inspect_entity,
    link_composition_file,
    reconcile_file,
    validate_file,
)
from refrecon.config import ConfigurationError, configure_logging, get_storage_config
from refrecon.domain.model import EntityKind

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _parse_kind(value: str) -> EntityKind:
    try:
        return EntityKind(value.strip().upper())
    except ValueError as exc:
        choices = ", ".join(kind.value.lower() for kind in EntityKind)
        raise argparse.ArgumentTypeError(f"Unknown entity kind {value!r} ({choices})") from exc


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile vendor reference data")
    subparsers = parser.add_subparsers(dest="command", required=True)

    reconcile = subparsers.add_parser("reconcile", help="Reconcile a vendor JSON-lines file")
    reconcile.add_argument("path", type=Path, help="Vendor file, one JSON row per line")
    reconcile.add_argument(
        "--kind",
        type=_parse_kind,
        required=True,
        help="Entity kind of the rows (security or counterparty)",
    )
    reconcile.add_argument(
        "--source",
        type=str,
        help="Vendor to assume for rows that do not name one",
    )
    reconcile.add_argument("--batch-id", type=str, help="Batch id (defaults to a new UUID)")
    events = reconcile.add_mutually_exclusive_group()
    events.add_argument(
        "--events",
        type=Path,
        help="Append change events to this JSON-lines file (default: events.jsonl in the "
        "data directory)",
    )
    events.add_argument(
        "--no-events",
        action="store_true",
        help="Keep change events in memory only",
    )

    compositions = subparsers.add_parser(
        "link-compositions",
        help="Link index constituents from a vendor JSON-lines file",
    )
    compositions.add_argument("path", type=Path, help="Composition file, one JSON row per line")
    compositions.add_argument("--source", type=str, help="Vendor to assume for unnamed rows")
    compositions.add_argument("--batch-id", type=str, help="Batch id (defaults to a new UUID)")

    detect = subparsers.add_parser("detect-type", help="Guess the scheme of an identifier")
    detect.add_argument("value", type=str, help="Identifier value")

    inspect = subparsers.add_parser(
        "inspect", help="Show a stored entity and the identifier conflicts it holds"
    )
    inspect.add_argument("internal_id", type=str, help="Internal id, e.g. IMS-ISIN-US0378331005")

    validate = subparsers.add_parser("validate", help="Validate a vendor file without storing")
    validate.add_argument("path", type=Path, help="Vendor file, one JSON row per line")
    validate.add_argument(
        "--kind",
        type=_parse_kind,
        required=True,
        help="Entity kind of the rows (security or counterparty)",
    )
    validate.add_argument("--source", type=str, help="Vendor to assume for unnamed rows")

    return parser.parse_args(list(argv))


def _events_path(parsed_args: argparse.Namespace) -> Path | None:
    if parsed_args.no_events:
        return None
    return parsed_args.events or get_storage_config().events_path()


def _require_file(path: Path) -> None:
    if not path.is_file():
        raise ValueError(f"No such file: {path}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    parsed_args: argparse.Namespace
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        if hasattr(parsed_args, "path"):
            _require_file(parsed_args.path)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        if parsed_args.command == "reconcile":
            result = reconcile_file(
                parsed_args.path,
                parsed_args.kind,
                source=parsed_args.source,
                batch_id=parsed_args.batch_id,
                events_path=_events_path(parsed_args),
            )
            report = result.report
            log.info(
                "Reconciliation finished: created=%s, updated=%s, rejected=%s, failed=%s, "
                "unreadable=%s, status=%s",
                report.created,
                report.updated,
                report.rejected,
                report.failed,
                len(result.row_errors),
                report.status,
            )
            for outcome in report.unsuccessful:
                log.info(
                    "%s %s from %s: %s",
                    outcome.state,
                    outcome.record.external_id,
                    outcome.record.source,
                    outcome.error_message,
                )
        elif parsed_args.command == "link-compositions":
            composition_result = link_composition_file(
                parsed_args.path,
                source=parsed_args.source,
                batch_id=parsed_args.batch_id,
            )
            composition_report = composition_result.report
            log.info(
                "Composition linking finished: linked=%s, refreshed=%s, rejected=%s, "
                "missing_dependency=%s, failed=%s, status=%s",
                composition_report.linked,
                composition_report.refreshed,
                composition_report.rejected,
                composition_report.missing_dependency,
                composition_report.failed,
                composition_report.status,
            )
        elif parsed_args.command == "detect-type":
            detected = detect_identifier_type(parsed_args.value)
            log.info("%s: %s", parsed_args.value, detected or "unrecognised")
        elif parsed_args.command == "inspect":
            inspection = inspect_entity(parsed_args.internal_id)
            if inspection is None:
                log.error("No entity with internal id %s", parsed_args.internal_id)
                sys.exit(1)
            entity = inspection.entity
            log.info("%s %s (id %s)", entity.kind, entity.internal_id, entity.id)
            for identifier in entity.identifiers:
                log.info(
                    "  %s=%s from %s%s",
                    identifier.type,
                    identifier.value,
                    identifier.source,
                    " (primary)" if identifier.is_primary else "",
                )
            for name, value in inspection.attributes.items():
                if value is not None:
                    log.info("  %s: %s", name, value)
            log.info("%s conflicting identifier types", len(inspection.conflicts))
        elif parsed_args.command == "validate":
            validation = validate_file(
                parsed_args.path, parsed_args.kind, source=parsed_args.source
            )
            for record, outcome in validation.invalid:
                for error in outcome.errors:
                    log.info("%s: %s", record.external_id, error)
            if validation.invalid or validation.row_errors:
                log.error(
                    "%s invalid records, %s unreadable lines",
                    len(validation.invalid),
                    len(validation.row_errors),
                )
                sys.exit(2)
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301

    except ConfigurationError as exc:
        log.error("Invalid configuration (%s): %s", exc.variable or "environment", exc)
        sys.exit(2)
    except Exception:
        log.exception("Fatal error during %s", parsed_args.command)
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


if __name__ == "__main__":
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()
