"""Source-priority arbitration between an existing entity and an incoming record.

Attributes carry no per-field provenance. The source of an existing attribute
value is approximated by the source of the entity's primary identifier (falling
back to the most trusted identifier source). This is a known limitation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, cast

from .attributes import AttributeAccessor, accessors_for
from .contracts import ConflictDecision, DecisionAction, DecisionTarget, ResolutionOutcome
from .errors import AttributeMappingError
from .priorities import UNKNOWN_SOURCE, UNRANKED, SourcePriorityTable, normalize_source

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from refrecon.domain.model import (
        Identifier,
        IdentifierTypeName,
        IncomingRecord,
        RecordIdentifier,
    )
    from refrecon.domain.model.reference import ReferenceEntityType

log = logging.getLogger(__name__)

type _Accessor = AttributeAccessor[ReferenceEntityType]


@dataclass(frozen=True, slots=True)
class ConflictResolver:
    """Decides, per attribute and per identifier type, which value wins.

    The entity is mutated in place and returned decisions describe every change
    (and every retained disagreement) for the audit log.
    """

    priorities: SourcePriorityTable = field(default_factory=SourcePriorityTable)

    # Shared lookups ------------------------------------------------------------

    def existing_source(self, entity: ReferenceEntityType) -> str:
        primary = entity.primary_identifier
        if primary is not None:
            return primary.source
        best = self.priorities.best(i.source for i in entity.identifiers)
        return best if best is not None else UNKNOWN_SOURCE

    def current_identifier(
        self, entity: ReferenceEntityType, identifier_type: IdentifierTypeName
    ) -> Identifier | None:
        """The identifier holding the "current" slot of its type.

        That is the one from the most trusted source; ties go to the earliest.
        """
        return min(
            entity.identifiers_of(identifier_type),
            key=lambda identifier: self.priorities.rank(identifier.source),
            default=None,
        )

    # Entry points --------------------------------------------------------------

    def populate(
        self,
        entity: ReferenceEntityType,
        record: IncomingRecord,
        identifiers: Sequence[RecordIdentifier],
    ) -> ResolutionOutcome:
        """First write into a freshly created entity."""

        return self.resolve(entity, record, identifiers)

    def resolve(
        self,
        entity: ReferenceEntityType,
        record: IncomingRecord,
        identifiers: Sequence[RecordIdentifier],
    ) -> ResolutionOutcome:
        outcome = ResolutionOutcome()
        incoming_source = normalize_source(record.source)
        # Captured before identifiers move: the record must be judged against the
        # source that stood behind the attributes when it arrived.
        existing_source = self.existing_source(entity)

        self.resolve_attributes(
            entity,
            record.attributes,
            incoming_source=incoming_source,
            existing_source=existing_source,
            outcome=outcome,
        )
        for identifier in identifiers:
            self.resolve_identifier(entity, identifier, source=incoming_source, outcome=outcome)
        return outcome

    # Attributes ----------------------------------------------------------------

    def resolve_attributes(
        self,
        entity: ReferenceEntityType,
        attributes: Mapping[str, object],
        *,
        incoming_source: str,
        existing_source: str,
        outcome: ResolutionOutcome,
    ) -> None:
        table = cast("Mapping[str, _Accessor]", accessors_for(entity.kind))
        for name, incoming in attributes.items():
            accessor = table.get(name)
            if accessor is None:
                log.debug("Ignoring unmapped %s attribute %r", entity.kind, name)
                outcome.unmapped_attributes.append(name)
                continue
            try:
                self._resolve_attribute(
                    entity,
                    accessor,
                    incoming,
                    incoming_source=incoming_source,
                    existing_source=existing_source,
                    outcome=outcome,
                )
            except AttributeMappingError as exc:
                log.warning("Skipping attribute %r on %s: %s", name, entity.internal_id, exc)
                outcome.skipped_attributes.append(name)

    def _resolve_attribute(
        self,
        entity: ReferenceEntityType,
        accessor: _Accessor,
        incoming: object,
        *,
        incoming_source: str,
        existing_source: str,
        outcome: ResolutionOutcome,
    ) -> None:
        value = accessor.coerce(incoming)
        if value is None:
            return
        current = accessor.read(entity)
        if current == value:
            return

        if current is None:
            accessor.write(entity, value)
            outcome.record(
                ConflictDecision(
                    target=DecisionTarget.ATTRIBUTE,
                    name=accessor.name,
                    action=DecisionAction.FILLED,
                    incoming_value=value,
                    incoming_source=incoming_source,
                )
            )
            return

        if self.priorities.outranks(incoming_source, existing_source):
            accessor.write(entity, value)
            action = DecisionAction.OVERWRITTEN
        else:
            action = DecisionAction.RETAINED
        decision = ConflictDecision(
            target=DecisionTarget.ATTRIBUTE,
            name=accessor.name,
            action=action,
            existing_value=current,
            incoming_value=value,
            existing_source=existing_source,
            incoming_source=incoming_source,
        )
        outcome.record(decision)
        self._log_conflict(entity, decision)

    # Identifiers ---------------------------------------------------------------

    def resolve_identifier(
        self,
        entity: ReferenceEntityType,
        incoming: RecordIdentifier,
        *,
        source: str,
        outcome: ResolutionOutcome,
    ) -> None:
        if incoming.type is None:
            raise ValueError("identifier type must be resolved before merging")
        identifier_type = incoming.type
        value = incoming.value
        rank = self.priorities.rank(source)
        current = self.current_identifier(entity, identifier_type)
        own = entity.identifier_from(identifier_type, source)

        if current is None:
            entity.add_identifier(identifier_type, value, source=source, priority=rank)
            outcome.record(
                _identifier_decision(identifier_type, DecisionAction.ADDED, value, source)
            )
            return

        if current.value == value:
            self._agree(entity, current, own, source=source, outcome=outcome)
            return

        if self.priorities.outranks(source, current.source):
            displaced_value, displaced_source = current.value, current.source
            current.value = value
            current.source = source
            current.priority = rank
            if current.is_primary:
                entity.primary_identifier_value = value
            # the previous holder keeps its value as a non-primary identifier
            if entity.identifier_from(identifier_type, displaced_source) is None:
                entity.add_identifier(
                    identifier_type,
                    displaced_value,
                    source=displaced_source,
                    priority=self.priorities.rank(displaced_source),
                )
            action = DecisionAction.OVERWRITTEN
        elif own is not None:
            if own.value == value:
                return
            displaced_value, displaced_source = own.value, own.source
            own.value = value
            own.priority = rank
            if own is current and current.is_primary:
                entity.primary_identifier_value = value
            action = (
                DecisionAction.OVERWRITTEN if own is current else DecisionAction.SECONDARY_UPDATED
            )
        else:
            displaced_value, displaced_source = current.value, current.source
            entity.add_identifier(identifier_type, value, source=source, priority=rank)
            action = DecisionAction.SECONDARY_ADDED

        decision = ConflictDecision(
            target=DecisionTarget.IDENTIFIER,
            name=str(identifier_type),
            action=action,
            existing_value=displaced_value,
            incoming_value=value,
            existing_source=displaced_source,
            incoming_source=source,
        )
        outcome.record(decision)
        self._log_conflict(entity, decision)

    def _agree(
        self,
        entity: ReferenceEntityType,
        current: Identifier,
        own: Identifier | None,
        *,
        source: str,
        outcome: ResolutionOutcome,
    ) -> None:
        """The record confirms the current value of an identifier type."""

        if own is not None and own is not current:
            # the source used to disagree and no longer does
            entity.remove_identifier(own)
            outcome.record(
                ConflictDecision(
                    target=DecisionTarget.IDENTIFIER,
                    name=str(current.type),
                    action=DecisionAction.WITHDRAWN,
                    existing_value=own.value,
                    incoming_value=current.value,
                    existing_source=own.source,
                    incoming_source=source,
                )
            )
        if self.priorities.outranks(source, current.source):
            previous_source = current.source
            current.source = source
            current.priority = self.priorities.rank(source)
            outcome.record(
                ConflictDecision(
                    target=DecisionTarget.IDENTIFIER,
                    name=str(current.type),
                    action=DecisionAction.CORROBORATED,
                    existing_value=current.value,
                    incoming_value=current.value,
                    existing_source=previous_source,
                    incoming_source=source,
                )
            )
            log.info(
                "%s %s=%s now backed by %s (was %s)",
                entity.kind,
                current.type,
                current.value,
                self.priorities.display_name(source),
                self.priorities.display_name(previous_source),
            )

    def _log_conflict(self, entity: ReferenceEntityType, decision: ConflictDecision) -> None:
        log.info(
            "Conflict on %s %s of %s: existing=%r (%s, rank %s) incoming=%r (%s, rank %s) "
            "-> %s, winner %s",
            decision.target,
            decision.name,
            entity.internal_id or entity.id,
            decision.existing_value,
            self.priorities.display_name(decision.existing_source),
            _format_rank(self.priorities.rank(decision.existing_source)),
            decision.incoming_value,
            self.priorities.display_name(decision.incoming_source),
            _format_rank(self.priorities.rank(decision.incoming_source)),
            decision.action,
            self.priorities.display_name(decision.winning_source),
        )


def _identifier_decision(
    identifier_type: IdentifierTypeName, action: DecisionAction, value: str, source: str
) -> ConflictDecision:
    return ConflictDecision(
        target=DecisionTarget.IDENTIFIER,
        name=str(identifier_type),
        action=action,
        incoming_value=value,
        incoming_source=source,
    )


def _format_rank(rank: int) -> str:
    return "unranked" if rank == UNRANKED else str(rank)
