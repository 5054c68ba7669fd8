"""Identity resolution and conflict resolution for reference data."""

from __future__ import annotations

from .attributes import ATTRIBUTE_TABLES, AttributeAccessor, accessors_for, snapshot_attributes
from .composition import CompositionLinker, parse_weight
from .conflicts import conflicting_identifiers, log_identifier_conflicts
from .contracts import (
    BatchReport,
    BatchStatus,
    CompositionReport,
    ConflictDecision,
    DecisionAction,
    DecisionTarget,
    FieldError,
    FieldErrorCode,
    ReconciliationResult,
    ReconciliationState,
    ResolutionOutcome,
    ValidationResult,
)
from .engine import ReconciliationService, UnitOfWorkFactory
from .errors import (
    AttributeMappingError,
    FormatError,
    NotFoundError,
    ReconciliationError,
    RecordValidationError,
    UnidentifiableEntityError,
)
from .identity import IdentityAssigner
from .locks import KeyedLocks
from .match import EntityMatcher
from .priorities import (
    DEFAULT_CANONICAL_TYPES,
    DEFAULT_SOURCE_PRIORITIES,
    UNKNOWN_SOURCE,
    UNRANKED,
    CanonicalTypeOrder,
    ReconciliationPolicy,
    SourcePriorityTable,
    normalize_source,
)
from .resolve import ConflictResolver
from .validate import (
    DETECTION_ORDER,
    IdentifierTypeDetector,
    IdentifierValidator,
    RecordValidator,
)

__all__ = [
    "ATTRIBUTE_TABLES",
    "DEFAULT_CANONICAL_TYPES",
    "DEFAULT_SOURCE_PRIORITIES",
    "DETECTION_ORDER",
    "UNKNOWN_SOURCE",
    "UNRANKED",
    "AttributeAccessor",
    "AttributeMappingError",
    "BatchReport",
    "BatchStatus",
    "CanonicalTypeOrder",
    "CompositionLinker",
    "CompositionReport",
    "ConflictDecision",
    "ConflictResolver",
    "DecisionAction",
    "DecisionTarget",
    "EntityMatcher",
    "FieldError",
    "FieldErrorCode",
    "FormatError",
    "IdentifierTypeDetector",
    "IdentifierValidator",
    "IdentityAssigner",
    "KeyedLocks",
    "NotFoundError",
    "ReconciliationError",
    "ReconciliationPolicy",
    "ReconciliationResult",
    "ReconciliationService",
    "ReconciliationState",
    "RecordValidationError",
    "RecordValidator",
    "ResolutionOutcome",
    "SourcePriorityTable",
    "UnidentifiableEntityError",
    "UnitOfWorkFactory",
    "ValidationResult",
    "accessors_for",
    "conflicting_identifiers",
    "log_identifier_conflicts",
    "normalize_source",
    "parse_weight",
    "snapshot_attributes",
]
