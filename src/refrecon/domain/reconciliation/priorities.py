"""Source trust ranking and canonical identifier ordering.

Both tables are immutable values handed to the engine at construction, so tests
and deployments can run different policies side by side.
"""

from __future__ import annotations

import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from refrecon.domain.model.enums import EntityKind, IdentifierType

if TYPE_CHECKING:
    from collections.abc import Iterable

    from refrecon.domain.model.enums import IdentifierTypeName

UNKNOWN_SOURCE: Final[str] = "UNKNOWN"
UNRANKED: Final[int] = sys.maxsize
DEFAULT_INTERNAL_ID_PREFIX: Final[str] = "IMS"

DEFAULT_SOURCE_PRIORITIES: Final[Mapping[str, int]] = MappingProxyType(
    {
        "REUTERS": 10,
        "BLOOMBERG": 20,
        "MARKIT": 30,
        "ULTUMUS": 40,
        "RIMES": 50,
    }
)

DEFAULT_SOURCE_DISPLAY_NAMES: Final[Mapping[str, str]] = MappingProxyType(
    {
        "REUTERS": "Reuters",
        "BLOOMBERG": "Bloomberg",
        "MARKIT": "MarkIT",
        "ULTUMUS": "Ultumus",
        "RIMES": "RIMES",
    }
)

DEFAULT_CANONICAL_TYPES: Final[Mapping[EntityKind, tuple[IdentifierTypeName, ...]]] = (
    MappingProxyType(
        {
            EntityKind.SECURITY: (
                IdentifierType.ISIN,
                IdentifierType.CUSIP,
                IdentifierType.SEDOL,
                IdentifierType.BLOOMBERG_ID,
                IdentifierType.REUTERS_ID,
                IdentifierType.TICKER,
            ),
            EntityKind.COUNTERPARTY: (
                IdentifierType.LEI,
                IdentifierType.BIC,
                IdentifierType.SWIFT,
                IdentifierType.BLOOMBERG_ID,
                IdentifierType.REUTERS_ID,
            ),
        }
    )
)


def normalize_source(source: str | None) -> str:
    if source is None or not source.strip():
        return UNKNOWN_SOURCE
    return source.strip().upper()


@dataclass(frozen=True, slots=True)
class SourcePriorityTable:
    """Total order over vendor names; lower rank means higher trust.

    Unknown sources rank last (``UNRANKED``) and therefore never outrank a known
    source. Two unknown sources tie.
    """

    ranks: Mapping[str, int] = field(default_factory=lambda: DEFAULT_SOURCE_PRIORITIES)
    display_names: Mapping[str, str] = field(default_factory=lambda: DEFAULT_SOURCE_DISPLAY_NAMES)

    def __post_init__(self) -> None:
        ranks = {normalize_source(name): rank for name, rank in self.ranks.items()}
        names = {normalize_source(name): label for name, label in self.display_names.items()}
        object.__setattr__(self, "ranks", MappingProxyType(ranks))
        object.__setattr__(self, "display_names", MappingProxyType(names))

    def rank(self, source: str | None) -> int:
        return self.ranks.get(normalize_source(source), UNRANKED)

    def is_known(self, source: str | None) -> bool:
        return normalize_source(source) in self.ranks

    def outranks(self, challenger: str | None, incumbent: str | None) -> bool:
        """Whether ``challenger`` is strictly more trusted than ``incumbent``."""
        return self.rank(challenger) < self.rank(incumbent)

    def display_name(self, source: str | None) -> str:
        normalized = normalize_source(source)
        return self.display_names.get(normalized, normalized)

    def best(self, sources: Iterable[str]) -> str | None:
        """Most trusted of ``sources``; the first one wins ties."""
        return min(sources, key=self.rank, default=None)


@dataclass(frozen=True, slots=True)
class CanonicalTypeOrder:
    """Ordered identifier schemes per entity kind, best first."""

    by_kind: Mapping[EntityKind, tuple[IdentifierTypeName, ...]] = field(
        default_factory=lambda: DEFAULT_CANONICAL_TYPES
    )

    def __post_init__(self) -> None:
        frozen = {kind: tuple(types) for kind, types in self.by_kind.items()}
        object.__setattr__(self, "by_kind", MappingProxyType(frozen))

    def types_for(self, kind: EntityKind) -> tuple[IdentifierTypeName, ...]:
        return self.by_kind.get(kind, ())

    def is_canonical(self, kind: EntityKind, identifier_type: IdentifierTypeName) -> bool:
        return identifier_type in self.types_for(kind)

    def rank(self, kind: EntityKind, identifier_type: IdentifierTypeName) -> int:
        types = self.types_for(kind)
        if identifier_type in types:
            return types.index(identifier_type)
        return UNRANKED


@dataclass(frozen=True, slots=True)
class ReconciliationPolicy:
    """Everything the engine needs to decide, bundled as one immutable value."""

    priorities: SourcePriorityTable = field(default_factory=SourcePriorityTable)
    canonical_types: CanonicalTypeOrder = field(default_factory=CanonicalTypeOrder)
    internal_id_prefix: str = DEFAULT_INTERNAL_ID_PREFIX
    allow_timestamp_fallback: bool = False
