"""Reconciliation policy configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final

from refrecon.domain.reconciliation.priorities import (
    DEFAULT_INTERNAL_ID_PREFIX,
    DEFAULT_SOURCE_PRIORITIES,
    ReconciliationPolicy,
    SourcePriorityTable,
)

from .env import env_flag, env_positive_int, optional_env_var
from .errors import ConfigurationError, InvalidConfigurationError

SOURCE_PRIORITIES_ENV: Final[str] = "REFRECON_SOURCE_PRIORITIES"
INTERNAL_ID_PREFIX_ENV: Final[str] = "REFRECON_INTERNAL_ID_PREFIX"
TIMESTAMP_IDS_ENV: Final[str] = "REFRECON_ALLOW_TIMESTAMP_IDS"
BATCH_WORKERS_ENV: Final[str] = "REFRECON_BATCH_WORKERS"

DEFAULT_BATCH_WORKERS: Final[int] = 1


@dataclass(frozen=True, slots=True)
class ReconciliationConfig:
    policy: ReconciliationPolicy = field(default_factory=ReconciliationPolicy)
    batch_workers: int = DEFAULT_BATCH_WORKERS


def parse_source_priorities(raw: str) -> dict[str, int]:
    """Parse ``"REUTERS=10,BLOOMBERG=20"`` into a rank mapping."""

    ranks: dict[str, int] = {}
    for chunk in raw.split(","):
        item = chunk.strip()
        if not item:
            continue
        name, sep, rank = item.partition("=")
        if not sep or not name.strip():
            raise InvalidConfigurationError(SOURCE_PRIORITIES_ENV, item, "NAME=RANK entries")
        try:
            ranks[name.strip().upper()] = int(rank)
        except ValueError as exc:
            raise InvalidConfigurationError(
                SOURCE_PRIORITIES_ENV, item, "an integer rank per source"
            ) from exc
    if not ranks:
        raise ConfigurationError(
            f"{SOURCE_PRIORITIES_ENV} is set but names no sources", variable=SOURCE_PRIORITIES_ENV
        )
    return ranks


def get_reconciliation_config() -> ReconciliationConfig:
    raw_priorities = optional_env_var(SOURCE_PRIORITIES_ENV)
    ranks = (
        parse_source_priorities(raw_priorities)
        if raw_priorities is not None
        else dict(DEFAULT_SOURCE_PRIORITIES)
    )
    prefix = optional_env_var(INTERNAL_ID_PREFIX_ENV) or DEFAULT_INTERNAL_ID_PREFIX

    policy = ReconciliationPolicy(
        priorities=SourcePriorityTable(ranks=ranks),
        internal_id_prefix=prefix,
        allow_timestamp_fallback=env_flag(TIMESTAMP_IDS_ENV),
    )
    return ReconciliationConfig(
        policy=policy,
        batch_workers=env_positive_int(BATCH_WORKERS_ENV, default=DEFAULT_BATCH_WORKERS),
    )
