"""Root logger setup for the CLI.

Conflict decisions are logged at INFO; raising ``REFRECON_LOG_LEVEL`` to
WARNING hides that audit trail.
"""

from __future__ import annotations

import logging
from typing import Final

from .env import optional_env_var

LOG_LEVEL_ENV: Final[str] = "REFRECON_LOG_LEVEL"
LOG_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_DATE_FORMAT: Final[str] = "%H:%M:%S"

log = logging.getLogger(__name__)


def _level_from_name(name: str) -> int | None:
    level = logging.getLevelNamesMapping().get(name.upper())
    if level is None and name.isdigit():
        return int(name)
    return level


def configure_logging(*, level: int | None = None, force: bool = False) -> int:
    """Initialise the root logger and return the level in effect.

    An explicit ``level`` wins over ``REFRECON_LOG_LEVEL``; an unknown level
    name is reported and INFO is used instead.
    """

    rejected: str | None = None
    if level is None:
        raw = optional_env_var(LOG_LEVEL_ENV)
        parsed = _level_from_name(raw) if raw is not None else logging.INFO
        if parsed is None:
            rejected, parsed = raw, logging.INFO
        level = parsed

    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT, force=force)
    if rejected is not None:
        log.warning("Ignoring unknown %s=%r; logging at INFO", LOG_LEVEL_ENV, rejected)
    return level
