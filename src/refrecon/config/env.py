"""Environment variable loaders for configuration."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Final

from .errors import InvalidConfigurationError, MissingConfigurationError

if TYPE_CHECKING:
    from collections.abc import Sequence

_TRUE_VALUES: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES: Final[frozenset[str]] = frozenset({"0", "false", "no", "off"})


def require_env_vars(names: Sequence[str]) -> dict[str, str]:
    """Return the given environment variables or raise if any are missing/blank."""

    missing: list[str] = []
    values: dict[str, str] = {}
    for name in names:
        value = os.getenv(name)
        if value is None or not value.strip():
            missing.append(name)
            continue
        values[name] = value

    if missing:
        raise MissingConfigurationError(missing)

    return values


def optional_env_var(name: str) -> str | None:
    """Return the stripped value of ``name`` or ``None`` when unset/blank."""

    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def env_flag(name: str, *, default: bool = False) -> bool:
    value = optional_env_var(name)
    if value is None:
        return default
    lowered = value.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise InvalidConfigurationError(name, value, "a boolean flag")


def env_positive_int(name: str, *, default: int) -> int:
    value = optional_env_var(name)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError as exc:
        raise InvalidConfigurationError(name, value, "an integer") from exc
    if parsed < 1:
        raise InvalidConfigurationError(name, value, "a positive integer")
    return parsed
