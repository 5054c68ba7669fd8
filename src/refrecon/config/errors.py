"""Errors raised while reading refrecon settings from the environment.

Each error names the variable at fault so the CLI can point the operator at it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


class ConfigurationError(RuntimeError):
    def __init__(self, message: str, *, variable: str | None = None) -> None:
        super().__init__(message)
        self.variable = variable


class MissingConfigurationError(ConfigurationError):
    """One or more required variables are unset or blank."""

    def __init__(self, variables: Iterable[str]) -> None:
        self.variables = tuple(sorted(variables))
        super().__init__(
            f"Missing configuration for: {', '.join(self.variables)}",
            variable=self.variables[0] if self.variables else None,
        )


class InvalidConfigurationError(ConfigurationError):
    """A variable is set to something refrecon cannot use."""

    def __init__(self, variable: str, value: str, expected: str) -> None:
        super().__init__(f"{variable} must be {expected}, got {value!r}", variable=variable)
        self.value = value
        self.expected = expected
