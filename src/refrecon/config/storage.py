"""Locations of the reference store and the change-event log."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import env_flag, optional_env_var

APP_DIR_NAME: Final[str] = "refrecon"
DEFAULT_DB_FILENAME: Final[str] = "refrecon.db"
DEFAULT_EVENTS_FILENAME: Final[str] = "events.jsonl"

DATA_DIR_ENV: Final[str] = "REFRECON_DATA_DIR"
DATABASE_URI_ENV: Final[str] = "DATABASE_URI"
SQL_ECHO_ENV: Final[str] = "REFRECON_SQL_ECHO"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME
    events_filename: str = DEFAULT_EVENTS_FILENAME

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def _data_file(self, filename: str, *, ensure: bool) -> Path:
        directory = self.resolve_data_dir()
        if ensure:
            directory.mkdir(parents=True, exist_ok=True)
        return directory / filename

    def database_path(self, *, ensure: bool = True) -> Path:
        return self._data_file(self.database_filename, ensure=ensure)

    def events_path(self, *, ensure: bool = True) -> Path:
        """Default JSON-lines file that reconciled change events are appended to."""
        return self._data_file(self.events_filename, ensure=ensure)

    def database_uri(self) -> str:
        return f"sqlite+pysqlite:///{self.database_path()}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str
    echo: bool = False

    @property
    def is_sqlite(self) -> bool:
        return self.uri.startswith("sqlite")


def _platform_data_home() -> Path:
    if os.name == "nt":
        local = os.getenv("LOCALAPPDATA")
        return Path(local) if local else Path.home() / "AppData" / "Local"
    xdg = os.getenv("XDG_DATA_HOME")
    return Path(xdg) if xdg else Path.home() / ".local" / "share"


def get_storage_config() -> StorageConfig:
    override = optional_env_var(DATA_DIR_ENV)
    data_dir = Path(override) if override else _platform_data_home() / APP_DIR_NAME
    return StorageConfig(data_dir=data_dir)


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """``DATABASE_URI`` wins; otherwise a sqlite file in the data directory."""

    echo = env_flag(SQL_ECHO_ENV)
    uri = optional_env_var(DATABASE_URI_ENV)
    if uri is None:
        uri = (storage or get_storage_config()).database_uri()
    return DatabaseConfig(uri=uri, echo=echo)
