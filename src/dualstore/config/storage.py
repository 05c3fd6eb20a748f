"""Data storage configuration helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import env_flag

APP_DIR_NAME: Final[str] = "dualstore"
PRIMARY_DB_FILENAME: Final[str] = "primary.db"
SECONDARY_DB_FILENAME: Final[str] = "secondary.db"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path
    primary_filename: str = PRIMARY_DB_FILENAME
    secondary_filename: str = SECONDARY_DB_FILENAME

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def ensure_data_dir(self) -> Path:
        data_dir = self.resolve_data_dir()
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir

    def primary_path(self, *, ensure: bool = True) -> Path:
        base = self.ensure_data_dir() if ensure else self.resolve_data_dir()
        return base / self.primary_filename

    def secondary_path(self, *, ensure: bool = True) -> Path:
        base = self.ensure_data_dir() if ensure else self.resolve_data_dir()
        return base / self.secondary_filename

    def primary_uri(self) -> str:
        return f"sqlite+aiosqlite:///{self.primary_path()}"

    def secondary_uri(self) -> str:
        return f"sqlite+aiosqlite:///{self.secondary_path()}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    """Connection settings for the two stores."""

    primary_uri: str
    secondary_uri: str
    echo: bool = False


def _default_data_dir() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return (base_path / APP_DIR_NAME).expanduser().resolve()


def get_storage_config() -> StorageConfig:
    env_dir = os.getenv("DUALSTORE_DATA_DIR")
    data_dir = Path(env_dir) if env_dir else _default_data_dir()
    return StorageConfig(data_dir=data_dir)


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    primary_uri = os.getenv("PRIMARY_DATABASE_URI")
    secondary_uri = os.getenv("SECONDARY_DATABASE_URI")
    echo = env_flag("DUALSTORE_ECHO_SQL", default=False)
    if primary_uri and secondary_uri:
        return DatabaseConfig(primary_uri=primary_uri, secondary_uri=secondary_uri, echo=echo)

    storage_config = storage or get_storage_config()
    return DatabaseConfig(
        primary_uri=primary_uri or storage_config.primary_uri(),
        secondary_uri=secondary_uri or storage_config.secondary_uri(),
        echo=echo,
    )
