"""Where review data lives on disk.

Everything sits under one data directory: the review database, the HTTP cache used
for evidence reads and the local evidence blob tree. ``STRATAREVIEW_DATA_DIR``
overrides the platform default and ``DATABASE_URI`` points the records elsewhere.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

APP_DIR_NAME: Final[str] = "stratareview"
DATA_DIR_ENV: Final[str] = "STRATAREVIEW_DATA_DIR"
DATABASE_URI_ENV: Final[str] = "DATABASE_URI"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path
    database_filename: str = "reviews.db"
    http_cache_filename: str = "http_cache.db"
    evidence_dirname: str = "evidence"

    @property
    def root(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def database_path(self, *, ensure: bool = True) -> Path:
        return self._file(self.database_filename, ensure=ensure)

    def http_cache_path(self, *, ensure: bool = True) -> Path:
        return self._file(self.http_cache_filename, ensure=ensure)

    def evidence_path(self, *, ensure: bool = True) -> Path:
        path = self.root / self.evidence_dirname
        if ensure:
            path.mkdir(parents=True, exist_ok=True)
        return path

    def database_uri(self) -> str:
        return f"sqlite+pysqlite:///{self.database_path()}"

    def _file(self, name: str, *, ensure: bool) -> Path:
        if ensure:
            self.root.mkdir(parents=True, exist_ok=True)
        return self.root / name


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str


def default_data_dir() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA") or str(Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
    return Path(base) / APP_DIR_NAME


def get_storage_config() -> StorageConfig:
    override = os.getenv(DATA_DIR_ENV)
    return StorageConfig(data_dir=Path(override) if override else default_data_dir())


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    uri = os.getenv(DATABASE_URI_ENV)
    if not uri:
        uri = (storage or get_storage_config()).database_uri()
    return DatabaseConfig(uri=uri)
