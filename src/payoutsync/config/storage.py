"""Data storage configuration helpers."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import optional_env_var

DEFAULT_DATA_FILENAME: Final[str] = "agency-data.json"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_file: Path

    def resolve_data_file(self) -> Path:
        return self.data_file.expanduser().resolve()


def get_storage_config(*, data_file: Path | None = None) -> StorageConfig:
    if data_file is not None:
        return StorageConfig(data_file=data_file)
    env_file = optional_env_var("PAYOUTSYNC_DATA_FILE")
    path = Path(env_file) if env_file else Path.cwd() / DEFAULT_DATA_FILENAME
    return StorageConfig(data_file=path)
