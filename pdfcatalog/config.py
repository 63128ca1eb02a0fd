"""Configuration module for pdfcatalog."""

from dataclasses import dataclass, field
from pathlib import Path

MIB = 1024 * 1024


def _get_project_root() -> Path:
    return Path(__file__).parent.parent


@dataclass
class QuotaConfig:
    max_record_bytes: int = 50 * MIB
    max_total_bytes: int = 800 * MIB
    warning_ratio: float = 0.8
    critical_ratio: float = 0.9


@dataclass
class PersistenceConfig:
    # Practical budget for the serialized catalog entry.
    store_ceiling_bytes: int = 4 * MIB
    # Payloads whose encoded form is larger than this are the first to be stripped.
    record_persist_threshold_bytes: int = 2 * MIB
    # Hard capacity of the whole key-value store, across all keys.
    store_capacity_bytes: int = 10 * MIB
    history_limit: int = 100


@dataclass
class Config:
    database_path: Path = field(default_factory=lambda: _get_project_root() / "data" / "catalog.db")
    quota: QuotaConfig = field(default_factory=QuotaConfig)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    # Defaults to a "previews" directory next to the database.
    preview_directory: Path | None = None
    comments_require_login: bool = True
