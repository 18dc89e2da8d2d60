"""
Configuration helpers for the cardvault backend.

Routers/services read a Settings object instead of fetching os.environ
directly: storage backend and capacity, reserved key names, compression
profiles and the eviction window.
"""

from dataclasses import dataclass
from functools import lru_cache
import os

DEFAULT_CAPACITY = 5 * 1024 * 1024


@dataclass(frozen=True)
class Settings:
    """Typed view of environment variables."""

    app_env: str
    public_base_url: str
    storage_backend: str
    storage_path: str
    database_url: str
    storage_capacity: int
    collection_key: str
    ephemeral_prefixes: tuple[str, ...]
    reserved_prefixes: tuple[str, ...]
    photo_max_dimension: int
    photo_quality: float
    optimize_max_dimension: int
    optimize_quality: float
    optimize_min_photo_length: int
    evict_keep_last: int


@lru_cache
def get_settings() -> Settings:
    """Read the current environment and build a Settings instance."""
    def _int(value: str, default: int = 0) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def _float(value: str, default: float = 0.0) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            return default

    def _prefixes(value: str | None, default: tuple[str, ...]) -> tuple[str, ...]:
        if value is None:
            return default
        return tuple(p.strip() for p in value.split(",") if p.strip())

    ephemeral = _prefixes(os.getenv("EPHEMERAL_PREFIXES"), ("temp_", "cache_", "draft_"))
    return Settings(
        app_env=(os.getenv("APP_ENV") or "dev").lower(),
        public_base_url=os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/"),
        storage_backend=(os.getenv("STORAGE_BACKEND") or "json").strip().lower(),
        storage_path=os.getenv("STORAGE_PATH", "data.json"),
        database_url=os.getenv("DATABASE_URL", ""),
        storage_capacity=_int(os.getenv("STORAGE_CAPACITY", str(DEFAULT_CAPACITY)), DEFAULT_CAPACITY),
        collection_key=os.getenv("COLLECTION_KEY", "ises_students"),
        ephemeral_prefixes=ephemeral,
        reserved_prefixes=_prefixes(os.getenv("RESERVED_PREFIXES"), ephemeral + ("ises_",)),
        photo_max_dimension=_int(os.getenv("PHOTO_MAX_DIMENSION", "150"), 150),
        photo_quality=_float(os.getenv("PHOTO_QUALITY", "0.3"), 0.3),
        optimize_max_dimension=_int(os.getenv("OPTIMIZE_MAX_DIMENSION", "120"), 120),
        optimize_quality=_float(os.getenv("OPTIMIZE_QUALITY", "0.25"), 0.25),
        optimize_min_photo_length=_int(os.getenv("OPTIMIZE_MIN_PHOTO_LENGTH", "0"), 0),
        evict_keep_last=_int(os.getenv("EVICT_KEEP_LAST", "5"), 5),
    )
