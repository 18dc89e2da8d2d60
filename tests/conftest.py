from __future__ import annotations

import base64
import io
import sys
from pathlib import Path

import pytest
from PIL import Image

# Make the cardvault package importable when running tests from a checkout
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from cardvault.core.config import Settings  # noqa: E402
from cardvault.repositories.host_store import MemoryHostStore, StorageFullError  # noqa: E402

COLLECTION_KEY = "ises_students"


def make_settings(**overrides) -> Settings:
    values = dict(
        app_env="test",
        public_base_url="http://testserver",
        storage_backend="memory",
        storage_path="",
        database_url="",
        storage_capacity=5 * 1024 * 1024,
        collection_key=COLLECTION_KEY,
        ephemeral_prefixes=("temp_", "cache_", "draft_"),
        reserved_prefixes=("temp_", "cache_", "draft_", "ises_"),
        photo_max_dimension=150,
        photo_quality=0.3,
        optimize_max_dimension=120,
        optimize_quality=0.25,
        optimize_min_photo_length=0,
        evict_keep_last=5,
    )
    values.update(overrides)
    return Settings(**values)


def make_photo(width: int, height: int, *, noise: bool = False, fmt: str = "JPEG") -> str:
    """Data URI of a synthetic picture (gradient, optionally with noise)."""
    picture = Image.linear_gradient("L").resize((width, height))
    if noise:
        picture = Image.blend(picture, Image.effect_noise((width, height), 64), 0.5)
    picture = picture.convert("RGB")
    buffer = io.BytesIO()
    picture.save(buffer, format=fmt, quality=90)
    mime = "image/jpeg" if fmt == "JPEG" else f"image/{fmt.lower()}"
    return f"data:{mime};base64,{base64.b64encode(buffer.getvalue()).decode('ascii')}"


def photo_size(data_uri: str) -> tuple[int, int]:
    payload = data_uri.split(",", 1)[1]
    with Image.open(io.BytesIO(base64.b64decode(payload))) as picture:
        return picture.size


class TruncatingCompressor:
    """Stand-in compressor: output length is min(len(input), max_dimension)."""

    def __init__(self) -> None:
        self.calls: list[tuple[int, float]] = []

    def compress(self, image: str, max_dimension: int, quality: float) -> str:
        self.calls.append((max_dimension, quality))
        return image[:max_dimension]


class RejectingHostStore(MemoryHostStore):
    """Rejects any value longer than `limit` and records every attempted size."""

    def __init__(self, limit: int | None = None) -> None:
        super().__init__()
        self.limit = limit
        self.attempts: list[int] = []

    def set(self, key: str, value: str) -> None:
        self.attempts.append(len(value))
        if self.limit is not None and len(value) > self.limit:
            raise StorageFullError(key, len(value), self.limit)
        super().set(key, value)


@pytest.fixture()
def settings() -> Settings:
    return make_settings()


@pytest.fixture()
def host() -> MemoryHostStore:
    return MemoryHostStore()


class LaggingRemoveHostStore(MemoryHostStore):
    """A key only disappears on the `lag`-th remove() call for it."""

    def __init__(self, lag: int) -> None:
        super().__init__()
        self.lag = lag
        self.remove_calls: dict[str, int] = {}

    def remove(self, key: str) -> None:
        self.remove_calls[key] = self.remove_calls.get(key, 0) + 1
        if self.remove_calls[key] >= self.lag:
            super().remove(key)
