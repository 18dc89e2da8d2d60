"""
JSON-file host store.

The whole namespace lives in one JSON object file ({key: value}); every
write rewrites a temp file next to it and swaps it in with os.replace so
readers never see a half-written document.
"""

from __future__ import annotations

from pathlib import Path
import json
import os
import uuid

from .host_store import StorageFullError, entry_size


class JsonFileHostStore:
    def __init__(self, path: str | Path, capacity: int | None = None) -> None:
        self.path = Path(path)
        self.capacity = capacity

    def load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            print(f"[host] Unreadable store file {self.path} ({exc}); treating as empty.")
            return {}
        if not isinstance(data, dict):
            print(f"[host] Store file {self.path} is not a JSON object; treating as empty.")
            return {}
        skipped = sorted(str(k) for k, v in data.items() if not isinstance(v, str))
        if skipped:
            # dropped on the next save
            print(f"[host] Ignoring non-text values in {self.path}: {', '.join(skipped)}")
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def save(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(f".tmp-{self.path.name}-{uuid.uuid4().hex}")
        try:
            tmp.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp, self.path)
        finally:
            tmp.unlink(missing_ok=True)

    def get(self, key: str) -> str | None:
        return self.load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self.load()
        if self.capacity is not None:
            used = sum(entry_size(k, v) for k, v in data.items() if k != key)
            projected = used + entry_size(key, value)
            if projected > self.capacity:
                raise StorageFullError(key, projected, self.capacity)
        data[key] = value
        self.save(data)

    def remove(self, key: str) -> None:
        data = self.load()
        if key in data:
            del data[key]
            self.save(data)

    def keys(self) -> list[str]:
        return list(self.load())

    def is_capacity_error(self, exc: BaseException) -> bool:
        if isinstance(exc, StorageFullError):
            return True
        return isinstance(exc, OSError) and exc.errno in {28, 122}  # ENOSPC, EDQUOT
