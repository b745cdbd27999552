"""Bounded seen-id sets, persisted as JSON in the cache directory."""

import json
import os
from pathlib import Path
from threading import Lock
from typing import Dict, Iterable, List, Optional

CACHE_DIR = Path(os.environ.get("NOTANOTE_CACHE_DIR", Path.home() / ".cache" / "notanote"))
SEEN_IDS_FILE = CACHE_DIR / "seen_ids.json"

MAX_SEEN_IDS = 200


def _bounded(ids: Iterable[str], limit: int) -> List[str]:
    ordered: List[str] = []
    for item in ids:
        if item in ordered:
            ordered.remove(item)
        ordered.append(item)
    return ordered[-limit:]


class JsonSeenIdStore:
    """Keeps the newest `limit` ids per key; older ids fall off."""

    def __init__(self, path: Optional[Path] = None, limit: int = MAX_SEEN_IDS):
        self.path = Path(path) if path else SEEN_IDS_FILE
        self.limit = limit
        self._lock = Lock()

    def _read(self) -> Dict[str, List[str]]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): [str(v) for v in vals] for k, vals in data.items() if isinstance(vals, list)}

    def load(self, key: str) -> List[str]:
        with self._lock:
            return list(self._read().get(key, []))

    def save(self, key: str, ids: Iterable[str]) -> None:
        with self._lock:
            data = self._read()
            data[key] = _bounded(ids, self.limit)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def clear(self) -> None:
        with self._lock:
            if self.path.exists():
                self.path.unlink()


class MemorySeenIdStore:
    def __init__(self, limit: int = MAX_SEEN_IDS):
        self.limit = limit
        self._data: Dict[str, List[str]] = {}

    def load(self, key: str) -> List[str]:
        return list(self._data.get(key, []))

    def save(self, key: str, ids: Iterable[str]) -> None:
        self._data[key] = _bounded(ids, self.limit)

    def clear(self) -> None:
        self._data.clear()


__all__ = ["JsonSeenIdStore", "MemorySeenIdStore", "MAX_SEEN_IDS"]
