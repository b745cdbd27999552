"""Secret storage for tracker API tokens.

Secrets live in a single YAML file so one read serves every key. Values
are cached after the first read; `clear_cache()` drops the cache, which
tests use to start from a clean store.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from threading import Lock
from typing import Dict, Iterable, Optional

import yaml

logger = logging.getLogger("notanote.secrets")

SECRETS_PATH = Path.home() / ".notanote_secrets.yaml"

LINEAR_TOKEN_KEY = "linear-api-token"
PYLON_TOKEN_KEY = "pylon-api-token"


def env_var_for(key: str) -> str:
    """`linear-api-token` -> `NOTANOTE_LINEAR_API_TOKEN`."""
    return "NOTANOTE_" + key.upper().replace("-", "_")


class YamlSecretStore:
    def __init__(self, path: Optional[Path] = None, use_env: bool = True):
        self.path = Path(path) if path else SECRETS_PATH
        self.use_env = use_env
        self._lock = Lock()
        self._cache: Optional[Dict[str, str]] = None

    def _load_all(self) -> Dict[str, str]:
        with self._lock:
            if self._cache is not None:
                return dict(self._cache)
        data: Dict[str, str] = {}
        if self.path.exists():
            try:
                raw = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
            except (OSError, yaml.YAMLError) as exc:
                logger.warning("cannot read secrets file %s: %s", self.path, exc)
                raw = {}
            if isinstance(raw, dict):
                data = {str(k): str(v) for k, v in raw.items() if v}
        with self._lock:
            self._cache = dict(data)
        return data

    def _save_all(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if data:
            # Owner-only from creation; an older file is tightened before rewriting.
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                if hasattr(os, "fchmod"):
                    os.fchmod(fd, 0o600)
                handle.write(yaml.safe_dump(data, allow_unicode=True))
        elif self.path.exists():
            self.path.unlink()
        with self._lock:
            self._cache = dict(data)

    def preload(self, keys: Iterable[str] = ()) -> None:
        data = self._load_all()
        logger.debug("secrets preloaded (%d stored, %d requested)", len(data), len(list(keys)))

    def clear_cache(self) -> None:
        with self._lock:
            self._cache = None

    def get(self, key: str) -> Optional[str]:
        if self.use_env:
            env_value = os.environ.get(env_var_for(key))
            if env_value:
                return env_value
        return self._load_all().get(key) or None

    def set(self, key: str, secret: str) -> None:
        data = self._load_all()
        value = (secret or "").strip()
        if value:
            data[key] = value
        else:
            data.pop(key, None)
        self._save_all(data)

    def delete(self, key: str) -> None:
        data = self._load_all()
        if key in data:
            data.pop(key)
            self._save_all(data)


class MemorySecretStore:
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key) or None

    def set(self, key: str, secret: str) -> None:
        self._data[key] = secret

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def clear_cache(self) -> None:
        self._data.clear()


__all__ = ["YamlSecretStore", "MemorySecretStore", "LINEAR_TOKEN_KEY", "PYLON_TOKEN_KEY", "env_var_for"]
