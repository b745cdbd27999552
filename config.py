from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict

import yaml

USER_CONFIG_PATH = Path.home() / ".notanote_config.yaml"

DEFAULTS: Dict[str, Any] = {
    "graph_path": str(Path.home() / ".logseq-todos"),
    "refresh_interval_seconds": 120,
    "linear.enabled": False,
    "pylon.enabled": False,
    "api.sync_interval_minutes": 15.0,
    "notifications.enabled": True,
    "notifications.native": True,
    "git.enabled": False,
    "git.sync_interval_minutes": 5.0,
    "git.commit_template": "Auto-sync: {date}",
}


def config_path() -> Path:
    override = os.environ.get("NOTANOTE_CONFIG")
    return Path(override).expanduser() if override else USER_CONFIG_PATH


def _load_config() -> Dict[str, Any]:
    path = config_path()
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError):
        return {}
    return data if isinstance(data, dict) else {}


def _save_config(data: Dict[str, Any]) -> None:
    path = config_path()
    if not data:
        if path.exists():
            path.unlink()
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data, allow_unicode=True, sort_keys=True), encoding="utf-8")


def _lookup(data: Dict[str, Any], key: str) -> Any:
    node: Any = data
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


def get_setting(key: str) -> Any:
    """Read one dotted setting from disk; falls back to DEFAULTS."""
    value = _lookup(_load_config(), key)
    return DEFAULTS.get(key) if value is None else value


def set_setting(key: str, value: Any) -> None:
    data = _load_config()
    parts = key.split(".")
    node = data
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    if value is None:
        node.pop(parts[-1], None)
    else:
        node[parts[-1]] = value
    _save_config(data)


def get_bool(key: str) -> bool:
    value = get_setting(key)
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def get_float(key: str) -> float:
    value = get_setting(key)
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = float(DEFAULTS[key])
    return number if number > 0 else float(DEFAULTS[key])


def get_graph_path() -> Path:
    env = os.environ.get("NOTANOTE_GRAPH_PATH")
    raw = env or get_setting("graph_path") or DEFAULTS["graph_path"]
    return Path(str(raw)).expanduser()


class Settings:
    """Live view over the config file; every attribute read hits disk."""

    def enabled(self, key: str) -> bool:
        return get_bool(key)

    def interval_seconds(self, key: str) -> float:
        return get_float(key) * 60

    def text(self, key: str) -> str:
        value = get_setting(key)
        return "" if value is None else str(value)
