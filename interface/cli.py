"""Process entry point.

    notanote --mcp [--graph-path PATH]   headless MCP server on stdio
    notanote [--graph-path PATH]         background daemon: tracker sync,
                                         git mirroring and file watching
    notanote --sync-once                 one tracker sync, then exit
    notanote --set-token linear|pylon    store an API token
"""

from __future__ import annotations

import argparse
import getpass
import json
import logging
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import config
from application.api_sync_service import ApiSyncService
from application.notification_service import NotificationService
from application.todo_store import TodoStore
from infrastructure.digest_file_manager import DigestFileManager
from infrastructure.file_watcher import FileWatcher
from infrastructure.git_sync_service import GitSyncService
from infrastructure.secret_store import LINEAR_TOKEN_KEY, PYLON_TOKEN_KEY, YamlSecretStore
from infrastructure.seen_ids_store import JsonSeenIdStore
from interface.mcp_server import run_stdio
from util.logging_setup import setup_logging

logger = logging.getLogger("notanote.cli")

TOKEN_KEYS = {"linear": LINEAR_TOKEN_KEY, "pylon": PYLON_TOKEN_KEY}


def ensure_graph(graph_path: Path) -> Path:
    """Create `journals/` and `pages/` under the graph root when missing."""
    root = Path(graph_path).expanduser()
    for name in ("journals", "pages"):
        (root / name).mkdir(parents=True, exist_ok=True)
    return root


@dataclass
class Services:
    graph_path: Path
    settings: config.Settings
    secrets: YamlSecretStore
    store: TodoStore
    digest: DigestFileManager
    notifications: NotificationService
    api_sync: ApiSyncService
    git_sync: GitSyncService


def build_services(graph_path: Path) -> Services:
    settings = config.Settings()
    secrets = YamlSecretStore()
    digest = DigestFileManager(graph_path)
    notifications = NotificationService(
        JsonSeenIdStore(), native_enabled=lambda: settings.enabled("notifications.native")
    )
    return Services(
        graph_path=graph_path,
        settings=settings,
        secrets=secrets,
        store=TodoStore(graph_path),
        digest=digest,
        notifications=notifications,
        api_sync=ApiSyncService(digest, secrets, settings, notifications),
        git_sync=GitSyncService(graph_path, settings),
    )


def run_daemon(services: Services, stop: Optional[threading.Event] = None) -> int:
    stop = stop or threading.Event()
    services.store.reload()
    logger.info("loaded %d task(s) from %s", len(services.store.items), services.graph_path)

    watcher = FileWatcher(
        [services.graph_path / "journals", services.graph_path / "pages"],
        on_change=services.store.reload,
        poll_interval=float(config.get_float("refresh_interval_seconds")),
    )
    services.git_sync.detect()
    services.api_sync.start_periodic_sync()
    services.git_sync.start_periodic_sync()
    watcher.start()
    try:
        while not stop.wait(1.0):
            pass
    except KeyboardInterrupt:
        logger.info("interrupted, shutting down")
    finally:
        watcher.stop()
        services.api_sync.stop_periodic_sync(timeout=5)
        services.git_sync.stop_periodic_sync(timeout=5)
    return 0


def _set_token(secrets: YamlSecretStore, service: str) -> int:
    token = sys.stdin.readline().strip() if not sys.stdin.isatty() else getpass.getpass(f"{service} API token: ").strip()
    key = TOKEN_KEYS[service]
    if not token:
        secrets.delete(key)
        print(f"{service} token removed", file=sys.stderr)
        return 0
    secrets.set(key, token)
    print(f"{service} token saved", file=sys.stderr)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="notanote", description="Markdown task graph with tracker and git sync.")
    parser.add_argument("--mcp", action="store_true", help="Run the MCP server on stdin/stdout.")
    parser.add_argument("--graph-path", type=str, help="Graph directory (overrides config and NOTANOTE_GRAPH_PATH).")
    parser.add_argument("--sync-once", action="store_true", help="Run one Linear/Pylon sync and print its status.")
    parser.add_argument("--set-token", choices=sorted(TOKEN_KEYS), help="Store an API token read from stdin.")
    parser.add_argument("--log-level", type=str, default=None, help="Console log level (default INFO).")
    parser.add_argument("--log-file", type=str, default=None, help="Also write DEBUG logs to this file.")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(console_level=args.log_level, log_file=args.log_file)

    graph_path = Path(args.graph_path).expanduser() if args.graph_path else config.get_graph_path()
    graph_path = ensure_graph(graph_path)

    if args.mcp:
        return run_stdio(graph_path)

    services = build_services(graph_path)
    if args.set_token:
        return _set_token(services.secrets, args.set_token)
    if args.sync_once:
        services.api_sync.sync_all()
        print(json.dumps(services.api_sync.status_snapshot(), ensure_ascii=False, indent=2))
        return 1 if services.api_sync.last_error else 0
    return run_daemon(services)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
