"""Polling watcher for the graph directories.

Change detection compares an mtime signature of every markdown file;
a callback fires once per poll that observes a change.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional

from application.ports import FileSystem
from infrastructure.file_system import LOCAL_FS

logger = logging.getLogger("notanote.watcher")

DEFAULT_POLL_INTERVAL = 120.0


class FileWatcher:
    def __init__(
        self,
        paths: Iterable[Path],
        on_change: Callable[[], None],
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        fs: FileSystem = LOCAL_FS,
    ):
        self.paths = [Path(p) for p in paths]
        self.on_change = on_change
        self.poll_interval = poll_interval
        self.fs = fs
        self._signature: Dict[str, float] = {}
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def compute_signature(self) -> Dict[str, float]:
        sig: Dict[str, float] = {}
        for root in self.paths:
            for path in self.fs.list_dir(root):
                if path.suffix != ".md":
                    continue
                try:
                    sig[str(path)] = self.fs.mtime(path)
                except OSError:
                    continue
        return sig

    def poll(self) -> bool:
        """Check once; returns True (and fires the callback) on change."""
        current = self.compute_signature()
        if current == self._signature:
            return False
        self._signature = current
        try:
            self.on_change()
        except Exception as exc:  # callback belongs to the caller
            logger.error("watch callback failed: %s", exc)
        return True

    def update_poll_interval(self, seconds: float) -> None:
        if seconds > 0:
            self.poll_interval = seconds

    def _run(self, stop: threading.Event) -> None:
        while not stop.wait(self.poll_interval):
            self.poll()

    def start(self) -> None:
        if self._thread is not None:
            return
        self._signature = self.compute_signature()
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, args=(self._stop,), name="file-watcher", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)


__all__ = ["FileWatcher", "DEFAULT_POLL_INTERVAL"]
