"""Per-source digest pages (`pages/<source>-digest.md`).

Digest pages are projections of an external tracker. Periodic syncs replace
a page wholesale; single inserts append and deduplicate by tracking id so
lines added by other writers survive.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable, List, Sequence, Set, Tuple

from application.ports import FileSystem
from core import PRIORITY_LETTERS, DigestItem
from infrastructure.file_system import LOCAL_FS

logger = logging.getLogger("notanote.digest")

PAGES_DIRNAME = "pages"
NOTIFICATIONS_FILENAME = "notifications.md"
_LINE_BREAKS = re.compile(r"[\r\n]+")


def dedupe_items(items: Iterable[DigestItem]) -> Tuple[List[DigestItem], int]:
    """Keep the first item per tracking id. Returns (kept, dropped_count)."""
    kept: List[DigestItem] = []
    seen: Set[str] = set()
    dropped = 0
    for item in items:
        sid = item.source_id or ""
        if sid:
            if sid in seen:
                dropped += 1
                continue
            seen.add(sid)
        kept.append(item)
    return kept, dropped


class DigestFileManager:
    def __init__(self, graph_path: Path, fs: FileSystem = LOCAL_FS):
        self.graph_path = Path(graph_path)
        self.fs = fs

    @property
    def pages_dir(self) -> Path:
        return self.graph_path / PAGES_DIRNAME

    def digest_file_path(self, source: str) -> Path:
        return self.pages_dir / f"{source}-digest.md"

    def notifications_file_path(self) -> Path:
        return self.pages_dir / NOTIFICATIONS_FILENAME

    @staticmethod
    def _source_id_pattern(source: str) -> "re.Pattern[str]":
        return re.compile(r"(?:(?<=\s)|^)" + re.escape(source) + r":([\w-]+)", re.MULTILINE)

    def existing_source_ids(self, path: Path, source: str) -> Set[str]:
        path = Path(path)
        if not self.fs.exists(path):
            return set()
        try:
            content = self.fs.read_text(path)
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("cannot read digest %s: %s", path, exc)
            return set()
        return set(self._source_id_pattern(source).findall(content))

    @staticmethod
    def build_source_line(item: DigestItem, source: str) -> str:
        marker = item.status or "TODO"
        line = f"- {marker} "
        if item.priority in PRIORITY_LETTERS:
            line += f"[#{item.priority}] "
        text = _LINE_BREAKS.sub(" ", item.text)
        if item.url and item.identifier:
            line += f"[{item.identifier} {text}]({item.url})"
        elif item.url:
            line += f"[{text}]({item.url})"
        else:
            line += text
        line += f" #{source}"
        if item.source_id:
            line += f" {source}:{item.source_id}"
        return line

    def append_item(self, source: str, item: DigestItem) -> Tuple[str, bool]:
        """Append one item unless its tracking id is already on the page.

        Returns (line, added).
        """
        line = self.build_source_line(item, source)
        path = self.digest_file_path(source)
        if item.source_id and item.source_id in self.existing_source_ids(path, source):
            logger.info("%s item %s already in %s", source, item.source_id, path.name)
            return line, False

        self.fs.make_dirs(self.pages_dir)
        content = ""
        if self.fs.exists(path):
            content = self.fs.read_text(path)
        if not content.strip():
            content = line + "\n"
        else:
            if not content.endswith("\n"):
                content += "\n"
            content += line + "\n"
        self.fs.write_text_atomic(path, content)
        logger.info("appended %s item to %s", source, path.name)
        return line, True

    def _replace(self, path: Path, lines: Sequence[str]) -> None:
        self.fs.make_dirs(path.parent)
        content = "\n".join(lines) + ("\n" if lines else "")
        self.fs.write_text_atomic(path, content)

    def sync_items(self, source: str, lines: Sequence[str]) -> Path:
        """Replace the whole digest page for `source` with `lines`."""
        path = self.digest_file_path(source)
        self._replace(path, list(lines))
        logger.info("wrote %d line(s) to %s", len(lines), path.name)
        return path

    def write_digest(self, source: str, items: Sequence[DigestItem]) -> None:
        self.sync_items(source, [self.build_source_line(item, source) for item in items])

    def write_notifications(self, items: Sequence[DigestItem]) -> None:
        # Only the Linear inbox is mirrored to the notifications page.
        lines = [self.build_source_line(item, "linear") for item in items]
        path = self.notifications_file_path()
        self._replace(path, lines)
        logger.info("wrote %d notification(s) to %s", len(lines), path.name)


__all__ = ["DigestFileManager", "dedupe_items", "PAGES_DIRNAME", "NOTIFICATIONS_FILENAME"]
