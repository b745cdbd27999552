"""Graph-wide task listing and the few mutations that are not line edits."""

from __future__ import annotations

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple

from application.ports import FileSystem
from core import FilterMode, TaskMarker, TaskPriority, TodoItem, TodoSource
from infrastructure.file_system import LOCAL_FS
from infrastructure.task_line_parser import ParseError, TaskLineParser, journal_filename

logger = logging.getLogger("notanote.store")

JOURNALS_DIRNAME = "journals"
GRAPH_DIRS = (JOURNALS_DIRNAME, "pages")
DEFAULT_LIMIT = 50


def sort_key(item: TodoItem) -> Tuple[int, int, int]:
    """Active first, then priority (A..none), then newest journal date."""
    day = item.journal_date.toordinal() if item.journal_date else 0
    return (0 if item.marker.is_active else 1, item.priority.rank, -day)


def sort_items(items: Iterable[TodoItem]) -> List[TodoItem]:
    return sorted(items, key=sort_key)


def filter_items(items: Iterable[TodoItem], mode: FilterMode, today: Optional[date] = None) -> List[TodoItem]:
    today = today or date.today()
    if mode is FilterMode.ACTIVE:
        return [i for i in items if i.marker.is_active]
    if mode is FilterMode.DONE:
        return [i for i in items if i.marker.is_completed]
    if mode is FilterMode.OVERDUE:
        return [i for i in items if i.is_overdue(today)]
    if mode is FilterMode.TODAY:
        return [i for i in items if i.journal_date == today or i.is_scheduled_today(today)]
    return list(items)


def search_items(items: Iterable[TodoItem], query: str) -> List[TodoItem]:
    q = query.lower()
    return [
        i
        for i in items
        if q in i.content.lower()
        or any(q in t.lower() for t in i.tags)
        or any(q in p.lower() for p in i.page_refs)
    ]


def format_todo_item(item: TodoItem, today: Optional[date] = None) -> str:
    parts = [f"[{item.marker.value}] {item.content}"]
    if item.priority is not TaskPriority.NONE:
        parts.append(f"  Priority: {item.priority.value}")
    if item.tags:
        parts.append("  Tags: " + " ".join(f"#{t}" for t in item.tags))
    if item.page_refs:
        parts.append("  Pages: " + " ".join(f"[[{p}]]" for p in item.page_refs))
    if item.scheduled_date:
        parts.append(f"  Scheduled: {item.scheduled_date.isoformat()}")
    if item.deadline:
        overdue = " OVERDUE" if item.is_overdue(today) else ""
        parts.append(f"  Deadline: {item.deadline.isoformat()}{overdue}")
    parts.append(f"  Origin: {item.source.display_name}")
    parts.append(f"  Source: {item.file_name}:{item.line_number}")
    parts.append(f"  File: {item.file_path}")
    if item.journal_date:
        parts.append(f"  Journal: {item.journal_date.isoformat()}")
    return "\n".join(parts)


class TodoStore:
    def __init__(self, graph_path: Path, fs: FileSystem = LOCAL_FS, today: Callable[[], date] = date.today):
        self.graph_path = Path(graph_path)
        self.fs = fs
        self._today = today
        self.items: List[TodoItem] = []
        self.last_updated: Optional[datetime] = None

    def today(self) -> date:
        return self._today()

    @property
    def journals_dir(self) -> Path:
        return self.graph_path / JOURNALS_DIRNAME

    def markdown_files(self) -> List[Path]:
        files: List[Path] = []
        for name in GRAPH_DIRS:
            files.extend(p for p in self.fs.list_dir(self.graph_path / name) if p.suffix == ".md")
        return files

    def load_items(self) -> List[TodoItem]:
        items: List[TodoItem] = []
        for path in self.markdown_files():
            try:
                items.extend(TaskLineParser.parse_file(path, self.fs))
            except ParseError as exc:
                logger.warning("skipping %s: %s", path, exc)
        return sort_items(items)

    def reload(self) -> List[TodoItem]:
        self.items = self.load_items()
        self.last_updated = datetime.now()
        logger.debug("loaded %d task(s) from %s", len(self.items), self.graph_path)
        return self.items

    def query(
        self,
        mode: FilterMode = FilterMode.ACTIVE,
        search: Optional[str] = None,
        tag: Optional[str] = None,
        source: Optional[TodoSource] = None,
        limit: int = DEFAULT_LIMIT,
    ) -> List[TodoItem]:
        items = filter_items(self.reload(), mode, self.today())
        if search:
            items = search_items(items, search)
        if tag:
            wanted = tag.lstrip("#").lower()
            items = [i for i in items if any(t.lower() == wanted for t in i.tags)]
        if source is not None:
            items = [i for i in items if i.source is source]
        return items[:limit]

    # ------------------------------------------------------------ writes

    def set_marker(self, item: TodoItem, marker: TaskMarker) -> str:
        line = TaskLineParser.update_task_marker(
            Path(item.file_path), item.line_number, marker, expected_line=item.raw_line, fs=self.fs
        )
        self.reload()
        return line

    def toggle(self, item: TodoItem) -> TaskMarker:
        marker = item.marker.next_status
        self.set_marker(item, marker)
        return marker

    def add_to_journal(self, text: str, priority: TaskPriority = TaskPriority.NONE) -> Tuple[Path, str]:
        """Prepend `- TODO [#P] text` to today's journal page."""
        path = self.journals_dir / journal_filename(self.today())
        line = "- TODO "
        if priority is not TaskPriority.NONE:
            line += f"{priority.annotation} "
        line += text.strip()

        self.fs.make_dirs(self.journals_dir)
        content = self.fs.read_text(path) if self.fs.exists(path) else ""
        if content.strip():
            content = line + "\n" + content
        else:
            content = line + "\n"
        self.fs.write_text_atomic(path, content)
        logger.info("added task to %s", path.name)
        return path, line


__all__ = [
    "TodoStore",
    "sort_items",
    "sort_key",
    "filter_items",
    "search_items",
    "format_todo_item",
    "DEFAULT_LIMIT",
]
