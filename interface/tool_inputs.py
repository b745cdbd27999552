"""Typed arguments for the automation tools.

Each `from_arguments` checks presence and type of every field and raises
`ToolInputError` with a message meant for the calling client.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from core import DIGEST_SOURCES, DigestItem, FilterMode, TaskMarker, TaskPriority, TodoSource

MAX_STRING_LENGTH = 4000
MAX_SYNC_ITEMS = 1000
DEFAULT_LIMIT = 50
SOURCE_ID_PATTERN = re.compile(r"[\w-]+")


class ToolInputError(ValueError):
    """Invalid tool arguments."""


def validate_string(value: Any, field_name: str, *, required: bool = False, message: Optional[str] = None) -> Optional[str]:
    if value is None or (required and isinstance(value, str) and not value.strip()):
        if required:
            raise ToolInputError(message or f"'{field_name}' is required")
        return None
    if not isinstance(value, str):
        raise ToolInputError(message or f"'{field_name}' must be a string")
    if len(value) > MAX_STRING_LENGTH:
        raise ToolInputError(f"'{field_name}' is too long (max {MAX_STRING_LENGTH})")
    return value


def _optional_text(value: Any, field_name: str) -> Optional[str]:
    text = validate_string(value, field_name)
    return text if text else None


def validate_task_text(value: Any) -> str:
    """Required task text; one markdown line only."""
    text = validate_string(value, "text", required=True, message="'text' parameter is required")
    if "\n" in text or "\r" in text:
        raise ToolInputError("'text' must be a single line")
    return text.strip()


def _parse_source_id(value: Any) -> Optional[str]:
    source_id = _optional_text(value, "source_id")
    if source_id is not None and not SOURCE_ID_PATTERN.fullmatch(source_id):
        raise ToolInputError("'source_id' may only contain letters, digits, '_' and '-'")
    return source_id


def validate_line_number(value: Any, field_name: str = "line_number") -> int:
    # JSON numbers may arrive as 3.0; bools are ints in Python and are rejected.
    if value is None:
        raise ToolInputError(f"'{field_name}' is required")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ToolInputError(f"'{field_name}' must be an integer")
    if isinstance(value, float) and not value.is_integer():
        raise ToolInputError(f"'{field_name}' must be an integer")
    return int(value)


def _parse_limit(value: Any) -> int:
    if value is None:
        return DEFAULT_LIMIT
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ToolInputError("'limit' must be a number")
    limit = int(value)
    if limit < 0:
        raise ToolInputError("'limit' must be >= 0")
    return limit


def _parse_source(value: Any) -> str:
    message = "'source' must be 'linear' or 'pylon'"
    source = validate_string(value, "source", required=True, message=message)
    if source not in DIGEST_SOURCES:
        raise ToolInputError(message)
    return source


def _parse_marker(value: Any, field_name: str) -> TaskMarker:
    message = f"'{field_name}' must be one of: {', '.join(TaskMarker.names())}"
    raw = validate_string(value, field_name, required=True, message=message)
    try:
        return TaskMarker(raw)
    except ValueError:
        raise ToolInputError(message) from None


@dataclass(frozen=True)
class ListTodosInput:
    filter: FilterMode = FilterMode.ACTIVE
    search: Optional[str] = None
    tag: Optional[str] = None
    source: Optional[TodoSource] = None
    limit: int = DEFAULT_LIMIT

    @classmethod
    def from_arguments(cls, args: Dict[str, Any]) -> "ListTodosInput":
        raw_filter = validate_string(args.get("filter"), "filter") or FilterMode.ACTIVE.value
        try:
            mode = FilterMode.from_string(raw_filter)
        except ValueError:
            raise ToolInputError(
                "'filter' must be one of: " + ", ".join(m.value for m in FilterMode)
            ) from None
        source = None
        raw_source = _optional_text(args.get("source"), "source")
        if raw_source:
            source = TodoSource.from_string(raw_source)
            if source is None:
                raise ToolInputError("'source' must be one of: manual, linear, pylon")
        return cls(
            filter=mode,
            search=_optional_text(args.get("search"), "search"),
            tag=_optional_text(args.get("tag"), "tag"),
            source=source,
            limit=_parse_limit(args.get("limit")),
        )


@dataclass(frozen=True)
class AddTodoInput:
    text: str
    priority: TaskPriority = TaskPriority.NONE

    @classmethod
    def from_arguments(cls, args: Dict[str, Any]) -> "AddTodoInput":
        text = validate_task_text(args.get("text"))
        priority = TaskPriority.from_letter(validate_string(args.get("priority"), "priority"))
        return cls(text=text, priority=priority)


@dataclass(frozen=True)
class UpdateTodoInput:
    file_path: str
    line_number: int
    new_status: TaskMarker
    expected_line: Optional[str] = None

    @classmethod
    def from_arguments(cls, args: Dict[str, Any]) -> "UpdateTodoInput":
        return cls(
            file_path=validate_string(args.get("file_path"), "file_path", required=True),
            line_number=validate_line_number(args.get("line_number")),
            new_status=_parse_marker(args.get("new_status"), "new_status"),
            expected_line=validate_string(args.get("expected_line"), "expected_line"),
        )


@dataclass(frozen=True)
class RemoveTodoInput:
    file_path: str
    line_number: int
    expected_line: Optional[str] = None

    @classmethod
    def from_arguments(cls, args: Dict[str, Any]) -> "RemoveTodoInput":
        return cls(
            file_path=validate_string(args.get("file_path"), "file_path", required=True),
            line_number=validate_line_number(args.get("line_number")),
            expected_line=validate_string(args.get("expected_line"), "expected_line"),
        )


def _digest_item(args: Dict[str, Any], *, with_status: bool) -> DigestItem:
    priority = TaskPriority.from_letter(validate_string(args.get("priority"), "priority"))
    status = None
    if with_status and args.get("status") is not None:
        status = _parse_marker(args.get("status"), "status").value
    return DigestItem(
        text=validate_task_text(args.get("text")),
        source_id=_parse_source_id(args.get("source_id")),
        url=_optional_text(args.get("url"), "url"),
        identifier=_optional_text(args.get("identifier"), "identifier"),
        priority=priority.value or None,
        status=status,
    )


@dataclass(frozen=True)
class AddSourceTodoInput:
    source: str
    item: DigestItem

    @classmethod
    def from_arguments(cls, args: Dict[str, Any]) -> "AddSourceTodoInput":
        source = _parse_source(args.get("source"))
        return cls(source=source, item=_digest_item(args, with_status=False))


@dataclass(frozen=True)
class SyncSourceInput:
    source: str
    items: Tuple[DigestItem, ...]

    @classmethod
    def from_arguments(cls, args: Dict[str, Any]) -> "SyncSourceInput":
        source = _parse_source(args.get("source"))
        raw = args.get("items")
        if not isinstance(raw, list) or not all(isinstance(entry, dict) for entry in raw):
            raise ToolInputError("'items' must be an array of objects")
        if len(raw) > MAX_SYNC_ITEMS:
            raise ToolInputError(f"'items' is too long (max {MAX_SYNC_ITEMS})")
        items: List[DigestItem] = []
        for entry in raw:
            text = entry.get("text")
            # Entries without text carry nothing to write.
            if not isinstance(text, str) or not text.strip():
                continue
            items.append(_digest_item(entry, with_status=True))
        return cls(source=source, items=tuple(items))


__all__ = [
    "ToolInputError",
    "ListTodosInput",
    "AddTodoInput",
    "UpdateTodoInput",
    "RemoveTodoInput",
    "AddSourceTodoInput",
    "SyncSourceInput",
    "validate_string",
    "validate_task_text",
    "validate_line_number",
]
