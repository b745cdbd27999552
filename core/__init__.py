from .marker import DISPLAY_ORDER, TaskMarker
from .priority import PRIORITY_LETTERS, TaskPriority
from .source import DIGEST_SOURCES, TodoSource
from .filter_mode import FilterMode
from .todo_item import TodoItem
from .digest_item import DigestItem

__all__ = [
    "TaskMarker",
    "DISPLAY_ORDER",
    "TaskPriority",
    "PRIORITY_LETTERS",
    "TodoSource",
    "DIGEST_SOURCES",
    "FilterMode",
    "TodoItem",
    "DigestItem",
]
