from enum import Enum
from typing import Final, List, Tuple


class TaskMarker(Enum):
    """Status keyword of a task line (`- TODO ...`)."""

    TODO = "TODO"
    DOING = "DOING"
    DONE = "DONE"
    NOW = "NOW"
    LATER = "LATER"
    WAITING = "WAITING"
    CANCELLED = "CANCELLED"

    @classmethod
    def from_string(cls, value: str) -> "TaskMarker":
        token = (value or "").strip().upper()
        for marker in cls:
            if marker.value == token:
                return marker
        raise ValueError(f"Invalid task marker: {value!r}")

    @property
    def is_active(self) -> bool:
        return self in _ACTIVE

    @property
    def is_completed(self) -> bool:
        return self in (TaskMarker.DONE, TaskMarker.CANCELLED)

    @property
    def next_status(self) -> "TaskMarker":
        """Marker a toggle moves to."""
        return _TOGGLE[self]

    @property
    def display_rank(self) -> int:
        try:
            return DISPLAY_ORDER.index(self)
        except ValueError:
            return len(DISPLAY_ORDER)

    @classmethod
    def active_markers(cls) -> List["TaskMarker"]:
        return [m for m in cls if m.is_active]

    @classmethod
    def names(cls) -> List[str]:
        return [m.value for m in cls]


_ACTIVE: Final[frozenset] = frozenset(
    {TaskMarker.TODO, TaskMarker.DOING, TaskMarker.NOW, TaskMarker.LATER, TaskMarker.WAITING}
)

_TOGGLE = {
    TaskMarker.TODO: TaskMarker.DONE,
    TaskMarker.DOING: TaskMarker.DONE,
    TaskMarker.NOW: TaskMarker.DONE,
    TaskMarker.LATER: TaskMarker.NOW,
    TaskMarker.WAITING: TaskMarker.TODO,
    TaskMarker.DONE: TaskMarker.TODO,
    TaskMarker.CANCELLED: TaskMarker.TODO,
}

DISPLAY_ORDER: Tuple[TaskMarker, ...] = (
    TaskMarker.DOING,
    TaskMarker.NOW,
    TaskMarker.TODO,
    TaskMarker.LATER,
    TaskMarker.WAITING,
    TaskMarker.DONE,
    TaskMarker.CANCELLED,
)
