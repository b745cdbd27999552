from enum import Enum
from functools import total_ordering
from typing import Optional


@total_ordering
class TaskPriority(Enum):
    """Inline `[#A]`/`[#B]`/`[#C]` annotation. HIGH sorts first, NONE last."""

    HIGH = "A"
    MEDIUM = "B"
    LOW = "C"
    NONE = ""

    @property
    def rank(self) -> int:
        return _ORDER.index(self)

    @property
    def display_name(self) -> str:
        return self.name.capitalize()

    @property
    def annotation(self) -> str:
        return f"[#{self.value}]" if self.value else ""

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, TaskPriority):
            return NotImplemented
        return self.rank < other.rank

    @classmethod
    def from_letter(cls, value: Optional[str]) -> "TaskPriority":
        token = (value or "").strip().upper()
        for priority in cls:
            if priority.value and priority.value == token:
                return priority
        return cls.NONE


_ORDER = (TaskPriority.HIGH, TaskPriority.MEDIUM, TaskPriority.LOW, TaskPriority.NONE)

PRIORITY_LETTERS = ("A", "B", "C")
