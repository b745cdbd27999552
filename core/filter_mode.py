from enum import Enum


class FilterMode(Enum):
    ALL = "all"
    ACTIVE = "active"
    TODAY = "today"
    OVERDUE = "overdue"
    DONE = "done"

    @classmethod
    def from_string(cls, value: str) -> "FilterMode":
        token = (value or "").strip().lower()
        for mode in cls:
            if mode.value == token:
                return mode
        raise ValueError(f"Invalid filter: {value!r}")
