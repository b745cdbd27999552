from enum import Enum
from typing import Iterable, Optional


class TodoSource(Enum):
    MANUAL = "manual"
    LINEAR = "linear"
    PYLON = "pylon"

    @property
    def display_name(self) -> str:
        return {"manual": "My Todos", "linear": "Linear", "pylon": "Pylon"}[self.value]

    @classmethod
    def detect(cls, tags: Iterable[str]) -> "TodoSource":
        """Origin from tags; `#linear` wins over `#pylon`."""
        lowered = {t.lower() for t in tags}
        if "linear" in lowered:
            return cls.LINEAR
        if "pylon" in lowered:
            return cls.PYLON
        return cls.MANUAL

    @classmethod
    def from_string(cls, value: Optional[str]) -> Optional["TodoSource"]:
        token = (value or "").strip().lower()
        for source in cls:
            if source.value == token:
                return source
        return None


# Sources that own a digest page.
DIGEST_SOURCES = ("linear", "pylon")
