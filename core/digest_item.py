from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class DigestItem:
    """Source-agnostic item destined for a digest page line."""

    text: str
    source_id: Optional[str] = None
    url: Optional[str] = None
    identifier: Optional[str] = None
    priority: Optional[str] = None  # "A" | "B" | "C" | None
    status: Optional[str] = None  # marker keyword, TODO when absent
