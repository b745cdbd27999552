from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import List, Optional

from .marker import TaskMarker
from .priority import TaskPriority
from .source import TodoSource


@dataclass
class TodoItem:
    """One task line parsed from a markdown file.

    Identity is `file_path:line_number`; a re-parse replaces every record.
    """

    id: str
    marker: TaskMarker
    content: str
    raw_line: str
    file_path: str
    line_number: int  # 0-based
    priority: TaskPriority = TaskPriority.NONE
    scheduled_date: Optional[date] = None
    deadline: Optional[date] = None
    tags: List[str] = field(default_factory=list)
    page_refs: List[str] = field(default_factory=list)
    journal_date: Optional[date] = None
    indent_level: int = 0
    source: TodoSource = TodoSource.MANUAL
    source_url: Optional[str] = None

    def is_overdue(self, today: Optional[date] = None) -> bool:
        if self.deadline is None:
            return False
        return self.deadline < (today or date.today()) and self.marker.is_active

    def is_scheduled_today(self, today: Optional[date] = None) -> bool:
        return self.scheduled_date is not None and self.scheduled_date == (today or date.today())

    @property
    def page_name(self) -> str:
        if self.journal_date is not None:
            return self.journal_date.isoformat()
        return Path(self.file_path).stem.replace("_", " ")

    @property
    def file_name(self) -> str:
        return Path(self.file_path).name
