import logging
import re
from datetime import date, datetime
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from application.ports import FileSystem
from core import TaskMarker, TaskPriority, TodoItem, TodoSource
from infrastructure.file_system import LOCAL_FS

logger = logging.getLogger("notanote.parser")

JOURNAL_DATE_FORMAT = "%Y_%m_%d"


class ParseError(RuntimeError):
    """Base class for line-grammar read/mutate failures."""


class FileUnreadableError(ParseError):
    def __init__(self, path: str):
        super().__init__(f"Cannot read file at {path}")
        self.path = path


class LineOutOfRangeError(ParseError):
    def __init__(self, line_number: int, line_count: Optional[int] = None):
        detail = f" (file has {line_count} lines)" if line_count is not None else ""
        super().__init__(f"Line {line_number} is out of range{detail}")
        self.line_number = line_number
        self.line_count = line_count


class MarkerNotFoundError(ParseError):
    def __init__(self, line_number: int):
        super().__init__(f"No task marker found on line {line_number}")
        self.line_number = line_number


class LineMismatchError(ParseError):
    def __init__(self, line_number: int, expected: str):
        super().__init__(f"Line {line_number} no longer matches {expected!r} and it was not found elsewhere in the file")
        self.line_number = line_number
        self.expected = expected


def parse_journal_date(filename: str) -> Optional[date]:
    """`2026_02_23.md` -> date(2026, 2, 23); anything else -> None."""
    stem = Path(filename).stem
    try:
        return datetime.strptime(stem, JOURNAL_DATE_FORMAT).date()
    except ValueError:
        return None


def journal_filename(day: date) -> str:
    return f"{day.strftime(JOURNAL_DATE_FORMAT)}.md"


class TaskLineParser:
    """Parser and single-line mutator for the task line grammar.

    `<indent>- <MARKER> [#<A|B|C>] <text with SCHEDULED:/DEADLINE:/#tags/[[refs]]/links>`
    """

    TASK_PATTERN = re.compile(r"^(\t*)-\s+(" + "|".join(TaskMarker.names()) + r")\b")
    PRIORITY_PATTERN = re.compile(r"\[#([A-C])\]")
    SCHEDULED_PATTERN = re.compile(r"SCHEDULED:\s*<(\d{4}-\d{2}-\d{2})[^>]*>")
    DEADLINE_PATTERN = re.compile(r"DEADLINE:\s*<(\d{4}-\d{2}-\d{2})[^>]*>")
    SCHEDULED_BLOCK = re.compile(r"SCHEDULED:\s*<[^>]*>")
    DEADLINE_BLOCK = re.compile(r"DEADLINE:\s*<[^>]*>")
    TAG_PATTERN = re.compile(r"(?:(?<=\s)|^)#([\w-]+)")
    PAGE_REF_PATTERN = re.compile(r"\[\[([^\]]+)\]\]")
    # `.+?` keeps nested brackets such as `[EXT]` inside link labels.
    MARKDOWN_LINK_PATTERN = re.compile(r"\[(.+?)\]\(([^)]+)\)")
    SOURCE_ID_PATTERN = re.compile(r"(?:(?<=\s)|^)(?:linear|pylon):[\w-]+")
    ISSUE_IDENTIFIER_PATTERN = re.compile(r"\b[A-Z]+-\d+\b")
    PYLON_NUMBER_PATTERN = re.compile(r"(?<=\s)#(\d+)\b")
    SOURCE_TAG_PATTERN = re.compile(r"\s*#(?:linear|pylon)\b", re.IGNORECASE)

    PYLON_ISSUE_URL = "https://app.usepylon.com/issues?issueNumber={number}"
    SOURCE_HOSTS = {TodoSource.LINEAR: "linear.app", TodoSource.PYLON: "usepylon.com"}

    # ------------------------------------------------------------------ parse

    @classmethod
    def parse_file(cls, path: Path, fs: FileSystem = LOCAL_FS) -> List[TodoItem]:
        path = Path(path)
        try:
            content = fs.read_text(path)
        except (OSError, UnicodeDecodeError) as exc:
            raise FileUnreadableError(str(path)) from exc
        return cls.parse_text(content, str(path))

    @classmethod
    def parse_text(cls, content: str, file_path: str) -> List[TodoItem]:
        lines = content.split("\n")
        journal_date = parse_journal_date(Path(file_path).name)
        items: List[TodoItem] = []
        for index, line in enumerate(lines):
            item = cls.parse_line(line, index, file_path, journal_date=journal_date, all_lines=lines)
            if item is not None:
                items.append(item)
        return items

    @classmethod
    def parse_line(
        cls,
        line: str,
        line_number: int,
        file_path: str,
        journal_date: Optional[date] = None,
        all_lines: Optional[Sequence[str]] = None,
    ) -> Optional[TodoItem]:
        match = cls.TASK_PATTERN.match(line)
        if not match:
            return None
        indent_level = len(match.group(1))
        marker = TaskMarker.from_string(match.group(2))
        rest = line[match.end():]

        priority = TaskPriority.NONE
        pri_match = cls.PRIORITY_PATTERN.search(rest)
        if pri_match:
            priority = TaskPriority.from_letter(pri_match.group(1))
            rest = rest[: pri_match.start()] + rest[pri_match.end():]

        scheduled = cls._extract_date(rest, cls.SCHEDULED_PATTERN)
        deadline = cls._extract_date(rest, cls.DEADLINE_PATTERN)
        # Child lines may carry the date annotations; a following task keeps its own.
        if all_lines is not None and line_number + 1 < len(all_lines):
            next_line = all_lines[line_number + 1]
            if cls.TASK_PATTERN.match(next_line):
                next_line = ""
            if scheduled is None:
                scheduled = cls._extract_date(next_line, cls.SCHEDULED_PATTERN)
            if deadline is None:
                deadline = cls._extract_date(next_line, cls.DEADLINE_PATTERN)

        tags = cls.extract_tags(line)
        page_refs = cls.PAGE_REF_PATTERN.findall(line)
        source = TodoSource.detect(tags)

        return TodoItem(
            id=f"{file_path}:{line_number}",
            marker=marker,
            content=cls.clean_content(rest, source),
            raw_line=line,
            file_path=file_path,
            line_number=line_number,
            priority=priority,
            scheduled_date=scheduled,
            deadline=deadline,
            tags=tags,
            page_refs=page_refs,
            journal_date=journal_date,
            indent_level=indent_level,
            source=source,
            source_url=cls.extract_source_url(line, source),
        )

    @classmethod
    def is_task_line(cls, line: str) -> bool:
        return cls.TASK_PATTERN.match(line) is not None

    @classmethod
    def extract_tags(cls, text: str) -> List[str]:
        seen: List[str] = []
        for tag in cls.TAG_PATTERN.findall(text):
            if tag not in seen:
                seen.append(tag)
        return seen

    @staticmethod
    def _extract_date(text: str, pattern: "re.Pattern[str]") -> Optional[date]:
        match = pattern.search(text)
        if not match:
            return None
        try:
            return date.fromisoformat(match.group(1))
        except ValueError:
            return None

    @classmethod
    def extract_source_url(cls, text: str, source: TodoSource) -> Optional[str]:
        host = cls.SOURCE_HOSTS.get(source)
        if host is None:
            return None
        for _label, url in cls.MARKDOWN_LINK_PATTERN.findall(text):
            if host in url:
                return url
        if source is TodoSource.PYLON:
            number = cls.PYLON_NUMBER_PATTERN.search(text)
            if number:
                return cls.PYLON_ISSUE_URL.format(number=number.group(1))
        return None

    @classmethod
    def clean_content(cls, text: str, source: TodoSource = TodoSource.MANUAL) -> str:
        result = cls.MARKDOWN_LINK_PATTERN.sub(r"\1", text)
        result = cls.SCHEDULED_BLOCK.sub("", result)
        result = cls.DEADLINE_BLOCK.sub("", result)
        result = cls.SOURCE_ID_PATTERN.sub("", result)
        if source is not TodoSource.MANUAL:
            result = cls.ISSUE_IDENTIFIER_PATTERN.sub("", result)
        result = cls.SOURCE_TAG_PATTERN.sub("", result)
        result = cls.TAG_PATTERN.sub("", result)
        result = re.sub(r" {2,}", " ", result)
        return result.strip()

    # --------------------------------------------------------------- mutate

    @staticmethod
    def _read_lines(path: Path, fs: FileSystem) -> List[str]:
        try:
            return fs.read_text(path).split("\n")
        except (OSError, UnicodeDecodeError) as exc:
            raise FileUnreadableError(str(path)) from exc

    @staticmethod
    def resolve_line_index(lines: Sequence[str], line_number: int, expected_line: Optional[str] = None) -> int:
        """Return the index to mutate.

        Without `expected_line` the index is trusted. With it, the nearest line
        equal to `expected_line` wins, so edits made between a listing and a
        mutation do not hit the wrong line.
        """
        in_range = 0 <= line_number < len(lines)
        if expected_line is None:
            if not in_range:
                raise LineOutOfRangeError(line_number, len(lines))
            return line_number
        if in_range and lines[line_number] == expected_line:
            return line_number
        candidates = [i for i, line in enumerate(lines) if line == expected_line]
        if not candidates:
            if not in_range:
                raise LineOutOfRangeError(line_number, len(lines))
            raise LineMismatchError(line_number, expected_line)
        resolved = min(candidates, key=lambda i: (abs(i - line_number), i))
        logger.info("line %s moved to %s; using current position", line_number, resolved)
        return resolved

    @classmethod
    def _rewrite_line(
        cls,
        path: Path,
        line_number: int,
        expected_line: Optional[str],
        fs: FileSystem,
        transform,
    ) -> Tuple[int, str]:
        path = Path(path)
        lines = cls._read_lines(path, fs)
        index = cls.resolve_line_index(lines, line_number, expected_line)
        match = cls.TASK_PATTERN.match(lines[index])
        if not match:
            raise MarkerNotFoundError(index)
        lines[index] = transform(lines[index], match)
        fs.write_text_atomic(path, "\n".join(lines))
        return index, lines[index]

    @classmethod
    def update_task_marker(
        cls,
        path: Path,
        line_number: int,
        marker: TaskMarker,
        expected_line: Optional[str] = None,
        fs: FileSystem = LOCAL_FS,
    ) -> str:
        def transform(line: str, match: "re.Match[str]") -> str:
            return line[: match.start(2)] + marker.value + line[match.end(2):]

        _, new_line = cls._rewrite_line(path, line_number, expected_line, fs, transform)
        return new_line

    @classmethod
    def update_task_priority(
        cls,
        path: Path,
        line_number: int,
        priority: TaskPriority,
        expected_line: Optional[str] = None,
        fs: FileSystem = LOCAL_FS,
    ) -> str:
        def transform(line: str, match: "re.Match[str]") -> str:
            prefix = line[: match.end()]
            rest = line[match.end():]
            pri_match = cls.PRIORITY_PATTERN.search(rest)
            if pri_match:
                rest = rest[: pri_match.start()] + rest[pri_match.end():]
                while "  " in rest:
                    rest = rest.replace("  ", " ")
            if priority is TaskPriority.NONE:
                return prefix + rest
            return f"{prefix} {priority.annotation}{rest}"

        _, new_line = cls._rewrite_line(path, line_number, expected_line, fs, transform)
        return new_line

    @classmethod
    def update_task_content(
        cls,
        path: Path,
        line_number: int,
        new_content: str,
        expected_line: Optional[str] = None,
        preserve_metadata: bool = True,
        fs: FileSystem = LOCAL_FS,
    ) -> str:
        """Replace the text of a task line.

        Marker and priority always survive. With `preserve_metadata`, date
        annotations, tags and the source tracking token of the old line are
        re-appended unless `new_content` already carries them.
        """
        text = new_content.strip()

        def transform(line: str, match: "re.Match[str]") -> str:
            prefix = line[: match.end()]
            rest = line[match.end():]
            pri_match = cls.PRIORITY_PATTERN.search(rest)
            priority = f" {pri_match.group(0)}" if pri_match else ""
            extras: List[str] = []
            if preserve_metadata:
                extras = cls._carried_metadata(line, rest, text)
            suffix = (" " + " ".join(extras)) if extras else ""
            return f"{prefix}{priority} {text}{suffix}"

        _, new_line = cls._rewrite_line(path, line_number, expected_line, fs, transform)
        return new_line

    @classmethod
    def _carried_metadata(cls, line: str, rest: str, new_text: str) -> List[str]:
        extras: List[str] = []
        for pattern in (cls.SCHEDULED_BLOCK, cls.DEADLINE_BLOCK):
            block = pattern.search(rest)
            if block and not pattern.search(new_text):
                extras.append(block.group(0))
        present = {t.lower() for t in cls.extract_tags(new_text)}
        for tag in cls.extract_tags(line):
            if tag.lower() not in present:
                extras.append(f"#{tag}")
        token = cls.SOURCE_ID_PATTERN.search(rest)
        if token and token.group(0) not in new_text:
            extras.append(token.group(0))
        return extras

    @classmethod
    def remove_line(
        cls,
        path: Path,
        line_number: int,
        expected_line: Optional[str] = None,
        fs: FileSystem = LOCAL_FS,
    ) -> str:
        """Delete one line (task or not) and return its text."""
        path = Path(path)
        lines = cls._read_lines(path, fs)
        index = cls.resolve_line_index(lines, line_number, expected_line)
        removed = lines.pop(index)
        fs.write_text_atomic(path, "\n".join(lines))
        return removed


__all__ = [
    "TaskLineParser",
    "ParseError",
    "FileUnreadableError",
    "LineOutOfRangeError",
    "MarkerNotFoundError",
    "LineMismatchError",
    "parse_journal_date",
    "journal_filename",
]
