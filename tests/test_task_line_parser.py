from dataclasses import asdict
from datetime import date
from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core import TaskMarker, TaskPriority, TodoSource
from infrastructure.task_line_parser import (
    FileUnreadableError,
    LineMismatchError,
    LineOutOfRangeError,
    MarkerNotFoundError,
    TaskLineParser,
    journal_filename,
    parse_journal_date,
)

SAMPLE_LINES = [
    "- TODO Buy milk",
    "- TODO [#A] Fix bug #work",
    "\t- DOING [#B] Review [[Project X]] SCHEDULED: <2026-02-20 Fri>",
    "- LATER Call mom DEADLINE: <2026-03-01 Sun> #family #home",
    "- WAITING [#C] [EXT-42 Fix crash](https://linear.app/acme/issue/EXT-42) #linear linear:9f1c-aa",
    "- DONE [#491 Printer offline](https://app.usepylon.com/issues?issueNumber=491) #pylon pylon:abc-123",
    "\t\t- CANCELLED Old idea #someday",
    "- NOW Write notes for [[2026-02-23]]",
]


def _parse_one(line, file_path="/g/pages/notes.md"):
    item = TaskLineParser.parse_line(line, 0, file_path)
    assert item is not None
    return item


def test_plain_task():
    item = _parse_one("- TODO Buy milk")
    assert item.marker is TaskMarker.TODO
    assert item.content == "Buy milk"
    assert item.priority is TaskPriority.NONE
    assert item.tags == []
    assert item.source is TodoSource.MANUAL


def test_priority_and_tags_are_removed_from_content():
    item = _parse_one("- TODO [#A] Fix bug #work")
    assert item.priority is TaskPriority.HIGH
    assert item.tags == ["work"]
    assert item.content == "Fix bug"


def test_non_task_lines_are_skipped():
    assert TaskLineParser.parse_line("- just a note", 0, "x.md") is None
    assert TaskLineParser.parse_line("TODO without bullet", 0, "x.md") is None
    assert TaskLineParser.parse_line("- TODOS plural", 0, "x.md") is None
    assert TaskLineParser.parse_line("  - TODO spaces are not tabs", 0, "x.md") is None


def test_indent_dates_and_page_refs():
    item = _parse_one("\t- DOING [#B] Review [[Project X]] SCHEDULED: <2026-02-20 Fri>")
    assert item.indent_level == 1
    assert item.scheduled_date == date(2026, 2, 20)
    assert item.page_refs == ["Project X"]
    assert item.content == "Review [[Project X]]"


def test_dates_on_the_following_line_are_picked_up():
    content = "- TODO Pay rent\n  DEADLINE: <2026-03-01 Sun>\n- TODO Other\n"
    items = TaskLineParser.parse_text(content, "/g/pages/home.md")
    assert [i.content for i in items] == ["Pay rent", "Other"]
    assert items[0].deadline == date(2026, 3, 1)
    assert items[1].deadline is None
    assert items[1].line_number == 2
    assert items[1].id == "/g/pages/home.md:2"


def test_next_task_line_dates_belong_to_that_task():
    content = "- LATER pay rent\n- WAITING call [[Plumber]] SCHEDULED: <2026-02-23 Mon>\n"
    first, second = TaskLineParser.parse_text(content, "/g/pages/home.md")
    assert first.scheduled_date is None
    assert second.scheduled_date == date(2026, 2, 23)


def test_tags_keep_case_order_and_drop_duplicates():
    item = _parse_one("- TODO a #Work b #home #Work c#inline")
    assert item.tags == ["Work", "home"]


def test_linear_line_source_url_and_content():
    item = _parse_one(SAMPLE_LINES[4])
    assert item.source is TodoSource.LINEAR
    assert item.source_url == "https://linear.app/acme/issue/EXT-42"
    assert item.content == "Fix crash"
    assert item.priority is TaskPriority.LOW


def test_pylon_line_source_url_and_content():
    item = _parse_one(SAMPLE_LINES[5])
    assert item.source is TodoSource.PYLON
    assert item.source_url == "https://app.usepylon.com/issues?issueNumber=491"
    assert item.content == "Printer offline"


def test_pylon_url_falls_back_to_bare_issue_number():
    item = _parse_one("- TODO Printer offline #491 #pylon")
    assert item.source_url == "https://app.usepylon.com/issues?issueNumber=491"


def test_manual_items_keep_identifier_like_words():
    item = _parse_one("- TODO Upgrade to ISO-9001 process")
    assert item.content == "Upgrade to ISO-9001 process"
    assert item.source_url is None


def test_journal_date_from_filename():
    assert parse_journal_date("2026_02_23.md") == date(2026, 2, 23)
    assert parse_journal_date("notes.md") is None
    assert parse_journal_date("2026_13_40.md") is None
    assert journal_filename(date(2026, 2, 3)) == "2026_02_03.md"
    items = TaskLineParser.parse_text("- TODO x", "/g/journals/2026_02_23.md")
    assert items[0].journal_date == date(2026, 2, 23)
    assert items[0].page_name == "2026-02-23"


def test_parse_file_missing_raises(tmp_path):
    with pytest.raises(FileUnreadableError):
        TaskLineParser.parse_file(tmp_path / "missing.md")


# ------------------------------------------------------------------ mutations


def _write(tmp_path, text, name="page.md"):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


def _fields_except_marker(item):
    data = asdict(item)
    data.pop("marker")
    data.pop("raw_line")
    return data


@pytest.mark.parametrize("line", SAMPLE_LINES)
@pytest.mark.parametrize("marker", list(TaskMarker))
def test_marker_update_changes_only_the_marker(tmp_path, line, marker):
    path = _write(tmp_path, f"# heading\n{line}\n- trailing note\n")
    before = TaskLineParser.parse_file(path)[0]

    TaskLineParser.update_task_marker(path, 1, marker)

    after = TaskLineParser.parse_file(path)[0]
    assert after.marker is marker
    assert _fields_except_marker(after) == _fields_except_marker(before)
    assert path.read_text(encoding="utf-8").endswith("- trailing note\n")


def test_update_marker_out_of_range_leaves_file_untouched(tmp_path):
    text = "\n".join(f"- TODO item {i}" for i in range(10))
    path = _write(tmp_path, text)
    with pytest.raises(LineOutOfRangeError) as excinfo:
        TaskLineParser.update_task_marker(path, 999, TaskMarker.DONE)
    assert "Line 999 is out of range" in str(excinfo.value)
    assert path.read_text(encoding="utf-8") == text


def test_update_marker_on_non_task_line(tmp_path):
    path = _write(tmp_path, "plain text\n- TODO x\n")
    with pytest.raises(MarkerNotFoundError):
        TaskLineParser.update_task_marker(path, 0, TaskMarker.DONE)


def test_update_marker_missing_file(tmp_path):
    with pytest.raises(FileUnreadableError):
        TaskLineParser.update_task_marker(tmp_path / "nope.md", 0, TaskMarker.DONE)


def test_expected_line_follows_moved_task(tmp_path):
    path = _write(tmp_path, "- TODO inserted above\n- TODO a\n- TODO b\n")
    TaskLineParser.update_task_marker(path, 1, TaskMarker.DONE, expected_line="- TODO b")
    assert path.read_text(encoding="utf-8") == "- TODO inserted above\n- TODO a\n- DONE b\n"


def test_expected_line_missing_everywhere_raises_and_keeps_file(tmp_path):
    text = "- TODO a\n- TODO b\n"
    path = _write(tmp_path, text)
    with pytest.raises(LineMismatchError):
        TaskLineParser.update_task_marker(path, 0, TaskMarker.DONE, expected_line="- TODO gone")
    assert path.read_text(encoding="utf-8") == text


def test_update_priority_insert_replace_and_clear(tmp_path):
    path = _write(tmp_path, "- TODO Fix bug #work\n")
    TaskLineParser.update_task_priority(path, 0, TaskPriority.HIGH)
    assert path.read_text(encoding="utf-8") == "- TODO [#A] Fix bug #work\n"
    TaskLineParser.update_task_priority(path, 0, TaskPriority.LOW)
    assert path.read_text(encoding="utf-8") == "- TODO [#C] Fix bug #work\n"
    TaskLineParser.update_task_priority(path, 0, TaskPriority.NONE)
    assert path.read_text(encoding="utf-8") == "- TODO Fix bug #work\n"


def test_update_content_preserves_metadata(tmp_path):
    path = _write(tmp_path, "- TODO [#B] Old text SCHEDULED: <2026-02-20 Fri> #work linear:abc-1\n")
    TaskLineParser.update_task_content(path, 0, "New text")
    line = path.read_text(encoding="utf-8").split("\n")[0]
    assert line == "- TODO [#B] New text SCHEDULED: <2026-02-20 Fri> #work linear:abc-1"
    item = TaskLineParser.parse_file(path)[0]
    assert item.content == "New text"
    assert item.scheduled_date == date(2026, 2, 20)


def test_update_content_without_metadata_replaces_everything_but_priority(tmp_path):
    path = _write(tmp_path, "\t- NOW [#A] Old #work\n")
    TaskLineParser.update_task_content(path, 0, "Fresh", preserve_metadata=False)
    assert path.read_text(encoding="utf-8") == "\t- NOW [#A] Fresh\n"


def test_update_content_does_not_duplicate_tags_already_given(tmp_path):
    path = _write(tmp_path, "- TODO Old #work\n")
    TaskLineParser.update_task_content(path, 0, "New #Work")
    assert path.read_text(encoding="utf-8") == "- TODO New #Work\n"


def test_remove_line_returns_removed_text(tmp_path):
    path = _write(tmp_path, "- TODO a\n- TODO b\n- TODO c\n")
    removed = TaskLineParser.remove_line(path, 1)
    assert removed == "- TODO b"
    assert path.read_text(encoding="utf-8") == "- TODO a\n- TODO c\n"


def test_remove_line_out_of_range(tmp_path):
    path = _write(tmp_path, "- TODO a\n")
    with pytest.raises(LineOutOfRangeError):
        TaskLineParser.remove_line(path, -1)
