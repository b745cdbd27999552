from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core import FilterMode, TaskMarker, TaskPriority, TodoSource
from interface.tool_inputs import (
    AddSourceTodoInput,
    AddTodoInput,
    ListTodosInput,
    RemoveTodoInput,
    SyncSourceInput,
    ToolInputError,
    UpdateTodoInput,
    validate_line_number,
    validate_string,
)


def test_list_defaults():
    inp = ListTodosInput.from_arguments({})
    assert inp.filter is FilterMode.ACTIVE
    assert inp.limit == 50
    assert inp.search is None and inp.tag is None and inp.source is None


def test_list_full_arguments():
    inp = ListTodosInput.from_arguments({"filter": "Done", "search": "milk", "tag": "home", "limit": 5.0, "source": "pylon"})
    assert inp.filter is FilterMode.DONE
    assert inp.source is TodoSource.PYLON
    assert inp.limit == 5


@pytest.mark.parametrize(
    "args, message",
    [
        ({"filter": "later"}, "'filter' must be one of"),
        ({"limit": "ten"}, "'limit' must be a number"),
        ({"limit": -1}, "'limit' must be >= 0"),
        ({"limit": True}, "'limit' must be a number"),
        ({"source": "jira"}, "'source' must be one of"),
        ({"search": 3}, "'search' must be a string"),
    ],
)
def test_list_rejects(args, message):
    with pytest.raises(ToolInputError) as excinfo:
        ListTodosInput.from_arguments(args)
    assert message in str(excinfo.value)


def test_add_todo_strips_text_and_ignores_bad_priority():
    inp = AddTodoInput.from_arguments({"text": "  call bank ", "priority": "Z"})
    assert inp.text == "call bank"
    assert inp.priority is TaskPriority.NONE
    assert AddTodoInput.from_arguments({"text": "x", "priority": "a"}).priority is TaskPriority.HIGH


@pytest.mark.parametrize("value", [None, 1.5, "3", True])
def test_line_number_must_be_integer(value):
    with pytest.raises(ToolInputError):
        validate_line_number(value)


def test_line_number_accepts_integral_floats():
    assert validate_line_number(3.0) == 3
    assert validate_line_number(0) == 0


def test_update_input():
    inp = UpdateTodoInput.from_arguments({"file_path": "/g/a.md", "line_number": 2, "new_status": "WAITING"})
    assert inp.new_status is TaskMarker.WAITING
    assert inp.expected_line is None
    with pytest.raises(ToolInputError) as excinfo:
        UpdateTodoInput.from_arguments({"file_path": "/g/a.md", "line_number": 2, "new_status": "done"})
    assert str(excinfo.value).startswith("'new_status' must be one of: ")
    with pytest.raises(ToolInputError):
        UpdateTodoInput.from_arguments({"line_number": 2, "new_status": "DONE"})


def test_remove_input_keeps_expected_line():
    inp = RemoveTodoInput.from_arguments({"file_path": "/g/a.md", "line_number": 1, "expected_line": "- TODO a"})
    assert inp.expected_line == "- TODO a"


def test_add_source_todo_builds_digest_item():
    inp = AddSourceTodoInput.from_arguments(
        {"source": "linear", "text": "Fix", "source_id": "", "url": "https://x", "identifier": "EXT-1", "priority": "b"}
    )
    assert inp.source == "linear"
    assert inp.item.source_id is None
    assert inp.item.url == "https://x"
    assert inp.item.priority == "B"
    assert inp.item.status is None


def test_sync_source_skips_items_without_text_and_validates_status():
    inp = SyncSourceInput.from_arguments(
        {"source": "pylon", "items": [{"text": "a", "status": "DONE"}, {"text": ""}, {"source_id": "x"}]}
    )
    assert [i.text for i in inp.items] == ["a"]
    assert inp.items[0].status == "DONE"
    with pytest.raises(ToolInputError):
        SyncSourceInput.from_arguments({"source": "pylon", "items": [{"text": "a", "status": "FINISHED"}]})
    with pytest.raises(ToolInputError):
        SyncSourceInput.from_arguments({"source": "pylon", "items": {"text": "a"}})


@pytest.mark.parametrize("source_id", ["ENG.42", "a b", "x:y", "id#1"])
def test_source_id_must_match_tracking_token(source_id):
    with pytest.raises(ToolInputError) as excinfo:
        AddSourceTodoInput.from_arguments({"source": "linear", "text": "Fix", "source_id": source_id})
    assert "'source_id'" in str(excinfo.value)
    with pytest.raises(ToolInputError):
        SyncSourceInput.from_arguments({"source": "linear", "items": [{"text": "a", "source_id": source_id}]})


def test_source_id_accepts_uuid_and_issue_keys():
    for source_id in ("0f8e2c1a-77aa-4b1e-9d7f-3c2b1a0e9f88", "ENG-42", "issue_7"):
        inp = AddSourceTodoInput.from_arguments({"source": "pylon", "text": "Fix", "source_id": source_id})
        assert inp.item.source_id == source_id


@pytest.mark.parametrize("text", ["one\ntwo", "one\r\ntwo", "trailing\n"])
def test_task_text_must_be_one_line(text):
    with pytest.raises(ToolInputError) as excinfo:
        AddTodoInput.from_arguments({"text": text})
    assert str(excinfo.value) == "'text' must be a single line"
    with pytest.raises(ToolInputError):
        AddSourceTodoInput.from_arguments({"source": "linear", "text": text})


def test_validate_string_length_limit():
    with pytest.raises(ToolInputError) as excinfo:
        validate_string("x" * 5000, "text")
    assert "too long" in str(excinfo.value)
    assert validate_string(None, "text") is None
