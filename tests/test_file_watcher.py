import os
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from infrastructure.file_watcher import FileWatcher


def _touch(path, text, mtime):
    path.write_text(text, encoding="utf-8")
    os.utime(path, (mtime, mtime))


def test_poll_detects_new_modified_and_removed_files(tmp_path):
    journals = tmp_path / "journals"
    journals.mkdir()
    calls = []
    watcher = FileWatcher([journals, tmp_path / "missing"], on_change=lambda: calls.append(1))

    _touch(journals / "a.md", "- TODO a", 1000)
    assert watcher.poll() is True
    assert watcher.poll() is False

    _touch(journals / "a.md", "- DONE a", 2000)
    assert watcher.poll() is True

    _touch(journals / "notes.txt", "ignored", 3000)
    assert watcher.poll() is False

    (journals / "a.md").unlink()
    assert watcher.poll() is True
    assert len(calls) == 3


def test_callback_errors_do_not_stop_polling(tmp_path):
    def boom():
        raise RuntimeError("reload failed")

    watcher = FileWatcher([tmp_path], on_change=boom)
    _touch(tmp_path / "a.md", "x", 1000)
    assert watcher.poll() is True
    _touch(tmp_path / "a.md", "y", 2000)
    assert watcher.poll() is True


def test_update_interval_ignores_non_positive(tmp_path):
    watcher = FileWatcher([tmp_path], on_change=lambda: None, poll_interval=120)
    watcher.update_poll_interval(0)
    assert watcher.poll_interval == 120
    watcher.update_poll_interval(5)
    assert watcher.poll_interval == 5


def test_start_takes_snapshot_and_stop_joins(tmp_path):
    calls = []
    _touch(tmp_path / "a.md", "x", 1000)
    watcher = FileWatcher([tmp_path], on_change=lambda: calls.append(1), poll_interval=60)
    watcher.start()
    try:
        assert watcher.poll() is False
    finally:
        watcher.stop(timeout=2)
    assert calls == []
