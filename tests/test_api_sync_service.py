from datetime import datetime
from pathlib import Path
import sys
import threading

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from application.api_sync_service import (
    ApiSyncService,
    human_readable_type,
    map_linear_priority,
    map_pylon_priority,
)
from application.notification_service import NotificationService
from infrastructure.digest_file_manager import DigestFileManager
from infrastructure.secret_store import LINEAR_TOKEN_KEY, PYLON_TOKEN_KEY, MemorySecretStore
from infrastructure.seen_ids_store import MemorySeenIdStore
from infrastructure.source_sync import (
    LinearIssue,
    LinearNotification,
    PylonIssue,
    TransportError,
    UnauthorizedError,
)

NOW = datetime(2026, 2, 23, 9, 30, 0)


class FakeSettings:
    def __init__(self, **flags):
        self.flags = {
            "linear.enabled": True,
            "pylon.enabled": True,
            "notifications.enabled": False,
        }
        self.flags.update({k.replace("_", "."): v for k, v in flags.items()})
        self.intervals = []

    def enabled(self, key):
        return bool(self.flags.get(key))

    def interval_seconds(self, key):
        self.intervals.append(key)
        return 0.01

    def text(self, key):
        return ""


class FakeLinearClient:
    issues = []
    notifications = []
    error = None

    def __init__(self, api_key):
        self.api_key = api_key

    def fetch_my_issues(self):
        if self.error:
            raise self.error
        return list(self.issues)

    def fetch_notifications(self, first=10):
        return list(self.notifications)


class FakePylonClient:
    issues = []
    user_id = "me"
    me_error = None

    def __init__(self, api_key):
        self.api_key = api_key

    def fetch_my_user_id(self):
        if self.me_error:
            raise self.me_error
        return self.user_id

    def fetch_recent_issues(self, days=30):
        return list(self.issues)

    def fetch_open_issues(self, days=30):
        return [i for i in self.issues if i.state in ("new", "waiting_on_you")]


class RecordingSink:
    def __init__(self):
        self.delivered = []

    def deliver(self, title, body, item_id):
        self.delivered.append((title, body, item_id))


@pytest.fixture(autouse=True)
def reset_fakes():
    FakeLinearClient.issues = []
    FakeLinearClient.notifications = []
    FakeLinearClient.error = None
    FakePylonClient.issues = []
    FakePylonClient.user_id = "me"
    FakePylonClient.me_error = None


def _service(tmp_path, settings=None, secrets=None, notifications=None):
    return ApiSyncService(
        DigestFileManager(tmp_path),
        secrets if secrets is not None else MemorySecretStore({LINEAR_TOKEN_KEY: "lin_key_123456", PYLON_TOKEN_KEY: "py"}),
        settings or FakeSettings(),
        notification_service=notifications,
        linear_client_factory=FakeLinearClient,
        pylon_client_factory=FakePylonClient,
        clock=lambda: NOW,
    )


@pytest.mark.parametrize("value, letter", [(0, None), (1, "A"), (2, "A"), (3, "B"), (4, "C"), (9, None)])
def test_map_linear_priority(value, letter):
    assert map_linear_priority(value) == letter


@pytest.mark.parametrize("value, letter", [("Urgent", "A"), ("high", "A"), ("medium", "B"), ("low", "C"), (None, None), ("", None)])
def test_map_pylon_priority(value, letter):
    assert map_pylon_priority(value) == letter


def test_human_readable_type():
    assert human_readable_type("issueMention") == "Mention"
    assert human_readable_type("somethingNew") == "somethingNew"


def test_sync_linear_writes_digest(tmp_path):
    FakeLinearClient.issues = [
        LinearIssue(id="u1", identifier="EXT-1", title="Crash", url="https://linear.app/EXT-1", priority=1),
        LinearIssue(id="u2", identifier="EXT-2", title="Polish", url="https://linear.app/EXT-2", priority=0),
    ]
    service = _service(tmp_path, FakeSettings(pylon_enabled=False))
    assert service.sync_all() is True
    content = (tmp_path / "pages" / "linear-digest.md").read_text(encoding="utf-8")
    assert content.splitlines() == [
        "- TODO [#A] [EXT-1 Crash](https://linear.app/EXT-1) #linear linear:u1",
        "- TODO [EXT-2 Polish](https://linear.app/EXT-2) #linear linear:u2",
    ]
    assert service.last_linear_count == 2
    assert service.last_linear_sync == NOW
    assert service.last_sync_date == NOW
    assert service.last_error is None
    assert any("lin_key_" in entry and "123456" not in entry for entry in service.sync_log)


def test_sync_pylon_filters_open_and_assigned(tmp_path):
    FakePylonClient.issues = [
        PylonIssue(id="p1", number=1, title="mine", state="new", assignee_id="me", priority="high"),
        PylonIssue(id="p2", number=2, title="someone else", state="new", assignee_id="you"),
        PylonIssue(id="p3", number=3, title="closed", state="closed", assignee_id="me"),
    ]
    service = _service(tmp_path, FakeSettings(linear_enabled=False))
    service.sync_all()
    content = (tmp_path / "pages" / "pylon-digest.md").read_text(encoding="utf-8")
    assert content == "- TODO [#A] [#1 mine](https://app.usepylon.com/issues?issueNumber=1) #pylon pylon:p1\n"
    assert service.last_pylon_count == 1


def test_pylon_without_user_id_keeps_all_open_issues(tmp_path):
    FakePylonClient.me_error = UnauthorizedError()
    FakePylonClient.issues = [
        PylonIssue(id="p1", number=1, title="a", state="new", assignee_id="x"),
        PylonIssue(id="p2", number=2, title="b", state="waiting_on_you"),
    ]
    service = _service(tmp_path, FakeSettings(linear_enabled=False))
    service.sync_all()
    assert service.last_pylon_count == 2
    assert any("skip assignee filter" in entry for entry in service.sync_log)


def test_missing_token_is_recorded_and_other_source_still_runs(tmp_path):
    FakePylonClient.issues = [PylonIssue(id="p1", number=1, title="a", state="new", assignee_id="me")]
    service = _service(tmp_path, secrets=MemorySecretStore({PYLON_TOKEN_KEY: "py"}))
    assert service.sync_all() is True
    assert service.last_error == "No API token configured for Linear."
    assert not (tmp_path / "pages" / "linear-digest.md").exists()
    assert (tmp_path / "pages" / "pylon-digest.md").exists()


def test_errors_from_both_sources_are_joined(tmp_path):
    FakeLinearClient.error = TransportError("Network error: down")
    service = _service(tmp_path, secrets=MemorySecretStore({LINEAR_TOKEN_KEY: "k"}))
    service.sync_all()
    assert service.last_error == "Network error: down | No API token configured for Pylon."
    assert service.is_syncing is False


def test_failed_sync_keeps_previous_digest(tmp_path):
    FakeLinearClient.issues = [LinearIssue(id="u1", identifier="E-1", title="t", url="https://l/1", priority=0)]
    service = _service(tmp_path, FakeSettings(pylon_enabled=False))
    service.sync_all()
    before = (tmp_path / "pages" / "linear-digest.md").read_text(encoding="utf-8")
    FakeLinearClient.error = UnauthorizedError()
    service.sync_all()
    assert (tmp_path / "pages" / "linear-digest.md").read_text(encoding="utf-8") == before
    assert "401" in service.last_error


def test_concurrent_sync_is_skipped(tmp_path):
    service = _service(tmp_path)
    service._guard.acquire()
    try:
        assert service.sync_all() is False
    finally:
        service._guard.release()
    assert service.sync_log[-1] == "[09:30:00] Sync already in progress, skipping"


def test_sync_log_is_bounded(tmp_path):
    service = _service(tmp_path)
    for i in range(60):
        service.log(f"entry {i}")
    assert len(service.sync_log) == 50
    assert service.sync_log[0] == "[09:30:00] entry 10"
    assert len(service.status_snapshot()["log"]) == 10


def test_notifications_write_page_and_deliver_only_new(tmp_path):
    sink = RecordingSink()
    notifications = NotificationService(MemorySeenIdStore(), sink=sink)
    FakeLinearClient.notifications = [
        LinearNotification(
            id="n1",
            type="issueMention",
            created_at="2026-02-23T08:00:00Z",
            issue=LinearIssue(id="i1", identifier="EXT-9", title="Look", url="https://l/9", priority=0),
        ),
        LinearNotification(
            id="n2",
            type="issueComment",
            created_at="2026-02-22T08:00:00Z",
            read_at="2026-02-22T09:00:00Z",
            issue=LinearIssue(id="i2", identifier="EXT-8", title="Old", url="https://l/8", priority=0),
        ),
        LinearNotification(id="n3", type="projectUpdate", created_at=""),
    ]
    FakePylonClient.issues = [PylonIssue(id="p1", number=5, title="Help", state="new", assignee_id="me")]
    service = _service(tmp_path, FakeSettings(notifications_enabled=True), notifications=notifications)

    service.sync_all()

    page = (tmp_path / "pages" / "notifications.md").read_text(encoding="utf-8").splitlines()
    assert page == [
        "- TODO [EXT-9 [Mention] Look](https://l/9) #linear linear:n1",
        "- DONE [EXT-8 [Comment] Old](https://l/8) #linear linear:n2",
    ]
    assert sink.delivered == [
        ("Linear: Mention", "EXT-9 Look", "n1"),
        ("Linear: Comment", "EXT-8 Old", "n2"),
        ("Pylon: New Issue", "#5 Help", "p1"),
    ]
    assert notifications.unread_count == 2
    assert [item.id for item in notifications.items] == ["n1", "n2", "p1"]

    sink.delivered.clear()
    service.sync_all()
    assert sink.delivered == []


def test_run_periodic_stops_when_no_source_enabled(tmp_path):
    settings = FakeSettings(linear_enabled=False, pylon_enabled=False)
    service = _service(tmp_path, settings)
    service.run_periodic(threading.Event())
    assert settings.intervals == []
    assert "no source enabled" in service.sync_log[-1]


def test_run_periodic_returns_when_stopped(tmp_path):
    settings = FakeSettings(pylon_enabled=False)
    service = _service(tmp_path, settings)
    stop = threading.Event()

    calls = []
    original = service.sync_all

    def sync_then_stop():
        calls.append(1)
        result = original()
        stop.set()
        return result

    service.sync_all = sync_then_stop
    service.run_periodic(stop)
    assert calls == [1]
    assert settings.intervals == ["api.sync_interval_minutes"]


def test_run_periodic_survives_unexpected_errors(tmp_path):
    settings = FakeSettings(pylon_enabled=False)
    service = _service(tmp_path, settings)
    stop = threading.Event()
    calls = []

    def flaky_sync():
        calls.append(1)
        if len(calls) == 1:
            raise KeyError("boom")
        stop.set()
        return True

    service.sync_all = flaky_sync
    service.run_periodic(stop)
    assert calls == [1, 1]
    assert "Unexpected sync failure" in service.last_error


def test_start_and_stop_periodic_thread(tmp_path):
    service = _service(tmp_path, FakeSettings(pylon_enabled=False))
    service.start_periodic_sync()
    service.stop_periodic_sync(timeout=2)
    assert service._thread is None
