"""Periodic sync of Linear and Pylon into local digest pages.

Each source is fetched, mapped to `DigestItem`s and written through the
digest writer. Failures are recorded in the rolling sync log and in
`last_error`; they never propagate to the caller, and one failing source
does not stop the next one.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from application.notification_service import NotificationItem, NotificationService
from application.ports import DigestWriter, SecretStore
from core import DigestItem
from infrastructure.secret_store import LINEAR_TOKEN_KEY, PYLON_TOKEN_KEY
from infrastructure.source_sync import (
    LinearAPIClient,
    LinearIssue,
    LinearNotification,
    NetworkError,
    NoCredentialError,
    PYLON_OPEN_STATES,
    PylonAPIClient,
    pylon_issue_url,
)

logger = logging.getLogger("notanote.api_sync")

SYNC_LOG_LIMIT = 50

NOTIFICATION_TYPE_LABELS = {
    "issueAssignment": "Assigned",
    "issueComment": "Comment",
    "issueMention": "Mention",
    "issueStatusChanged": "Status Changed",
    "issuePriorityChanged": "Priority Changed",
    "issueNewComment": "New Comment",
}


def map_linear_priority(priority: int) -> Optional[str]:
    """Linear 1 (urgent) / 2 (high) -> A, 3 -> B, 4 -> C, 0 -> none."""
    if priority in (1, 2):
        return "A"
    if priority == 3:
        return "B"
    if priority == 4:
        return "C"
    return None


def map_pylon_priority(priority: Optional[str]) -> Optional[str]:
    value = (priority or "").strip().lower()
    if value in ("urgent", "high"):
        return "A"
    if value == "medium":
        return "B"
    if value == "low":
        return "C"
    return None


def human_readable_type(kind: str) -> str:
    return NOTIFICATION_TYPE_LABELS.get(kind, kind)


class ApiSyncService:
    def __init__(
        self,
        digest_writer: DigestWriter,
        secrets: SecretStore,
        settings: Any,
        notification_service: Optional[NotificationService] = None,
        linear_client_factory: Callable[[str], LinearAPIClient] = LinearAPIClient,
        pylon_client_factory: Callable[[str], PylonAPIClient] = PylonAPIClient,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.digest_writer = digest_writer
        self.secrets = secrets
        self.settings = settings
        self.notification_service = notification_service
        self.linear_client_factory = linear_client_factory
        self.pylon_client_factory = pylon_client_factory
        self._clock = clock

        self._guard = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self.is_syncing = False
        self.last_linear_sync: Optional[datetime] = None
        self.last_pylon_sync: Optional[datetime] = None
        self.last_linear_count = 0
        self.last_pylon_count = 0
        self.last_notification_sync: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self.sync_log: List[str] = []

    # ------------------------------------------------------------ logging

    def log(self, message: str) -> None:
        entry = f"[{self._clock().strftime('%H:%M:%S')}] {message}"
        logger.info(message)
        self.sync_log.append(entry)
        if len(self.sync_log) > SYNC_LOG_LIMIT:
            del self.sync_log[: len(self.sync_log) - SYNC_LOG_LIMIT]

    def _record_error(self, message: str) -> None:
        self.last_error = f"{self.last_error} | {message}" if self.last_error else message

    @property
    def last_sync_date(self) -> Optional[datetime]:
        stamps = [d for d in (self.last_linear_sync, self.last_pylon_sync) if d is not None]
        return max(stamps) if stamps else None

    def status_snapshot(self) -> Dict[str, Any]:
        return {
            "is_syncing": self.is_syncing,
            "last_linear_sync": self.last_linear_sync.isoformat() if self.last_linear_sync else None,
            "last_pylon_sync": self.last_pylon_sync.isoformat() if self.last_pylon_sync else None,
            "last_linear_count": self.last_linear_count,
            "last_pylon_count": self.last_pylon_count,
            "last_error": self.last_error,
            "log": list(self.sync_log[-10:]),
        }

    # ---------------------------------------------------------- sync all

    def sync_all(self) -> bool:
        """Run every enabled source once. Returns False if a run was already active."""
        if not self._guard.acquire(blocking=False):
            self.log("Sync already in progress, skipping")
            return False
        try:
            self.is_syncing = True
            self.last_error = None
            linear_on = self.settings.enabled("linear.enabled")
            pylon_on = self.settings.enabled("pylon.enabled")
            self.log(f"Starting sync (linear={linear_on}, pylon={pylon_on})")

            if linear_on:
                self._run_source("Linear", self.sync_linear)
            if pylon_on:
                self._run_source("Pylon", self.sync_pylon)

            if self.notification_service is not None and self.settings.enabled("notifications.enabled"):
                try:
                    self.sync_notifications(linear_on, pylon_on)
                except NetworkError as exc:
                    self.log(f"Notification sync failed: {exc}")
                except OSError as exc:
                    self.log(f"Notification sync failed: {exc}")
            self.log("Sync finished")
            return True
        finally:
            self.is_syncing = False
            self._guard.release()

    def _run_source(self, name: str, func: Callable[[], int]) -> None:
        try:
            func()
        except (NetworkError, OSError) as exc:
            self.log(f"{name} sync failed: {exc}")
            self._record_error(str(exc))

    def _token(self, key: str, service: str) -> str:
        token = self.secrets.get(key)
        if not token:
            raise NoCredentialError(service)
        return token

    # ------------------------------------------------------- per source

    def sync_linear(self) -> int:
        api_key = self._token(LINEAR_TOKEN_KEY, "Linear")
        self.log(f"Linear: token loaded ({api_key[:8]}...)")
        client = self.linear_client_factory(api_key)
        issues = client.fetch_my_issues()
        self.log(f"Linear: fetched {len(issues)} issues")
        items = [
            DigestItem(
                text=issue.title,
                source_id=issue.id,
                url=issue.url,
                identifier=issue.identifier,
                priority=map_linear_priority(issue.priority),
                status="TODO",
            )
            for issue in issues
        ]
        path = self.digest_writer.digest_file_path("linear")
        self.log(f"Linear: writing {len(items)} items to {path}")
        self.digest_writer.write_digest("linear", items)
        self.last_linear_sync = self._clock()
        self.last_linear_count = len(items)
        self.log("Linear: sync complete")
        return len(items)

    def sync_pylon(self) -> int:
        api_key = self._token(PYLON_TOKEN_KEY, "Pylon")
        client = self.pylon_client_factory(api_key)

        user_id: Optional[str]
        try:
            user_id = client.fetch_my_user_id()
            self.log(f"Pylon: user ID = {user_id}")
        except NetworkError as exc:
            self.log(f"Pylon: could not fetch user ID ({exc}), will skip assignee filter")
            user_id = None

        all_issues = client.fetch_recent_issues()
        issues = [issue for issue in all_issues if issue.state in PYLON_OPEN_STATES]
        self.log(f"Pylon: {len(all_issues)} total -> {len(issues)} with state new/waiting_on_you")
        if user_id:
            issues = [issue for issue in issues if issue.assignee_id == user_id]
            self.log(f"Pylon: {len(issues)} assigned to me")
        for issue in issues[:5]:
            self.log(f'  - #{issue.number} "{issue.title}" state={issue.state}')
        if len(issues) > 5:
            self.log(f"  ... and {len(issues) - 5} more")

        items = [
            DigestItem(
                text=issue.title,
                source_id=issue.id,
                url=pylon_issue_url(issue.number),
                identifier=f"#{issue.number}",
                priority=map_pylon_priority(issue.priority),
                status="TODO",
            )
            for issue in issues
        ]
        path = self.digest_writer.digest_file_path("pylon")
        self.log(f"Pylon: writing {len(items)} items to {path}")
        self.digest_writer.write_digest("pylon", items)
        self.last_pylon_sync = self._clock()
        self.last_pylon_count = len(items)
        self.log("Pylon: sync complete")
        return len(items)

    # ----------------------------------------------------- notifications

    def sync_notifications(self, linear_enabled: bool, pylon_enabled: bool) -> None:
        service = self.notification_service
        if service is None:
            return
        digest_items: List[DigestItem] = []
        panel_items: List[NotificationItem] = []
        native: List[Tuple[str, str, str]] = []

        linear_key = self.secrets.get(LINEAR_TOKEN_KEY) if linear_enabled else None
        if linear_key:
            self.log("Notifications: fetching Linear inbox...")
            notifications = self.linear_client_factory(linear_key).fetch_notifications(first=10)
            self.log(f"Notifications: fetched {len(notifications)} inbox items")
            fresh = service.process_linear_notifications(notifications)
            for n in notifications:
                if n.issue is None:
                    continue
                label = human_readable_type(n.type)
                digest_items.append(
                    DigestItem(
                        text=f"[{label}] {n.issue.title}",
                        source_id=n.id,
                        url=n.issue.url,
                        identifier=n.issue.identifier,
                        status="TODO" if n.is_unread else "DONE",
                    )
                )
                panel_items.append(_panel_item(n, n.issue, label))
            for n in fresh:
                if n.issue is None:
                    continue
                native.append((f"Linear: {human_readable_type(n.type)}", f"{n.issue.identifier} {n.issue.title}", n.id))

        pylon_key = self.secrets.get(PYLON_TOKEN_KEY) if pylon_enabled else None
        if pylon_key:
            self.log("Notifications: checking for new Pylon issues...")
            issues = self.pylon_client_factory(pylon_key).fetch_open_issues()
            fresh_issues = service.process_new_pylon_issues(issues)
            self.log(f"Notifications: {len(fresh_issues)} new Pylon issues")
            for issue in fresh_issues:
                native.append(("Pylon: New Issue", f"#{issue.number} {issue.title}", issue.id))
                panel_items.append(
                    NotificationItem(
                        id=issue.id,
                        source="pylon",
                        type="New Issue",
                        title=issue.title,
                        url=pylon_issue_url(issue.number),
                        identifier=f"#{issue.number}",
                        is_unread=True,
                    )
                )

        if digest_items:
            self.log(f"Notifications: writing {len(digest_items)} items to notifications.md")
            self.digest_writer.write_notifications(digest_items)
        service.update_items(panel_items)
        if native:
            self.log(f"Notifications: delivering {len(native)} native notifications")
            service.deliver(native)
        self.last_notification_sync = self._clock()
        self.log("Notifications: sync complete")

    # ---------------------------------------------------------- periodic

    def _any_source_enabled(self) -> bool:
        return self.settings.enabled("linear.enabled") or self.settings.enabled("pylon.enabled")

    def run_periodic(self, stop: threading.Event) -> None:
        """Sync, sleep, repeat until `stop` is set or every source is disabled."""
        while not stop.is_set():
            if not self._any_source_enabled():
                self.log("Periodic sync stopped: no source enabled")
                return
            try:
                self.sync_all()
            except Exception as exc:
                logger.exception("periodic API sync crashed")
                self._record_error(f"Unexpected sync failure: {exc}")
            interval = self.settings.interval_seconds("api.sync_interval_minutes")
            if stop.wait(interval):
                return

    def start_periodic_sync(self) -> None:
        self.stop_periodic_sync()
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self.run_periodic, args=(self._stop,), name="api-sync", daemon=True
        )
        self._thread.start()

    def stop_periodic_sync(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)


def _panel_item(n: LinearNotification, issue: LinearIssue, label: str) -> NotificationItem:
    return NotificationItem(
        id=n.id,
        source="linear",
        type=label,
        title=issue.title,
        url=issue.url,
        identifier=issue.identifier,
        is_unread=n.is_unread,
        created_at=n.created_at,
    )


__all__ = [
    "ApiSyncService",
    "map_linear_priority",
    "map_pylon_priority",
    "human_readable_type",
]
