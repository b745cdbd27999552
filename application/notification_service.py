"""Seen-id tracking for tracker notifications.

Each sync cycle hands in the current inbox; only ids not seen before are
reported as new. Panel items are the full current set minus dismissed ids.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, TypeVar

from application.ports import NotificationSink, SeenIdStore

logger = logging.getLogger("notanote.notifications")

SEEN_LINEAR_KEY = "notifications.seen_linear_ids"
SEEN_PYLON_KEY = "notifications.seen_pylon_ids"
DISMISSED_KEY = "notifications.dismissed_ids"

T = TypeVar("T")


@dataclass(frozen=True)
class NotificationItem:
    id: str
    source: str  # "linear" | "pylon"
    type: str
    title: str
    url: Optional[str] = None
    identifier: Optional[str] = None
    is_unread: bool = True
    created_at: Optional[str] = None


class LoggingNotificationSink:
    """Default delivery surface: writes notifications to the log."""

    def deliver(self, title: str, body: str, item_id: str) -> None:
        logger.info("notification %s: %s - %s", item_id, title, body)


class NotificationService:
    def __init__(
        self,
        seen_store: SeenIdStore,
        sink: Optional[NotificationSink] = None,
        native_enabled: Callable[[], bool] = lambda: True,
    ):
        self.seen_store = seen_store
        self.sink = sink or LoggingNotificationSink()
        self.native_enabled = native_enabled
        self.items: List[NotificationItem] = []
        self.unread_count = 0

    def _new_since_last_seen(self, key: str, entries: Sequence[T], ident: Callable[[T], str]) -> List[T]:
        seen = self.seen_store.load(key)
        seen_set = set(seen)
        fresh = [entry for entry in entries if ident(entry) not in seen_set]
        self.seen_store.save(key, seen + [ident(entry) for entry in entries])
        return fresh

    def process_linear_notifications(self, notifications: Sequence[T]) -> List[T]:
        return self._new_since_last_seen(SEEN_LINEAR_KEY, notifications, lambda n: n.id)

    def process_new_pylon_issues(self, issues: Sequence[T]) -> List[T]:
        return self._new_since_last_seen(SEEN_PYLON_KEY, issues, lambda i: i.id)

    def update_items(self, new_items: Iterable[NotificationItem]) -> None:
        dismissed = set(self.seen_store.load(DISMISSED_KEY))
        self.items = [item for item in new_items if item.id not in dismissed]
        self.unread_count = sum(1 for item in self.items if item.is_unread)

    def dismiss(self, item_id: str) -> None:
        dismissed = self.seen_store.load(DISMISSED_KEY)
        self.seen_store.save(DISMISSED_KEY, dismissed + [item_id])
        self.items = [item for item in self.items if item.id != item_id]
        self.unread_count = sum(1 for item in self.items if item.is_unread)

    def dismiss_all(self) -> None:
        dismissed = self.seen_store.load(DISMISSED_KEY)
        self.seen_store.save(DISMISSED_KEY, dismissed + [item.id for item in self.items])
        self.items = []
        self.unread_count = 0

    def deliver(self, entries: Iterable[Tuple[str, str, str]]) -> int:
        """Send (title, body, id) triples to the sink. Returns the count sent."""
        if not self.native_enabled():
            return 0
        sent = 0
        for title, body, item_id in entries:
            try:
                self.sink.deliver(title, body, item_id)
                sent += 1
            except Exception as exc:  # sink is an external surface
                logger.error("failed to deliver notification %s: %s", item_id, exc)
        return sent


__all__ = ["NotificationService", "NotificationItem", "LoggingNotificationSink"]
