from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import DecodingError


@dataclass(frozen=True)
class LinearIssue:
    id: str
    identifier: str
    title: str
    url: str
    priority: int
    state_name: str = ""
    state_type: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LinearIssue":
        try:
            state = data.get("state") or {}
            return cls(
                id=str(data["id"]),
                identifier=str(data["identifier"]),
                title=str(data["title"]),
                url=str(data["url"]),
                priority=int(data.get("priority") or 0),
                state_name=str(state.get("name", "")),
                state_type=str(state.get("type", "")),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise DecodingError(f"Failed to decode Linear issue: {exc}") from exc


@dataclass(frozen=True)
class LinearNotification:
    id: str
    type: str
    created_at: str
    read_at: Optional[str] = None
    issue: Optional[LinearIssue] = None

    @property
    def is_unread(self) -> bool:
        return self.read_at is None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LinearNotification":
        try:
            issue_data = data.get("issue")
            issue = None
            if issue_data:
                issue = LinearIssue(
                    id=str(issue_data["id"]),
                    identifier=str(issue_data["identifier"]),
                    title=str(issue_data["title"]),
                    url=str(issue_data["url"]),
                    priority=0,
                )
            return cls(
                id=str(data["id"]),
                type=str(data["type"]),
                created_at=str(data.get("createdAt") or ""),
                read_at=data.get("readAt"),
                issue=issue,
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise DecodingError(f"Failed to decode Linear notification: {exc}") from exc


@dataclass(frozen=True)
class PylonIssue:
    id: str
    number: int
    title: str
    state: str
    assignee_id: Optional[str] = None
    priority: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PylonIssue":
        try:
            assignee = data.get("assignee_id")
            if not assignee and isinstance(data.get("assignee"), dict):
                assignee = data["assignee"].get("id")
            custom = data.get("priority")
            return cls(
                id=str(data["id"]),
                number=int(data["number"]),
                title=str(data["title"]),
                state=str(data["state"]),
                assignee_id=str(assignee) if assignee else None,
                priority=str(custom) if custom else None,
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise DecodingError(f"Failed to decode Pylon issue: {exc}") from exc
