from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import requests

from .errors import DecodingError
from .http_client import HttpClient
from .models import PylonIssue
from .rate_limiter import RateLimiter

PYLON_BASE_URL = "https://api.usepylon.com"
PYLON_OPEN_STATES = frozenset({"new", "waiting_on_you"})


def pylon_issue_url(number: int) -> str:
    return f"https://app.usepylon.com/issues?issueNumber={number}"


class PylonAPIClient(HttpClient):
    """REST client for the Pylon API."""

    def __init__(
        self,
        api_key: str,
        session: Optional[requests.Session] = None,
        rate_limiter: Optional[RateLimiter] = None,
        base_url: str = PYLON_BASE_URL,
        timeout: int = 30,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        super().__init__(session=session, rate_limiter=rate_limiter, timeout=timeout)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._now = now

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.api_key}", "Accept": "application/json"}

    def fetch_my_user_id(self) -> str:
        payload = self.request_json("GET", f"{self.base_url}/me", self._headers())
        data = payload.get("data", payload) if isinstance(payload, dict) else None
        if not isinstance(data, dict) or not data.get("id"):
            raise DecodingError("Pylon /me response has no id")
        return str(data["id"])

    def fetch_recent_issues(self, days: int = 30) -> List[PylonIssue]:
        """Issues created in the last `days` days, every state."""
        end = self._now()
        start = end - timedelta(days=days)
        params = {
            "start_time": start.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "end_time": end.strftime("%Y-%m-%dT%H:%M:%SZ"),
        }
        payload = self.request_json("GET", f"{self.base_url}/issues", self._headers(), params=params)
        if not isinstance(payload, dict):
            raise DecodingError("Pylon issues response is not a JSON object")
        return [PylonIssue.from_dict(raw) for raw in payload.get("data") or []]

    def fetch_open_issues(self, days: int = 30) -> List[PylonIssue]:
        return [issue for issue in self.fetch_recent_issues(days) if issue.state in PYLON_OPEN_STATES]
