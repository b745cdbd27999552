from typing import Any, Dict, List, Optional

import requests

from .errors import DecodingError, GraphQLQueryError
from .http_client import HttpClient
from .models import LinearIssue, LinearNotification
from .rate_limiter import RateLimiter

LINEAR_GRAPHQL_URL = "https://api.linear.app/graphql"

MY_ISSUES_QUERY = """
{
  viewer {
    assignedIssues(
      filter: { state: { type: { nin: ["completed", "canceled"] } } }
      first: 100
      orderBy: updatedAt
    ) {
      nodes {
        id
        identifier
        title
        url
        priority
        state { name type }
      }
    }
  }
}
"""

NOTIFICATIONS_QUERY = """
query Notifications($first: Int!) {
  notifications(first: $first) {
    nodes {
      id
      type
      readAt
      createdAt
      ... on IssueNotification {
        issue { id identifier title url }
      }
    }
  }
}
"""


class LinearAPIClient(HttpClient):
    """GraphQL client for the Linear API."""

    def __init__(
        self,
        api_key: str,
        session: Optional[requests.Session] = None,
        rate_limiter: Optional[RateLimiter] = None,
        endpoint: str = LINEAR_GRAPHQL_URL,
        timeout: int = 30,
    ) -> None:
        super().__init__(session=session, rate_limiter=rate_limiter, timeout=timeout)
        self.api_key = api_key
        self.endpoint = endpoint

    def execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        headers = {"Authorization": self.api_key, "Content-Type": "application/json"}
        body: Dict[str, Any] = {"query": query}
        if variables:
            body["variables"] = variables
        payload = self.request_json("POST", self.endpoint, headers, json=body)
        if not isinstance(payload, dict):
            raise DecodingError("Linear response is not a JSON object")
        errors = payload.get("errors") or []
        if errors:
            raise GraphQLQueryError([str(err.get("message", err)) if isinstance(err, dict) else str(err) for err in errors])
        return payload.get("data") or {}

    def fetch_my_issues(self) -> List[LinearIssue]:
        """Active issues assigned to the token's owner."""
        data = self.execute(MY_ISSUES_QUERY)
        try:
            nodes = data["viewer"]["assignedIssues"]["nodes"]
        except (KeyError, TypeError) as exc:
            raise DecodingError(f"Unexpected Linear issues payload: {exc}") from exc
        return [LinearIssue.from_dict(node) for node in nodes or []]

    def fetch_notifications(self, first: int = 10) -> List[LinearNotification]:
        data = self.execute(NOTIFICATIONS_QUERY, {"first": first})
        try:
            nodes = data["notifications"]["nodes"]
        except (KeyError, TypeError) as exc:
            raise DecodingError(f"Unexpected Linear notifications payload: {exc}") from exc
        return [LinearNotification.from_dict(node) for node in nodes or []]
