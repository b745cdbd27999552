from .errors import (
    DecodingError,
    GraphQLQueryError,
    NetworkError,
    NoCredentialError,
    RateLimitedError,
    ServerError,
    TransportError,
    UnauthorizedError,
)
from .http_client import HttpClient
from .linear_client import LinearAPIClient
from .models import LinearIssue, LinearNotification, PylonIssue
from .pylon_client import PYLON_OPEN_STATES, PylonAPIClient, pylon_issue_url
from .rate_limiter import RateLimiter

__all__ = [
    "NetworkError",
    "UnauthorizedError",
    "RateLimitedError",
    "ServerError",
    "TransportError",
    "DecodingError",
    "NoCredentialError",
    "GraphQLQueryError",
    "HttpClient",
    "LinearAPIClient",
    "PylonAPIClient",
    "LinearIssue",
    "LinearNotification",
    "PylonIssue",
    "PYLON_OPEN_STATES",
    "pylon_issue_url",
    "RateLimiter",
]
