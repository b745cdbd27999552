from typing import List, Optional


class NetworkError(RuntimeError):
    """Base class for external tracker failures."""


class UnauthorizedError(NetworkError):
    def __init__(self, message: str = "Invalid or expired API token (401 Unauthorized)"):
        super().__init__(message)


class RateLimitedError(NetworkError):
    def __init__(self, retry_after: Optional[float] = None):
        super().__init__("Rate limited by API (429). Try again later.")
        self.retry_after = retry_after


class ServerError(NetworkError):
    def __init__(self, status_code: int, body: Optional[str] = None):
        if body:
            message = f"HTTP {status_code}: {body}"
        else:
            message = f"Server error (HTTP {status_code})"
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class TransportError(NetworkError):
    pass


class DecodingError(NetworkError):
    pass


class NoCredentialError(NetworkError):
    def __init__(self, service: str):
        super().__init__(f"No API token configured for {service}.")
        self.service = service


class GraphQLQueryError(NetworkError):
    def __init__(self, messages: List[str]):
        super().__init__("GraphQL errors: " + "; ".join(messages))
        self.messages = list(messages)
