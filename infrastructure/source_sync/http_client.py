import logging
import random
import time
from typing import Any, Dict, Optional

import requests

from .errors import DecodingError, RateLimitedError, ServerError, TransportError, UnauthorizedError
from .rate_limiter import RateLimiter, header_value

logger = logging.getLogger("notanote.sources.http")


class HttpClient:
    """Shared request loop: rate limiting, 5xx/network retries, status mapping."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        rate_limiter: Optional[RateLimiter] = None,
        timeout: int = 30,
        max_attempts: int = 3,
    ) -> None:
        self.session = session or requests.Session()
        self.rate_limiter = rate_limiter or RateLimiter()
        self.timeout = timeout
        self.max_attempts = max_attempts

    def request_json(self, method: str, url: str, headers: Dict[str, str], **kwargs: Any) -> Any:
        attempt = 0
        delay = 1.0
        while True:
            attempt += 1
            self.rate_limiter.acquire()
            try:
                response = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
            except requests.RequestException as exc:
                if attempt >= self.max_attempts:
                    raise TransportError(f"Network error: {exc}") from exc
                logger.warning("%s %s failed (%s), retry #%s", method, url, exc, attempt)
                self._sleep(delay)
                delay *= 2
                continue
            self.rate_limiter.update(dict(response.headers or {}))
            status = response.status_code
            if status >= 500 and attempt < self.max_attempts:
                logger.warning("%s %s -> HTTP %s, retry #%s", method, url, status, attempt)
                self._sleep(delay)
                delay *= 2
                continue
            if status == 401:
                raise UnauthorizedError()
            if status == 429:
                raise RateLimitedError(_retry_after(response.headers or {}))
            if status != 200:
                raise ServerError(status, response.text)
            try:
                return response.json()
            except ValueError as exc:
                preview = (response.text or "")[:500]
                raise DecodingError(f"Failed to decode response: {exc}\nResponse: {preview}") from exc

    def _sleep(self, base_delay: float) -> None:
        time.sleep(base_delay + random.uniform(0, base_delay))


def _retry_after(headers: Dict[str, Any]) -> Optional[float]:
    value = header_value(headers, "Retry-After")
    try:
        return float(value) if value else None
    except ValueError:
        return None
