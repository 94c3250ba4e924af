"""Rate-limit aware HTTP client for the toncenter API.

The client is intentionally thin: each call maps to one HTTP request against
the configured API root and returns the parsed JSON document. Only HTTP 429
responses are retried; every other failure is terminal and surfaced through
the :mod:`tonsend.errors` hierarchy so the submission pipeline can decide
what to do with it.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import requests
from requests import RequestException, Response

from .config import ServiceConfig
from .errors import MalformedResponse, NetworkError, RateLimited, RemoteRejected

logger = logging.getLogger(__name__)

HTTP_TOO_MANY_REQUESTS = 429


@dataclass(frozen=True)
class RetryPolicy:
    """Capped exponential back-off applied to HTTP 429 responses."""

    max_attempts: int = 5
    initial_backoff: float = 60.0
    multiplier: float = 2.0
    max_backoff: float = 600.0

    def backoff_for(self, retry_index: int) -> float:
        """Return the wait before retry number ``retry_index`` (starting at 0)."""

        delay = self.initial_backoff * (self.multiplier ** retry_index)
        return min(delay, self.max_backoff)

    @classmethod
    def from_config(cls, config: ServiceConfig) -> "RetryPolicy":
        return cls(
            max_attempts=config.max_retries,
            initial_backoff=config.backoff_seconds,
            max_backoff=config.max_backoff_seconds,
        )


def _retry_after_seconds(response: Response) -> float | None:
    raw = response.headers.get("Retry-After")
    if raw is None:
        return None
    try:
        return max(float(raw), 0.0)
    except ValueError:
        return None


def _error_message(response: Response) -> tuple[str, str]:
    body = response.text
    try:
        parsed = response.json()
    except ValueError:
        parsed = None
    if isinstance(parsed, dict) and parsed.get("error"):
        return str(parsed["error"]), body
    return f"HTTP {response.status_code} {response.reason or ''}".strip(), body


class RateLimitedHTTPClient:
    """HTTP client that waits out ``429 Too Many Requests`` answers.

    ``sleep`` is injectable so callers (and tests) can observe or replace the
    blocking back-off wait.
    """

    def __init__(
        self,
        config: ServiceConfig,
        *,
        retry_policy: RetryPolicy | None = None,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.retry_policy = retry_policy or RetryPolicy.from_config(config)
        self._session = session or requests.Session()
        self._sleep = sleep
        self._base_url = config.base_url

    def send(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Perform an HTTP request and return the decoded JSON body."""

        url = f"{self._base_url}/{path.lstrip('/')}"
        headers = {"Accept": "application/json"}
        if payload is not None:
            headers["Content-Type"] = "application/json"
        if self.config.api_key:
            headers["X-API-Key"] = self.config.api_key

        policy = self.retry_policy
        attempt = 0
        while True:
            attempt += 1
            logger.debug("HTTP %s %s attempt=%d params=%s", method, url, attempt, params)
            try:
                response = self._session.request(
                    method,
                    url,
                    params=params,
                    json=payload,
                    headers=headers,
                    timeout=self.config.timeout,
                )
            except RequestException as exc:
                logger.error(
                    "HTTP transport failure for %s: %s",
                    url,
                    exc,
                    exc_info=logger.isEnabledFor(logging.DEBUG),
                )
                raise NetworkError(
                    f"Request to {url} failed. Check connectivity and TONSEND_API_URL."
                ) from exc

            if response.status_code == HTTP_TOO_MANY_REQUESTS:
                retry_after = _retry_after_seconds(response)
                if attempt >= policy.max_attempts:
                    logger.error("Giving up on %s after %d rate-limited attempts", url, attempt)
                    raise RateLimited(attempt, retry_after)
                delay = retry_after if retry_after is not None else policy.backoff_for(attempt - 1)
                logger.warning(
                    "Too many requests to %s (attempt %d/%d); retrying in %.1fs",
                    url,
                    attempt,
                    policy.max_attempts,
                    delay,
                )
                self._sleep(delay)
                continue

            return self._decode(response, url)

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self.send("GET", path, params=params)

    def post(self, path: str, payload: Dict[str, Any]) -> Any:
        return self.send("POST", path, payload=payload)

    @staticmethod
    def _decode(response: Response, url: str) -> Any:
        if not 200 <= response.status_code < 300:
            message, body = _error_message(response)
            logger.error("HTTP error %s from %s", response.status_code, url)
            logger.debug("HTTP error body: %s", body)
            raise RemoteRejected(message, status_code=response.status_code, body=body)
        try:
            return response.json()
        except ValueError as exc:
            logger.debug("JSON parse error: %s", response.text, exc_info=True)
            raise MalformedResponse(
                f"{url} returned malformed JSON: {exc}", status_code=response.status_code
            ) from exc


def unwrap_result(document: Any, *, operation: str) -> Any:
    """Return ``result`` from an ``{ok, result, error}`` envelope or raise."""

    if not isinstance(document, dict):
        raise RemoteRejected(f"{operation}: unexpected response shape")
    if not document.get("ok"):
        error = document.get("error") or "unknown error"
        raise RemoteRejected(f"{operation} rejected: {error}", body=str(document))
    return document.get("result")
