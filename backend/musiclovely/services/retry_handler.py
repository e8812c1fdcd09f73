"""Fixed-count retry loop around single provider HTTP calls.

Each call site configures its own attempt count and delay: the status
poller retries every 2s, the media downloader backs off 1s, 2s, 4s.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Awaitable

import httpx

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


@dataclass
class RetryState:
    """Tracks retry bookkeeping for one handler."""
    total_calls: int = 0
    attempts: int = 0
    failures: int = 0
    total_wait_seconds: float = 0.0
    last_error: str = ""


class RetryHandler:
    """Retries transient failures a fixed number of times.

    Transport errors and timeouts are always retried. HTTP statuses are
    retried when *retry_on* accepts them (429/5xx by default). HTTP 401/403
    raise ``AuthenticationError`` immediately and any other HTTP error
    raises ``ProviderError`` without retrying.
    """

    def __init__(
        self,
        name: str,
        max_attempts: int = 3,
        delay: float = 2.0,
        backoff: float = 1.0,
        max_delay: float = 30.0,
        retry_on: Callable[[int], bool] | None = None,
    ):
        self.name = name
        self.max_attempts = max(1, max_attempts)
        self.delay = delay
        self.backoff = backoff
        self.max_delay = max_delay
        self.retry_on = retry_on or (lambda status: status in RETRYABLE_STATUS_CODES)
        self.state = RetryState()

    def _wait_for(self, attempt: int) -> float:
        return min(self.delay * (self.backoff ** attempt), self.max_delay)

    async def execute_with_retry(
        self,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        """Execute an async function, retrying transient failures."""
        self.state.total_calls += 1

        for attempt in range(self.max_attempts):
            self.state.attempts += 1
            try:
                return await func(*args, **kwargs)

            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                self.state.last_error = f"HTTP {status}"
                if status in (401, 403):
                    self.state.failures += 1
                    raise AuthenticationError(
                        f"Authentication failed for {self.name}: {status}",
                        status_code=status,
                    ) from e
                if not self.retry_on(status):
                    self.state.failures += 1
                    raise ProviderError(
                        f"{self.name} returned HTTP {status}",
                        status_code=status,
                    ) from e

            except (httpx.TransportError, httpx.TimeoutException) as e:
                self.state.last_error = f"{type(e).__name__}: {e}"

            if attempt + 1 >= self.max_attempts:
                break

            wait_time = self._wait_for(attempt)
            self.state.total_wait_seconds += wait_time
            logger.warning(
                "%s failed (%s), retrying in %.1fs (attempt %d/%d)",
                self.name, self.state.last_error, wait_time, attempt + 1, self.max_attempts,
            )
            if wait_time > 0:
                await asyncio.sleep(wait_time)

        self.state.failures += 1
        raise RetryExhausted(
            f"{self.name} failed after {self.max_attempts} attempt(s): {self.state.last_error}"
        )


class ProviderError(Exception):
    """Non-2xx or unexpected payload from an external API."""

    def __init__(self, message: str, status_code: int | None = None, payload: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class AuthenticationError(ProviderError):
    pass


class RetryExhausted(ProviderError):
    pass
