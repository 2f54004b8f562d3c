"""Retries with capped, jittered exponential backoff for upstream services."""

import asyncio
import logging
import math
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import TypeVar

import httpx
from postgrest.exceptions import APIError

from nutrition_labels.errors import ReferenceNotFoundError, UpstreamUnavailableError

T = TypeVar("T")

# Failures that come from the service rather than from our own code.
UPSTREAM_ERRORS = (httpx.HTTPStatusError, httpx.TransportError, APIError)
# PostgreSQL query_canceled, reported when statement_timeout fires.
_STATEMENT_TIMEOUT_CODE = "57014"

_logger = logging.getLogger(__name__)


@dataclass
class RetryPolicy:
    """Calls one upstream service, retrying transient failures.

    Delays double from `base_delay_seconds` and gain up to `jitter_ratio`
    extra so parallel callers spread out. No delay, including one asked for
    by a Retry-After header, exceeds `max_delay_seconds`.
    """

    service: str
    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 10.0
    jitter_ratio: float = 0.3
    rng: Callable[[], float] = field(default=random.random, repr=False)
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

    async def call(
        self,
        func: Callable[[], Awaitable[T]],
        *,
        action: str,
        reference: tuple[str, object] | None = None,
    ) -> T:
        """Await `func`, mapping exhausted or permanent failures to domain errors.

        With `reference` set, a 404 means the referenced record does not exist
        and raises `ReferenceNotFoundError` instead.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await func()
            except UPSTREAM_ERRORS as exc:
                status_code = status_code_from_exception(exc)
                kind = failure_kind(exc)
                if status_code == 404 and reference is not None:
                    raise ReferenceNotFoundError(*reference) from exc
                if kind == "client_error" or attempt >= self.max_attempts:
                    _logger.warning(
                        "%s %s failed after %s attempt(s) (kind=%s, status=%s): %s",
                        self.service,
                        action,
                        attempt,
                        kind,
                        status_code if status_code is not None else "n/a",
                        exc,
                    )
                    raise UpstreamUnavailableError(
                        self.service, kind, attempt, status_code=status_code
                    ) from exc
                delay = self.delay(attempt, exc)
                _logger.warning(
                    "%s %s failed (attempt %s/%s, kind=%s, status=%s), retrying in %.1fs",
                    self.service,
                    action,
                    attempt,
                    self.max_attempts,
                    kind,
                    status_code if status_code is not None else "n/a",
                    delay,
                )
                await self.sleep(delay)

    async def call_blocking(
        self, func: Callable[..., T], *args: object, action: str
    ) -> T:
        """Run a synchronous client call in a worker thread under this policy."""
        return await self.call(lambda: asyncio.to_thread(func, *args), action=action)

    def delay(self, attempt: int, exc: Exception) -> float:
        """Seconds to wait after failed attempt number `attempt`."""
        retry_after = retry_after_seconds(exc)
        if retry_after is not None:
            return min(retry_after, self.max_delay_seconds)
        delay = self.base_delay_seconds * 2 ** (attempt - 1)
        delay += delay * self.jitter_ratio * self.rng()
        return min(delay, self.max_delay_seconds)


def status_code_from_exception(exc: Exception) -> int | None:
    """Extract an HTTP status code from an exception, if available."""
    response = getattr(exc, "response", None)
    status_code = getattr(response, "status_code", None)
    if isinstance(status_code, int):
        return status_code
    if isinstance(exc, APIError):
        # PostgREST reports the HTTP status as the code when the body isn't JSON.
        try:
            code = int(exc.code)
        except (TypeError, ValueError):
            return None
        return code if 100 <= code < 600 else None
    return None


def failure_kind(exc: Exception) -> str:
    if isinstance(exc, httpx.TimeoutException):
        return "timeout"
    if isinstance(exc, httpx.TransportError):
        return "network"
    if isinstance(exc, APIError) and exc.code == _STATEMENT_TIMEOUT_CODE:
        return "timeout"
    status_code = status_code_from_exception(exc)
    if status_code == 429:
        return "rate_limit"
    if status_code == 408:
        return "timeout"
    if status_code is not None and status_code >= 500:
        return "server_error"
    return "client_error"


def retry_after_seconds(exc: Exception) -> float | None:
    """Read a Retry-After header given as seconds or an HTTP date."""
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None)
    if headers is None:
        return None
    value = headers.get("Retry-After")
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        pass
    else:
        return max(seconds, 0.0) if math.isfinite(seconds) else None
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=UTC)
    return max((retry_at - datetime.now(tz=UTC)).total_seconds(), 0.0)
