"""HTTP fetch with a configurable retry policy and status-aware error handling."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from stockview import metrics
from stockview.config import settings

logger = logging.getLogger(__name__)

# Retryable exceptions (transport errors)
RETRYABLE_EXC = (
    httpx.ReadTimeout,
    httpx.ConnectTimeout,
    httpx.WriteTimeout,
    httpx.ConnectError,
    httpx.ReadError,
    httpx.RemoteProtocolError,
    httpx.PoolTimeout,
)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry-with-backoff policy for feed downloads."""

    name: str = "feed"
    max_attempts: int = 3
    base_delay: float = 1.0
    backoff_multiplier: float = 2.0
    timeout: httpx.Timeout = None  # Will be set to default if None

    def __post_init__(self):
        if self.timeout is None:
            object.__setattr__(
                self,
                "timeout",
                httpx.Timeout(settings.fetch_timeout_seconds, connect=10.0),
            )
        if self.max_attempts < 1:
            object.__setattr__(self, "max_attempts", 1)

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt ``attempt`` (1-based)."""
        return max(0.0, self.base_delay * (self.backoff_multiplier ** (attempt - 1)))

    @classmethod
    def from_settings(cls, name: str = "feed") -> RetryPolicy:
        return cls(
            name=name,
            max_attempts=settings.fetch_max_attempts,
            base_delay=settings.fetch_base_delay_seconds,
            backoff_multiplier=settings.fetch_backoff_multiplier,
            timeout=httpx.Timeout(settings.fetch_timeout_seconds, connect=10.0),
        )


class FetchError(RuntimeError):
    """Base class for feed download failures."""
    pass


class PermanentFetchError(FetchError):
    """Raised for client errors that retrying will not fix (4xx other than 429)."""
    pass


class TransientFetchError(FetchError):
    """Raised when fetch fails after retries (5xx, timeouts, etc.)."""
    pass


class RateLimitedError(FetchError):
    """Raised when rate limited (429)."""

    def __init__(self, retry_after: Optional[float] = None):
        super().__init__("Rate limited")
        self.retry_after = retry_after


def _retry_after_seconds(resp: httpx.Response) -> Optional[float]:
    retry_after = resp.headers.get("Retry-After")
    if not retry_after:
        return None
    try:
        return float(retry_after)
    except (ValueError, TypeError):
        return None


async def fetch_with_policy(
    client: httpx.AsyncClient,
    url: str,
    policy: RetryPolicy,
    headers: Optional[dict[str, str]] = None,
) -> httpx.Response:
    """
    Fetch URL, retrying transient failures according to ``policy``.

    Args:
        client: httpx AsyncClient instance
        url: URL to fetch
        policy: RetryPolicy configuration
        headers: Optional extra request headers

    Returns:
        httpx.Response on success

    Raises:
        PermanentFetchError: On 4xx responses other than 429
        RateLimitedError: If still rate limited on the last attempt
        TransientFetchError: If fetch fails after all attempts
    """
    last_exc: Exception | None = None

    for attempt in range(1, policy.max_attempts + 1):
        final = attempt == policy.max_attempts
        try:
            resp = await client.get(
                url,
                headers=headers,
                timeout=policy.timeout,
                follow_redirects=True,
            )
            sc = resp.status_code

            if 200 <= sc < 300:
                return resp

            if sc == 429:
                raise RateLimitedError(retry_after=_retry_after_seconds(resp))

            if 400 <= sc < 500:
                raise PermanentFetchError(f"{policy.name}: {sc} for {url}")

            raise TransientFetchError(f"{policy.name}: status {sc} for {url}")

        except PermanentFetchError:
            raise

        except RateLimitedError as e:
            if final:
                raise
            sleep_s = e.retry_after if e.retry_after is not None else policy.delay_for(attempt)
            reason = "rate_limited"
            last_exc = e

        except TransientFetchError as e:
            if final:
                raise
            sleep_s = policy.delay_for(attempt)
            reason = "server_error"
            last_exc = e

        except RETRYABLE_EXC as e:
            if final:
                raise TransientFetchError(
                    f"{policy.name}: transport error after {policy.max_attempts} attempts: {url}"
                ) from e
            sleep_s = policy.delay_for(attempt)
            reason = type(e).__name__
            last_exc = e

        metrics.feed_fetch_retries_total.labels(reason=reason).inc()
        logger.warning(
            f"{policy.name}: {last_exc}, retrying in {sleep_s:.1f}s "
            f"(attempt {attempt}/{policy.max_attempts})"
        )
        await asyncio.sleep(sleep_s)

    # Only reachable if max_attempts was somehow zero
    raise TransientFetchError(
        f"{policy.name}: failed after {policy.max_attempts} attempts: {url}"
    ) from last_exc
