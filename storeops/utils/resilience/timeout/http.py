"""
Timeout-guarded outbound HTTP calls.

Every request runs under a hard deadline; expiry cancels the in-flight request
and raises `RequestTimeoutError`, which is distinct from `httpx` network
errors so retry predicates can special-case it.

Usage:
    response = await fetch_with_timeout(
        "https://vision.example.com/v1/annotate", method="POST", json=body, timeout_ms=10_000
    )
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional

import httpx

from storeops.core.config import settings
from storeops.utils.logger import get_logger

from ..errors import RequestTimeoutError, RetryableResponseError
from ..retry.service import RetryOptions, RetryService, retry_service

logger = get_logger(__name__)


def is_server_error(response: httpx.Response) -> bool:
    """Default `retry_on`: retry 5xx only."""
    return response.status_code >= 500


async def fetch_with_timeout(
    url: str,
    *,
    method: str = "GET",
    timeout_ms: Optional[int] = None,
    client: Optional[httpx.AsyncClient] = None,
    **request_kwargs: Any,
) -> httpx.Response:
    """
    Perform one HTTP request with a hard deadline (default 30s).

    Uses `client` when given, otherwise a short-lived `httpx.AsyncClient`.
    """
    timeout_ms = settings.HTTP_DEFAULT_TIMEOUT_MS if timeout_ms is None else timeout_ms
    seconds = timeout_ms / 1000.0

    async def _send(http: httpx.AsyncClient) -> httpx.Response:
        return await http.request(method, url, **request_kwargs)

    try:
        if client is not None:
            return await asyncio.wait_for(_send(client), timeout=seconds)
        async with httpx.AsyncClient(timeout=seconds) as http:
            return await asyncio.wait_for(_send(http), timeout=seconds)
    except (asyncio.TimeoutError, httpx.TimeoutException):
        logger.warning("http_request_timeout", url=url, method=method, timeout_ms=timeout_ms)
        raise RequestTimeoutError(url, timeout_ms) from None


async def fetch_with_retry(
    url: str,
    *,
    max_retries: int = 3,
    retry_delay_ms: int = 1000,
    retry_on: Callable[[httpx.Response], bool] = is_server_error,
    retry_timeouts: bool = False,
    queue_name: str = "http",
    service: Optional[RetryService] = None,
    **fetch_kwargs: Any,
) -> httpx.Response:
    """
    Retry engine layered over `fetch_with_timeout`.

    Responses matching `retry_on` are retried; the last one is returned as-is
    once attempts run out. Exceptions are retried too, except timeouts unless
    `retry_timeouts` is set. Terminal exceptions are raised.
    """
    svc = service or retry_service

    async def _attempt() -> httpx.Response:
        response = await fetch_with_timeout(url, **fetch_kwargs)
        if retry_on(response):
            raise RetryableResponseError(response)
        return response

    def _should_retry(error: BaseException, attempt: int) -> bool:
        if isinstance(error, RequestTimeoutError):
            return retry_timeouts
        return True

    outcome = await svc.execute(
        queue_name,
        _attempt,
        RetryOptions(
            max_retries=max_retries,
            initial_delay_ms=retry_delay_ms,
            should_retry=_should_retry,
        ),
    )
    if outcome.success:
        return outcome.data
    if isinstance(outcome.error, RetryableResponseError):
        return outcome.error.response
    raise outcome.error
