"""
Exceptions raised (or handed to fallbacks) by the resilience layer.

Provides a small hierarchy so callers and `should_retry` predicates can tell
circuit rejections, deadline expiry and ordinary dependency failures apart.
"""

from __future__ import annotations

from typing import Any, Optional


class ResilienceError(Exception):
    """Base exception for all resilience layer errors."""

    pass


class CircuitOpenError(ResilienceError):
    """
    A circuit breaker rejected the call without invoking the dependency.

    Never raised out of `CircuitBreaker.fire`; it is passed to the fallback so
    the fallback can tell a rejection from a real failure.
    """

    def __init__(self, circuit: str, retry_after_ms: Optional[int] = None):
        super().__init__(f"Circuit '{circuit}' is OPEN")
        self.circuit = circuit
        self.retry_after_ms = retry_after_ms


class DependencyTimeoutError(ResilienceError):
    """An action did not settle within its deadline."""

    code = "ETIMEDOUT"

    def __init__(self, dependency: str, timeout_ms: int, message: Optional[str] = None):
        super().__init__(
            message or f"Call to '{dependency}' timed out after {timeout_ms}ms"
        )
        self.dependency = dependency
        self.timeout_ms = timeout_ms


class RequestTimeoutError(DependencyTimeoutError):
    """
    Outbound HTTP request aborted by the timeout-guarded invoker.

    Distinct from `httpx` network errors so retry predicates can special-case it.
    """

    def __init__(self, url: str, timeout_ms: int):
        super().__init__(
            url, timeout_ms, f"Request to {url} timed out after {timeout_ms}ms"
        )
        self.url = url


class RetryableResponseError(ResilienceError):
    """A response that the `retry_on` predicate asked to retry."""

    def __init__(self, response: Any):
        status = getattr(response, "status_code", "?")
        super().__init__(f"Retryable response status {status}")
        self.response = response
        self.code = str(status)


class DeadLetterError(ResilienceError):
    """Dead-letter storage failure."""

    pass
