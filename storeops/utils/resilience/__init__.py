"""
Resilience utilities: circuit breakers, retries, dead-letter queue, timeouts.

This package protects every call to an unreliable external dependency
(inference and vision services, the identity provider, the database client,
arbitrary HTTP endpoints). All modules are async-first, structured-logging
enabled, and export Prometheus metrics.

Keep modules small, composable, and configuration-driven via `storeops.core.config`.
"""

from .circuit_breaker import (
    BreakerConfig,
    BreakerRegistry,
    CircuitBreaker,
    CircuitState,
    ServiceUnavailable,
    breaker_registry,
    circuit_breakers,
    get_circuit_breaker_metrics,
    get_circuit_breaker_status,
    reset_all_circuit_breakers,
    reset_circuit_breaker,
    with_circuit_breaker,
)
from .dead_letter import DeadLetterQueue
from .errors import (
    CircuitOpenError,
    DependencyTimeoutError,
    RequestTimeoutError,
    ResilienceError,
)
from .retry import RetryOptions, RetryOutcome, RetryService, RetryTask, retry_service
from .timeout import fetch_with_retry, fetch_with_timeout

__all__ = [
    "BreakerConfig",
    "BreakerRegistry",
    "CircuitBreaker",
    "CircuitState",
    "ServiceUnavailable",
    "breaker_registry",
    "circuit_breakers",
    "with_circuit_breaker",
    "get_circuit_breaker_metrics",
    "get_circuit_breaker_status",
    "reset_circuit_breaker",
    "reset_all_circuit_breakers",
    "RetryService",
    "RetryOptions",
    "RetryOutcome",
    "RetryTask",
    "retry_service",
    "DeadLetterQueue",
    "fetch_with_timeout",
    "fetch_with_retry",
    "ResilienceError",
    "CircuitOpenError",
    "DependencyTimeoutError",
    "RequestTimeoutError",
]
