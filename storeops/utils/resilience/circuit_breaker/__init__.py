from .breaker import BreakerMetrics, CircuitBreaker, CircuitState
from .fallbacks import ServiceUnavailable, unavailable_fallback
from .monitoring import circuit_metrics
from .policies import (
    DEFAULT_BREAKER_CONFIGS,
    BreakerConfig,
    BreakerStats,
    ErrorRatePolicy,
    resolve_breaker_config,
)
from .registry import (
    BreakerRegistry,
    breaker_registry,
    circuit_breakers,
    get_circuit_breaker_metrics,
    get_circuit_breaker_status,
    reset_all_circuit_breakers,
    reset_circuit_breaker,
    with_circuit_breaker,
)

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "BreakerMetrics",
    "BreakerConfig",
    "BreakerStats",
    "ErrorRatePolicy",
    "DEFAULT_BREAKER_CONFIGS",
    "resolve_breaker_config",
    "ServiceUnavailable",
    "unavailable_fallback",
    "circuit_metrics",
    "BreakerRegistry",
    "breaker_registry",
    "circuit_breakers",
    "with_circuit_breaker",
    "get_circuit_breaker_metrics",
    "get_circuit_breaker_status",
    "reset_circuit_breaker",
    "reset_all_circuit_breakers",
]
