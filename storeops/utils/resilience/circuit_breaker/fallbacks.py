from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional

from ..errors import CircuitOpenError, DependencyTimeoutError

# Fallbacks receive the exception that triggered them (CircuitOpenError on
# rejection) and return a value or an awaitable of the action's result shape.
Fallback = Callable[[Optional[BaseException]], Any]

_DISPLAY_NAMES = {
    "inference-service": "Inference service",
    "vision-service": "Vision service",
    "identity-provider": "Identity provider",
    "database": "Database service",
}


@dataclass(frozen=True)
class ServiceUnavailable:
    """Typed "temporarily unavailable" result returned instead of the real one."""

    dependency: str
    error: str
    message: str
    success: bool = False
    fallback: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def classify(exc: Optional[BaseException]) -> str:
    if isinstance(exc, DependencyTimeoutError):
        return "timeout"
    if exc is None or isinstance(exc, CircuitOpenError):
        return "circuit_open"
    return "failure"


def display_name(dependency: str) -> str:
    if dependency in _DISPLAY_NAMES:
        return _DISPLAY_NAMES[dependency]
    return "External service"


def unavailable_fallback(dependency: str, message: Optional[str] = None) -> Fallback:
    """Default fallback for `dependency`: a `ServiceUnavailable` value."""
    text = message or f"{display_name(dependency)} temporarily unavailable"

    def _fallback(exc: Optional[BaseException] = None) -> ServiceUnavailable:
        return ServiceUnavailable(dependency=dependency, error=classify(exc), message=text)

    return _fallback
