"""
Process-wide registry of named circuit breakers.

One breaker per logical dependency ("inference-service", "database",
"external:<name>", ...). Breakers are created lazily on first use and live for
the lifetime of the process; a worker restart resets them.
"""

from __future__ import annotations

import time
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from storeops.core.config import settings
from storeops.utils.logger import get_logger

from .breaker import BreakerMetrics, CircuitBreaker, Listener
from .fallbacks import Fallback, unavailable_fallback
from .policies import DEFAULT_BREAKER_CONFIGS, BreakerConfig, resolve_breaker_config

logger = get_logger(__name__)


class BreakerRegistry:
    """Create-or-fetch store of `CircuitBreaker` instances keyed by name."""

    def __init__(
        self,
        defaults: Optional[Mapping[str, BreakerConfig]] = None,
        overrides: Optional[Mapping[str, Mapping[str, Any]]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._defaults = dict(DEFAULT_BREAKER_CONFIGS if defaults is None else defaults)
        self._overrides = dict(
            settings.CIRCUIT_BREAKER_OVERRIDES if overrides is None else overrides
        )
        self._clock = clock
        self._breakers: Dict[str, CircuitBreaker] = {}
        self._listeners: List[Listener] = []

    def get(
        self,
        name: str,
        fallback: Optional[Fallback] = None,
        **config_overrides: Any,
    ) -> CircuitBreaker:
        """
        Return the breaker for `name`, creating it on first use.

        Config and fallback only apply at creation; later calls get the
        existing breaker unchanged.
        """
        breaker = self._breakers.get(name)
        if breaker is not None:
            return breaker

        config = resolve_breaker_config(
            name,
            defaults=self._defaults,
            overrides=self._overrides,
            **config_overrides,
        )
        breaker = CircuitBreaker(
            name=name,
            config=config,
            fallback=fallback or unavailable_fallback(name),
            clock=self._clock,
        )
        for listener in self._listeners:
            breaker.add_listener(listener)
        self._breakers[name] = breaker
        logger.info("circuit_registered", circuit=name, **config.to_dict())
        return breaker

    async def fire(
        self,
        name: str,
        action: Callable[[], Awaitable[Any]],
        fallback: Optional[Fallback] = None,
        **config_overrides: Any,
    ) -> Any:
        return await self.get(name, **config_overrides).fire(action, fallback)

    def add_listener(self, listener: Listener) -> None:
        """Attach `listener` to every current and future breaker."""
        self._listeners.append(listener)
        for breaker in self._breakers.values():
            breaker.add_listener(listener)

    def names(self) -> List[str]:
        return list(self._breakers)

    def get_status(self, name: str) -> Optional[BreakerMetrics]:
        breaker = self._breakers.get(name)
        if breaker is None:
            return None
        return breaker.metrics()

    def reset(self, name: str) -> bool:
        breaker = self._breakers.get(name)
        if breaker is None:
            return False
        breaker.reset()
        return True

    def reset_all(self) -> None:
        for breaker in self._breakers.values():
            breaker.reset()

    def list_metrics(self) -> List[BreakerMetrics]:
        return [breaker.metrics() for breaker in self._breakers.values()]

    def clear(self) -> None:
        """Forget every breaker (tests only)."""
        self._breakers.clear()


breaker_registry = BreakerRegistry()


async def with_circuit_breaker(
    name: str,
    action: Callable[[], Awaitable[Any]],
    fallback: Optional[Fallback] = None,
    **config_overrides: Any,
) -> Any:
    """Run `action` through the process-wide breaker named `name`."""
    return await breaker_registry.fire(name, action, fallback, **config_overrides)


def get_circuit_breaker_metrics() -> List[Dict[str, Any]]:
    return [m.to_dict() for m in breaker_registry.list_metrics()]


def get_circuit_breaker_status(name: str) -> Optional[Dict[str, Any]]:
    status = breaker_registry.get_status(name)
    return status.to_dict() if status else None


def reset_circuit_breaker(name: str) -> bool:
    return breaker_registry.reset(name)


def reset_all_circuit_breakers() -> None:
    breaker_registry.reset_all()


class DependencyBreaker:
    """Pre-bound facade for one well-known dependency."""

    def __init__(self, name: str, registry: Optional[BreakerRegistry] = None) -> None:
        self.name = name
        self._registry = registry

    @property
    def registry(self) -> BreakerRegistry:
        return self._registry or breaker_registry

    async def fire(
        self, action: Callable[[], Awaitable[Any]], fallback: Optional[Fallback] = None
    ) -> Any:
        return await self.registry.fire(self.name, action, fallback)

    def get_status(self) -> Optional[BreakerMetrics]:
        return self.registry.get_status(self.name)

    def reset(self) -> bool:
        return self.registry.reset(self.name)


class ExternalBreakers:
    """Facade for arbitrary third-party APIs, one breaker per `external:<name>`."""

    prefix = "external:"

    def __init__(self, registry: Optional[BreakerRegistry] = None) -> None:
        self._registry = registry

    @property
    def registry(self) -> BreakerRegistry:
        return self._registry or breaker_registry

    async def fire(
        self,
        name: str,
        action: Callable[[], Awaitable[Any]],
        fallback: Optional[Fallback] = None,
        timeout_ms: Optional[int] = None,
    ) -> Any:
        return await self.registry.fire(
            f"{self.prefix}{name}", action, fallback, timeout_ms=timeout_ms
        )

    def get_status(self, name: str) -> Optional[BreakerMetrics]:
        return self.registry.get_status(f"{self.prefix}{name}")

    def reset(self, name: str) -> bool:
        return self.registry.reset(f"{self.prefix}{name}")


class _CircuitBreakers:
    def __init__(self, registry: Optional[BreakerRegistry] = None) -> None:
        self.inference = DependencyBreaker("inference-service", registry)
        self.vision = DependencyBreaker("vision-service", registry)
        self.identity = DependencyBreaker("identity-provider", registry)
        self.database = DependencyBreaker("database", registry)
        self.external = ExternalBreakers(registry)


circuit_breakers = _CircuitBreakers()
