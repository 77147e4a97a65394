from __future__ import annotations

import asyncio
import functools
import inspect
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from storeops.utils.logger import add_dependency_context, get_logger

from ..errors import CircuitOpenError, DependencyTimeoutError
from .fallbacks import Fallback, classify, unavailable_fallback
from .monitoring import circuit_metrics
from .policies import BreakerConfig, BreakerStats, ErrorRatePolicy

logger = get_logger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


# (event, circuit name, details) -> None; side effects only
Listener = Callable[[str, str, Dict[str, Any]], None]


@dataclass
class BreakerMetrics:
    name: str
    state: CircuitState
    stats: BreakerStats
    config: BreakerConfig
    opened_at: Optional[float] = None
    last_transition_at: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "stats": self.stats.to_dict(),
            "config": self.config.to_dict(),
            "opened_at": self.opened_at,
            "last_transition_at": self.last_transition_at,
        }


@dataclass
class CircuitBreaker:
    """
    Async-first, percentage-based circuit breaker with a single HALF-OPEN probe.

    - CLOSED: calls pass through under `timeout_ms`; once the window holds
      `volume_threshold` outcomes and the failure share reaches
      `error_threshold_percentage` -> OPEN.
    - OPEN: calls are rejected and answered by the fallback until
      `reset_timeout_ms` elapses -> HALF_OPEN.
    - HALF_OPEN: the next call is the probe, concurrent calls are rejected.
      Probe success -> CLOSED (counters reset); probe failure -> OPEN.

    State is only mutated between awaits, so one event loop needs no lock.
    """

    name: str
    config: BreakerConfig = field(default_factory=BreakerConfig)
    fallback: Optional[Fallback] = None
    clock: Callable[[], float] = time.monotonic

    _state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    _stats: BreakerStats = field(default_factory=BreakerStats, init=False)
    _window_started_at: float = field(default=0.0, init=False)
    _opened_at: Optional[float] = field(default=None, init=False)
    _last_transition_at: float = field(default=0.0, init=False)
    _probe_in_flight: bool = field(default=False, init=False)
    _listeners: List[Listener] = field(default_factory=list, init=False)

    def __post_init__(self) -> None:
        self._policy = ErrorRatePolicy.from_config(self.config)
        self._log = logger.bind(**add_dependency_context(self.name))
        now = self.clock()
        self._window_started_at = now
        self._last_transition_at = now
        circuit_metrics.set_state(self.name, self._state)

    # -- state machine -----------------------------------------------------

    def _elapsed_ms(self, since: float) -> float:
        return (self.clock() - since) * 1000.0

    def _transition(self, new_state: CircuitState) -> None:
        if self._state == new_state:
            return
        prev = self._state
        self._state = new_state
        now = self.clock()
        self._last_transition_at = now
        if new_state == CircuitState.OPEN:
            self._opened_at = now
        elif new_state == CircuitState.CLOSED:
            self._opened_at = None
            self._reset_window(now)

        log = self._log.warning if new_state == CircuitState.OPEN else self._log.info
        log(
            "circuit_state_change",
            from_state=prev.value,
            to_state=new_state.value,
        )
        circuit_metrics.set_state(self.name, new_state)
        self._notify(new_state.value, {"from_state": prev.value})

    def _refresh_state(self) -> None:
        # OPEN -> HALF_OPEN is applied lazily on the next observation
        if (
            self._state == CircuitState.OPEN
            and self._opened_at is not None
            and self._elapsed_ms(self._opened_at) >= self.config.reset_timeout_ms
        ):
            self._transition(CircuitState.HALF_OPEN)

    def _reset_window(self, now: float) -> None:
        self._stats = BreakerStats()
        self._window_started_at = now

    def _roll_window(self) -> None:
        if (
            self._state == CircuitState.CLOSED
            and self._elapsed_ms(self._window_started_at) >= self.config.rolling_window_ms
        ):
            self._reset_window(self.clock())

    def _retry_after_ms(self) -> Optional[int]:
        if self._state != CircuitState.OPEN or self._opened_at is None:
            return None
        remaining = self.config.reset_timeout_ms - self._elapsed_ms(self._opened_at)
        return max(0, int(remaining))

    # -- bookkeeping -------------------------------------------------------

    def _record_success(self, is_probe: bool) -> None:
        self._roll_window()
        self._stats.successes += 1
        circuit_metrics.inc_success(self.name)
        self._notify("success")
        if self._state == CircuitState.HALF_OPEN and is_probe:
            self._transition(CircuitState.CLOSED)

    def _record_failure(self, is_probe: bool, *, timed_out: bool = False) -> None:
        self._roll_window()
        self._stats.failures += 1
        circuit_metrics.inc_failure(self.name)
        if timed_out:
            self._stats.timeouts += 1
            circuit_metrics.inc_timeout(self.name)
            self._log.warning("circuit_timeout", timeout_ms=self.config.timeout_ms)
            self._notify("timeout", {"timeout_ms": self.config.timeout_ms})
        self._notify("failure")

        if self._state == CircuitState.HALF_OPEN and is_probe:
            # Failed probe restarts the reset timer
            self._transition(CircuitState.OPEN)
        elif self._state == CircuitState.CLOSED and self._policy.should_open(self._stats):
            self._transition(CircuitState.OPEN)

    async def _invoke_fallback(self, handler: Fallback, error: BaseException) -> Any:
        self._stats.fallbacks += 1
        circuit_metrics.inc_fallback(self.name)
        reason = classify(error)
        self._log.warning("circuit_fallback", reason=reason)
        self._notify("fallback", {"reason": reason})
        result = handler(error)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _reject(self, handler: Optional[Fallback]) -> Any:
        self._stats.rejects += 1
        circuit_metrics.inc_rejected(self.name)
        error = CircuitOpenError(self.name, self._retry_after_ms())
        self._notify("reject", {"retry_after_ms": error.retry_after_ms})
        # The circuit-open case never raises: fall back to the typed default
        return await self._invoke_fallback(
            handler or unavailable_fallback(self.name), error
        )

    def _notify(self, event: str, details: Optional[Dict[str, Any]] = None) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, self.name, details or {})
            except Exception as exc:  # noqa: BLE001 - listeners must not break calls
                self._log.error(
                    "circuit_listener_error", hook_event=event, error=str(exc)
                )

    # -- public API --------------------------------------------------------

    @property
    def state(self) -> CircuitState:
        self._refresh_state()
        return self._state

    @property
    def stats(self) -> BreakerStats:
        return self._stats

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def fire(
        self,
        action: Callable[[], Awaitable[Any]],
        fallback: Optional[Fallback] = None,
    ) -> Any:
        """
        Invoke `action` through the breaker.

        Returns the action's result or the fallback's. Rejections always go
        through a fallback; timeouts and failures raise only when no fallback
        is available.
        """
        handler = fallback or self.fallback
        self._refresh_state()

        if self._state == CircuitState.OPEN or (
            self._state == CircuitState.HALF_OPEN and self._probe_in_flight
        ):
            return await self._reject(handler)

        is_probe = self._state == CircuitState.HALF_OPEN
        if is_probe:
            self._probe_in_flight = True

        deadline = asyncio.timeout(self.config.timeout_ms / 1000.0)
        try:
            async with deadline:
                result = await action()
        except TimeoutError as exc:
            if not deadline.expired():
                # The action's own timeout, not the breaker deadline
                self._record_failure(is_probe)
                if handler is None:
                    raise
                return await self._invoke_fallback(handler, exc)
            error = DependencyTimeoutError(self.name, self.config.timeout_ms)
            self._record_failure(is_probe, timed_out=True)
            if handler is None:
                raise error from None
            return await self._invoke_fallback(handler, error)
        except asyncio.CancelledError:
            # A cancelled attempt still counts against the dependency
            self._record_failure(is_probe)
            raise
        except Exception as exc:  # noqa: BLE001 - counted, then re-raised or answered
            self._record_failure(is_probe)
            if handler is None:
                raise
            return await self._invoke_fallback(handler, exc)
        finally:
            if is_probe:
                self._probe_in_flight = False

        self._record_success(is_probe)
        return result

    async def __call__(
        self, action: Callable[[], Awaitable[Any]], fallback: Optional[Fallback] = None
    ) -> Any:
        return await self.fire(action, fallback)

    def decorate(self, func: Callable[..., Awaitable[Any]]):
        """Decorator for async call-sites."""

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any):
            return await self.fire(lambda: func(*args, **kwargs))

        return wrapper

    def reset(self) -> None:
        """Force CLOSED with fresh counters (operational / test use)."""
        self._probe_in_flight = False
        if self._state == CircuitState.CLOSED:
            self._reset_window(self.clock())
        else:
            self._transition(CircuitState.CLOSED)
        self._log.info("circuit_reset")

    def metrics(self) -> BreakerMetrics:
        self._refresh_state()
        return BreakerMetrics(
            name=self.name,
            state=self._state,
            stats=replace(self._stats),
            config=self.config,
            opened_at=self._opened_at,
            last_transition_at=self._last_transition_at,
        )
