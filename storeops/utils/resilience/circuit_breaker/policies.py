from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional

from storeops.core.config import settings

GENERIC_DEPENDENCY = "external"


@dataclass(frozen=True)
class BreakerConfig:
    """
    Per-dependency breaker tuning.

    `volume_threshold` is the minimum number of settled calls in the current
    window before the error percentage is trusted.
    """

    timeout_ms: int = 10_000
    error_threshold_percentage: float = 50.0
    reset_timeout_ms: int = 30_000
    volume_threshold: int = 5
    rolling_window_ms: int = 10_000

    def merged(self, **overrides: Any) -> "BreakerConfig":
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise TypeError(f"Unknown breaker option(s): {sorted(unknown)}")
        clean = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **clean)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_WINDOW = settings.CIRCUIT_BREAKER_ROLLING_WINDOW_MS

DEFAULT_BREAKER_CONFIGS: Dict[str, BreakerConfig] = {
    # Model inference can be slow
    "inference-service": BreakerConfig(
        timeout_ms=30_000,
        error_threshold_percentage=50,
        reset_timeout_ms=30_000,
        volume_threshold=5,
        rolling_window_ms=_WINDOW,
    ),
    "vision-service": BreakerConfig(
        timeout_ms=15_000,
        error_threshold_percentage=50,
        reset_timeout_ms=30_000,
        volume_threshold=5,
        rolling_window_ms=_WINDOW,
    ),
    "identity-provider": BreakerConfig(
        timeout_ms=10_000,
        error_threshold_percentage=50,
        reset_timeout_ms=30_000,
        volume_threshold=5,
        rolling_window_ms=_WINDOW,
    ),
    # Every page depends on it, so tolerate more errors before cutting it off
    "database": BreakerConfig(
        timeout_ms=10_000,
        error_threshold_percentage=70,
        reset_timeout_ms=15_000,
        volume_threshold=10,
        rolling_window_ms=_WINDOW,
    ),
    GENERIC_DEPENDENCY: BreakerConfig(
        timeout_ms=10_000,
        error_threshold_percentage=50,
        reset_timeout_ms=30_000,
        volume_threshold=5,
        rolling_window_ms=_WINDOW,
    ),
}


def resolve_breaker_config(
    name: str,
    *,
    defaults: Optional[Mapping[str, BreakerConfig]] = None,
    overrides: Optional[Mapping[str, Mapping[str, Any]]] = None,
    **call_overrides: Any,
) -> BreakerConfig:
    """
    Build the effective config for `name`.

    Precedence: call-site overrides > configured overrides for the exact name >
    static entry for the name > generic `external` entry.
    """
    table = DEFAULT_BREAKER_CONFIGS if defaults is None else defaults
    configured = settings.CIRCUIT_BREAKER_OVERRIDES if overrides is None else overrides

    base = table.get(name) or table.get(GENERIC_DEPENDENCY) or BreakerConfig()
    named = configured.get(name)
    if named:
        base = base.merged(**dict(named))
    if call_overrides:
        base = base.merged(**call_overrides)
    return base


@dataclass
class BreakerStats:
    """Rolling outcome counters for one breaker window."""

    successes: int = 0
    failures: int = 0
    timeouts: int = 0
    fallbacks: int = 0
    rejects: int = 0

    @property
    def volume(self) -> int:
        return self.successes + self.failures

    @property
    def failure_rate(self) -> float:
        if self.volume == 0:
            return 0.0
        return self.failures / self.volume

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class ErrorRatePolicy:
    """
    Percentage-of-failures policy.

    The circuit should OPEN once the window holds at least `volume_threshold`
    settled calls and the failure share reaches `error_threshold_percentage`.
    """

    error_threshold_percentage: float = 50.0
    volume_threshold: int = 5

    @classmethod
    def from_config(cls, config: BreakerConfig) -> "ErrorRatePolicy":
        return cls(
            error_threshold_percentage=config.error_threshold_percentage,
            volume_threshold=config.volume_threshold,
        )

    def should_open(self, stats: BreakerStats) -> bool:
        if stats.volume == 0 or stats.volume < self.volume_threshold:
            return False
        return stats.failure_rate * 100 >= self.error_threshold_percentage
