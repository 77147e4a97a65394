from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from .backoff import raw_delay


@dataclass
class ExponentialBackoffStrategy:
    """Exponential backoff in milliseconds with a cap and multiplier."""

    initial_delay_ms: float = 1000.0
    backoff_factor: float = 2.0
    max_delay_ms: float = 30_000.0

    def delay_for(self, attempt: int) -> float:
        return raw_delay(
            attempt, self.initial_delay_ms, self.max_delay_ms, self.backoff_factor
        )

    def delays(self, max_attempts: int) -> Iterator[float]:
        for attempt in range(max_attempts):
            yield self.delay_for(attempt)
