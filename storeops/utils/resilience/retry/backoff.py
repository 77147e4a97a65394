from __future__ import annotations

import math
import random
from typing import Callable, Iterable, Iterator


def proportional_jitter(
    delays: Iterable[float],
    ratio: float = 0.25,
    rng: Callable[[], float] = random.random,
) -> Iterator[int]:
    """
    Apply +/-`ratio` uniform jitter to a sequence of base delays (ms).

    For each base delay d, yield floor(d + d * ratio * u) with u in [-1, 1).
    """
    for d in delays:
        base = max(0.0, d)
        yield int(math.floor(base + base * ratio * (rng() * 2 - 1)))


def raw_delay(
    attempt: int, initial_delay_ms: float, max_delay_ms: float, backoff_factor: float
) -> float:
    """min(initial * factor ** attempt, max) for a 0-indexed attempt."""
    try:
        delay = initial_delay_ms * backoff_factor**attempt
    except OverflowError:
        return float(max_delay_ms)
    return min(delay, max_delay_ms)


def compute_delay(
    attempt: int,
    initial_delay_ms: float,
    max_delay_ms: float,
    backoff_factor: float,
    jitter_ratio: float = 0.25,
    rng: Callable[[], float] = random.random,
) -> int:
    """Jittered, capped exponential delay in whole milliseconds."""
    base = raw_delay(attempt, initial_delay_ms, max_delay_ms, backoff_factor)
    return next(proportional_jitter([base], jitter_ratio, rng))
