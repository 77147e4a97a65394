import random

import pytest

from storeops.utils.resilience.retry.backoff import (
    compute_delay,
    proportional_jitter,
    raw_delay,
)
from storeops.utils.resilience.retry.strategies import ExponentialBackoffStrategy


@pytest.mark.parametrize(
    "attempt,low,high",
    [(0, 750, 1250), (1, 1500, 2500), (2, 3000, 5000), (5, 22_500, 37_500), (10, 22_500, 37_500)],
)
def test_jittered_delay_stays_within_bounds(attempt, low, high):
    rng = random.Random(attempt)
    for _ in range(200):
        delay = compute_delay(attempt, 1000, 30_000, 2, rng=rng.random)
        assert low <= delay <= high
        assert isinstance(delay, int)


def test_raw_delay_caps_at_max():
    assert raw_delay(0, 1000, 30_000, 2) == 1000
    assert raw_delay(4, 1000, 30_000, 2) == 16_000
    assert raw_delay(5, 1000, 30_000, 2) == 30_000
    assert raw_delay(10_000, 1000, 30_000, 2) == 30_000


def test_jitter_extremes():
    assert list(proportional_jitter([1000], 0.25, lambda: 0.0)) == [750]
    assert list(proportional_jitter([1000], 0.25, lambda: 0.5)) == [1000]
    assert list(proportional_jitter([1000], 0.0, lambda: 0.9)) == [1000]


def test_strategy_yields_uncapped_then_capped_delays():
    strategy = ExponentialBackoffStrategy(initial_delay_ms=500, backoff_factor=3, max_delay_ms=10_000)
    assert list(strategy.delays(5)) == [500, 1500, 4500, 10_000, 10_000]
