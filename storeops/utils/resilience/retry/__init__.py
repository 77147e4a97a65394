from .backoff import compute_delay, proportional_jitter, raw_delay
from .service import (
    ReprocessOutcome,
    RetryOptions,
    RetryOutcome,
    RetryService,
    RetryTask,
    retry_service,
)
from .strategies import ExponentialBackoffStrategy

__all__ = [
    "RetryService",
    "RetryOptions",
    "RetryOutcome",
    "ReprocessOutcome",
    "RetryTask",
    "retry_service",
    "ExponentialBackoffStrategy",
    "compute_delay",
    "proportional_jitter",
    "raw_delay",
]
