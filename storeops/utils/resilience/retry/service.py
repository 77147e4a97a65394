"""
Retry engine with exponential backoff, jitter and dead-letter escalation.

Usage:
    outcome = await retry_service.execute(
        "notifications",
        lambda: send_notification(data),
        RetryOptions(max_retries=3, payload=data),
    )
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field, replace
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    Iterable,
    List,
    NamedTuple,
    Optional,
    TypeVar,
)

from storeops.core.config import settings
from storeops.models.dead_letter import DeadLetterRecord, ResolutionType
from storeops.utils.logger import get_logger

from ..dead_letter.queue import DeadLetterQueue
from .backoff import proportional_jitter
from .strategies import ExponentialBackoffStrategy

logger = get_logger(__name__)

T = TypeVar("T")

ShouldRetry = Callable[[BaseException, int], bool]
OnRetry = Callable[[BaseException, int, int], None]


def _always_retry(error: BaseException, attempt: int) -> bool:
    return True


@dataclass
class RetryOptions:
    """
    Retry policy for one `execute` call.

    `payload`, `original_id` and `metadata` are only used when the call
    ultimately fails; a None payload means no dead-letter record is written.
    """

    max_retries: int = field(default_factory=lambda: settings.RETRY_MAX_RETRIES)
    initial_delay_ms: float = field(default_factory=lambda: settings.RETRY_INITIAL_DELAY_MS)
    max_delay_ms: float = field(default_factory=lambda: settings.RETRY_MAX_DELAY_MS)
    backoff_factor: float = field(default_factory=lambda: settings.RETRY_BACKOFF_FACTOR)
    jitter_ratio: float = field(default_factory=lambda: settings.RETRY_JITTER_RATIO)
    should_retry: ShouldRetry = _always_retry
    on_retry: Optional[OnRetry] = None
    payload: Any = None
    original_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be >= 1")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def backoff(self) -> ExponentialBackoffStrategy:
        return ExponentialBackoffStrategy(
            initial_delay_ms=self.initial_delay_ms,
            backoff_factor=self.backoff_factor,
            max_delay_ms=self.max_delay_ms,
        )

    def replace(self, **changes: Any) -> "RetryOptions":
        return replace(self, **changes)


@dataclass
class RetryOutcome(Generic[T]):
    success: bool
    attempts: int
    data: Optional[T] = None
    error: Optional[BaseException] = None
    dlq_id: Optional[str] = None


@dataclass
class ReprocessOutcome(RetryOutcome[T]):
    resolved: bool = False


class RetryTask(NamedTuple):
    action: Callable[[], Awaitable[Any]]
    payload: Any = None
    id: Optional[str] = None


class RetryService:
    """
    Runs async units of work with bounded, jittered exponential backoff.

    Work that exhausts its attempts (or is vetoed by `should_retry`) is
    written to the dead letter queue when a payload was supplied.
    """

    def __init__(
        self,
        dlq: Optional[DeadLetterQueue] = None,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self._dlq = dlq
        self._sleep = sleep
        self._rng = rng

    @property
    def dlq(self) -> DeadLetterQueue:
        if self._dlq is None:
            self._dlq = DeadLetterQueue()
        return self._dlq

    async def execute(
        self,
        queue_name: str,
        action: Callable[[], Awaitable[T]],
        options: Optional[RetryOptions] = None,
    ) -> RetryOutcome[T]:
        opts = options or RetryOptions()
        delays = proportional_jitter(
            opts.backoff().delays(opts.max_retries), opts.jitter_ratio, self._rng
        )
        last_error: Optional[BaseException] = None
        attempt = 0

        while attempt <= opts.max_retries:
            try:
                result = await action()
            except Exception as exc:  # noqa: BLE001 - every failure is a retry candidate
                last_error = exc
                attempt += 1
                logger.warning(
                    "retry_attempt_failed",
                    queue=queue_name,
                    attempt=attempt,
                    max_attempts=opts.max_attempts,
                    error=str(exc),
                )

                if attempt > opts.max_retries:
                    break
                if not opts.should_retry(exc, attempt):
                    logger.info(
                        "retry_vetoed", queue=queue_name, attempt=attempt, error=str(exc)
                    )
                    break

                delay = next(delays)
                if opts.on_retry is not None:
                    try:
                        opts.on_retry(exc, attempt, delay)
                    except Exception as hook_exc:  # noqa: BLE001 - observation only
                        logger.error(
                            "retry_hook_failed", queue=queue_name, error=str(hook_exc)
                        )

                logger.info(
                    "retry_scheduled", queue=queue_name, attempt=attempt, delay_ms=delay
                )
                await self._sleep(delay / 1000.0)
            else:
                return RetryOutcome(success=True, data=result, attempts=attempt + 1)

        logger.error(
            "retry_exhausted",
            queue=queue_name,
            attempts=attempt,
            error=str(last_error),
        )

        dlq_id: Optional[str] = None
        if opts.payload is not None:
            dlq_id = await self.dlq.add_to_dlq(
                queue_name,
                opts.payload,
                last_error,
                attempts=attempt,
                max_attempts=opts.max_attempts,
                original_id=opts.original_id,
                metadata=opts.metadata,
            )

        return RetryOutcome(
            success=False, error=last_error, attempts=attempt, dlq_id=dlq_id
        )

    async def execute_all(
        self,
        queue_name: str,
        tasks: Iterable[RetryTask],
        options: Optional[RetryOptions] = None,
    ) -> List[RetryOutcome[Any]]:
        """Run independent tasks concurrently; results keep input order."""
        base = options or RetryOptions()
        coros = [
            self.execute(
                queue_name,
                task.action,
                base.replace(payload=task.payload, original_id=task.id),
            )
            for task in (RetryTask(*t) for t in tasks)
        ]
        return list(await asyncio.gather(*coros))

    # -- dead letter administration ----------------------------------------

    async def get_dlq_items(
        self, source_queue: Optional[str] = None, limit: Optional[int] = None
    ) -> List[DeadLetterRecord]:
        return await self.dlq.get_dlq_items(source_queue, limit)

    async def resolve_dlq_item(
        self,
        dlq_id: str,
        resolved_by: str,
        resolution_type: ResolutionType | str,
        notes: Optional[str] = None,
    ) -> bool:
        return await self.dlq.resolve_dlq_item(dlq_id, resolved_by, resolution_type, notes)

    async def get_dlq_stats(self) -> Dict[str, Dict[str, int]]:
        return await self.dlq.get_dlq_stats()

    async def reprocess_dlq_item(
        self,
        dlq_id: str,
        action: Callable[[Any], Awaitable[T]],
        resolved_by: str,
    ) -> ReprocessOutcome[T]:
        """
        Re-run a pending record's payload once.

        Success resolves the record as "reprocessed"; failure leaves it pending
        and does not write another record.
        """
        record = await self.dlq.get_dlq_item(dlq_id)
        if record is None:
            return ReprocessOutcome(
                success=False,
                attempts=0,
                error=LookupError("DLQ item not found or already resolved"),
                resolved=False,
            )

        payload = record.payload
        outcome = await self.execute(
            record.source_queue,
            lambda: action(payload),
            RetryOptions(max_retries=0),
        )

        resolved = False
        if outcome.success:
            resolved = await self.resolve_dlq_item(
                dlq_id, resolved_by, ResolutionType.REPROCESSED
            )
        else:
            logger.warning(
                "dlq_reprocess_failed",
                dlq_id=dlq_id,
                queue=record.source_queue,
                error=str(outcome.error),
            )

        return ReprocessOutcome(
            success=outcome.success,
            attempts=outcome.attempts,
            data=outcome.data,
            error=outcome.error,
            resolved=resolved,
        )


retry_service = RetryService()
