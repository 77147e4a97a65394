from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Optional

from storeops.utils.logger import get_logger

from ..retry.service import RetryService, retry_service

logger = get_logger(__name__)


async def reprocess_pending(
    source_queue: str,
    handler: Callable[[Any], Awaitable[Any]],
    *,
    resolved_by: str,
    max_items: int = 100,
    service: Optional[RetryService] = None,
) -> Dict[str, int]:
    """
    Convenience processor that runs `RetryService.reprocess_dlq_item` over the
    pending records of one source, newest first.
    """
    svc = service or retry_service
    items = await svc.get_dlq_items(source_queue, limit=max_items)
    summary = {"processed": 0, "resolved": 0, "failed": 0}
    for item in items:
        outcome = await svc.reprocess_dlq_item(item.id, handler, resolved_by)
        summary["processed"] += 1
        if outcome.resolved:
            summary["resolved"] += 1
        else:
            summary["failed"] += 1
    logger.info("dlq_processed_batch", queue=source_queue, **summary)
    return summary
