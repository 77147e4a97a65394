from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from storeops.core.config import settings
from storeops.utils.logger import get_logger
from storeops.utils.resilience.circuit_breaker.registry import (
    BreakerRegistry,
    breaker_registry,
)
from storeops.utils.resilience.dead_letter.queue import DeadLetterQueue
from storeops.utils.resilience.monitoring.health import ResilienceHealthChecker

from .resilience_schemas import QueueStats, ResetResponse, ResolveRequest, ResolveResponse

logger = get_logger(__name__)

router = APIRouter(tags=["resilience"], prefix="/resilience")

_dlq: Optional[DeadLetterQueue] = None


def get_registry() -> BreakerRegistry:
    return breaker_registry


def get_dead_letter_queue() -> DeadLetterQueue:
    global _dlq
    if _dlq is None:
        _dlq = DeadLetterQueue()
    return _dlq


def get_health_checker(
    registry: BreakerRegistry = Depends(get_registry),
    dlq: DeadLetterQueue = Depends(get_dead_letter_queue),
) -> ResilienceHealthChecker:
    return ResilienceHealthChecker(registry=registry, dlq=dlq)


@router.get("/metrics")
async def resilience_metrics(
    checker: ResilienceHealthChecker = Depends(get_health_checker),
) -> Dict[str, Any]:
    """Breaker states and DLQ backlog for dashboards and runbooks."""
    return await checker.snapshot()


@router.get("/health")
async def resilience_health(
    checker: ResilienceHealthChecker = Depends(get_health_checker),
) -> Dict[str, Any]:
    return await checker.health()


@router.get("/circuit-breakers")
async def list_circuit_breakers(
    registry: BreakerRegistry = Depends(get_registry),
) -> List[Dict[str, Any]]:
    return [m.to_dict() for m in registry.list_metrics()]


@router.get("/circuit-breakers/{name}")
async def circuit_breaker_status(
    name: str, registry: BreakerRegistry = Depends(get_registry)
) -> Dict[str, Any]:
    status = registry.get_status(name)
    if status is None:
        raise HTTPException(status_code=404, detail=f"Unknown circuit breaker '{name}'")
    return status.to_dict()


@router.post("/circuit-breakers/reset", response_model=ResetResponse)
async def reset_all_breakers(
    registry: BreakerRegistry = Depends(get_registry),
) -> ResetResponse:
    registry.reset_all()
    logger.warning("circuit_breakers_reset_all", count=len(registry.names()))
    return ResetResponse(reset=True)


@router.post("/circuit-breakers/{name}/reset", response_model=ResetResponse)
async def reset_breaker(
    name: str, registry: BreakerRegistry = Depends(get_registry)
) -> ResetResponse:
    if not registry.reset(name):
        raise HTTPException(status_code=404, detail=f"Unknown circuit breaker '{name}'")
    logger.warning("circuit_breaker_reset", circuit=name)
    status = registry.get_status(name)
    return ResetResponse(name=name, reset=True, status=status.to_dict() if status else None)


@router.get("/dlq")
async def list_dlq_items(
    source_queue: Optional[str] = None,
    limit: int = Query(default=settings.DLQ_DEFAULT_LIMIT, ge=1, le=500),
    dlq: DeadLetterQueue = Depends(get_dead_letter_queue),
) -> List[Dict[str, Any]]:
    items = await dlq.get_dlq_items(source_queue, limit)
    return [item.to_dict() for item in items]


@router.get("/dlq/stats", response_model=Dict[str, QueueStats])
async def dlq_stats(
    dlq: DeadLetterQueue = Depends(get_dead_letter_queue),
) -> Dict[str, QueueStats]:
    stats = await dlq.get_dlq_stats()
    return {queue: QueueStats(**counts) for queue, counts in stats.items()}


@router.post("/dlq/{dlq_id}/resolve", response_model=ResolveResponse)
async def resolve_dlq_item(
    dlq_id: str,
    body: ResolveRequest,
    dlq: DeadLetterQueue = Depends(get_dead_letter_queue),
) -> ResolveResponse:
    resolved = await dlq.resolve_dlq_item(
        dlq_id, body.resolved_by, body.resolution_type, body.notes
    )
    return ResolveResponse(id=dlq_id, resolved=resolved)
