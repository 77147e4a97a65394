from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from storeops.core.config import settings
from storeops.utils.logger import get_logger

from ..circuit_breaker.breaker import CircuitState
from ..circuit_breaker.registry import BreakerRegistry, breaker_registry
from ..dead_letter.queue import DeadLetterQueue
from ..errors import DeadLetterError

logger = get_logger(__name__)

HEALTHY = "healthy"
DEGRADED = "degraded"
UNHEALTHY = "unhealthy"


class ResilienceHealthChecker:
    """Collects health indicators for circuit breakers and the DLQ backlog."""

    def __init__(
        self,
        registry: Optional[BreakerRegistry] = None,
        dlq: Optional[DeadLetterQueue] = None,
        backlog_threshold: Optional[int] = None,
    ) -> None:
        self._registry = registry
        self._dlq = dlq
        self.backlog_threshold = (
            settings.DLQ_BACKLOG_DEGRADED_THRESHOLD
            if backlog_threshold is None
            else backlog_threshold
        )

    @property
    def registry(self) -> BreakerRegistry:
        return self._registry or breaker_registry

    @property
    def dlq(self) -> DeadLetterQueue:
        if self._dlq is None:
            self._dlq = DeadLetterQueue()
        return self._dlq

    def check_circuit_breakers(self) -> Dict[str, Any]:
        metrics = self.registry.list_metrics()
        if not metrics:
            return {
                "name": "circuit_breakers",
                "status": HEALTHY,
                "message": "No circuit breakers active yet",
                "details": {"breakers": [], "totals": {}},
            }

        open_names = [m.name for m in metrics if m.state == CircuitState.OPEN]
        half_open = [m.name for m in metrics if m.state == CircuitState.HALF_OPEN]

        status = HEALTHY
        message = "All circuit breakers closed"
        if open_names:
            status = DEGRADED
            message = f"{len(open_names)} circuit breaker(s) open: {', '.join(open_names)}"
        elif half_open:
            message = f"{len(half_open)} circuit breaker(s) recovering"

        totals = {"successes": 0, "failures": 0, "timeouts": 0, "fallbacks": 0}
        for m in metrics:
            for key in totals:
                totals[key] += getattr(m.stats, key)

        return {
            "name": "circuit_breakers",
            "status": status,
            "message": message,
            "details": {
                "breakers": [
                    {"name": m.name, "state": m.state.value, **m.stats.to_dict()}
                    for m in metrics
                ],
                "totals": totals,
            },
        }

    async def check_dead_letter_queue(self) -> Dict[str, Any]:
        try:
            stats = await self.dlq.read_stats()
        except DeadLetterError as exc:
            logger.error("dlq_health_check_failed", error=str(exc))
            return {
                "name": "dead_letter_queue",
                "status": UNHEALTHY,
                "message": "DLQ storage unavailable",
                "details": {"error": str(exc)},
            }

        pending = sum(s["pending"] for s in stats.values())
        resolved = sum(s["resolved"] for s in stats.values())

        status = HEALTHY
        message = "No pending items in DLQ"
        if pending > self.backlog_threshold:
            status = DEGRADED
            message = f"High DLQ backlog: {pending} pending items"
        elif pending > 0:
            message = f"{pending} pending item(s) in DLQ"

        return {
            "name": "dead_letter_queue",
            "status": status,
            "message": message,
            "details": {"pending": pending, "resolved": resolved, "by_queue": stats},
        }

    async def health(self) -> Dict[str, Any]:
        checks = [self.check_circuit_breakers(), await self.check_dead_letter_queue()]
        statuses = {c["status"] for c in checks}
        if UNHEALTHY in statuses:
            overall = UNHEALTHY
        elif statuses != {HEALTHY}:
            overall = DEGRADED
        else:
            overall = HEALTHY
        return {"status": overall, "checks": checks}

    async def snapshot(self) -> Dict[str, Any]:
        """
        Build a point-in-time snapshot of resilience state for dashboards.
        """
        metrics = self.registry.list_metrics()

        open_count = sum(1 for m in metrics if m.state == CircuitState.OPEN)
        half_open_count = sum(1 for m in metrics if m.state == CircuitState.HALF_OPEN)

        try:
            dlq_stats = await self.dlq.read_stats()
        except DeadLetterError as exc:
            logger.error("dlq_snapshot_failed", error=str(exc))
            dlq: Dict[str, Any] = {"pending": None, "by_queue": {}, "error": str(exc)}
            health = UNHEALTHY
        else:
            pending = sum(s["pending"] for s in dlq_stats.values())
            dlq = {"pending": pending, "by_queue": dlq_stats}
            healthy = open_count == 0 and pending <= self.backlog_threshold
            health = HEALTHY if healthy else DEGRADED

        return {
            "type": "resilience",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "circuit_breakers": {
                "total": len(metrics),
                "open": open_count,
                "half_open": half_open_count,
                "closed": len(metrics) - open_count - half_open_count,
                "details": [m.to_dict() for m in metrics],
            },
            "dlq": dlq,
            "health": health,
        }
