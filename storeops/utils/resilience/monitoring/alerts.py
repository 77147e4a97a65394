from __future__ import annotations

from typing import Any, Dict

from storeops.utils.logger import get_logger

logger = get_logger(__name__)


class AlertManager:
    """Lightweight alert manager.

    Integrate with your existing alerting stack (e.g., Sentry, PagerDuty) here.
    """

    def fire(
        self,
        title: str,
        *,
        severity: str = "warning",
        context: Dict[str, Any] | None = None,
    ) -> None:
        ctx = context or {}
        logger.warning("resilience_alert", title=title, severity=severity, **ctx)

    def on_circuit_event(self, event: str, circuit: str, details: Dict[str, Any]) -> None:
        """Breaker listener: alert when a dependency is cut off or recovers."""
        if event == "open":
            self.fire(
                f"Circuit '{circuit}' opened",
                severity="critical",
                context={"circuit": circuit, **details},
            )
        elif event == "closed":
            self.fire(
                f"Circuit '{circuit}' recovered",
                severity="info",
                context={"circuit": circuit, **details},
            )
