"""
Observability hooks for non-fatal events.

The entitlement engine reports fail-open events here instead of raising.
"""

from typing import Any, Dict, Optional

from .logging import get_logger
from .metrics import MetricsCollector


class ErrorReporter:
    """Accepts (error, context) pairs for events that were handled by failing open."""

    def __init__(self, service_name: str, metrics: Optional[MetricsCollector] = None):
        self.service_name = service_name
        self.metrics = metrics
        self.logger = get_logger(f"{service_name}.observability")

    def report(self, error: BaseException, context: Optional[Dict[str, Any]] = None) -> None:
        """Log the error with its context and count it."""
        context = dict(context or {})
        error_type = type(error).__name__
        try:
            self.logger.error(
                "Non-fatal error",
                error_type=error_type,
                error=str(error),
                **context
            )
            if self.metrics is not None:
                self.metrics.record_error(error_type)
                resource = context.get("resource")
                if resource:
                    self.metrics.increment_counter("limit_check_fail_open_total", resource=resource)
        except Exception as exc:  # never raises
            self.logger.warning("Error reporter failed", error=str(exc))
