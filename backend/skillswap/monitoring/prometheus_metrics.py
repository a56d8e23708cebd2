"""
Prometheus metrics module for SkillSwap.

Service operation timings come from the @measure_operation decorator; the
booking lock and the capacity arbiter record their own counters.
"""

from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "skillswap_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "skillswap_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "skillswap_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

booking_lock_total = Counter(
    "skillswap_booking_lock_total",
    "Booking lock acquire/release attempts",
    ["action", "outcome"],
    registry=REGISTRY,
)

capacity_decisions_total = Counter(
    "skillswap_capacity_decisions_total",
    "Capacity arbiter decisions by outcome",
    ["outcome"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    CONTENT_TYPE = CONTENT_TYPE_LATEST

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'BookingWorkflow')
            operation: Operation/method name (e.g., 'accept_request')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()

        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_booking_lock(action: str, outcome: str) -> None:
        booking_lock_total.labels(action=action, outcome=outcome).inc()

    @staticmethod
    def record_capacity_decision(outcome: str) -> None:
        capacity_decisions_total.labels(outcome=outcome).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Render the registry in Prometheus text format."""
        return generate_latest(REGISTRY)


prometheus_metrics = PrometheusMetrics()
