"""
Prometheus metrics for the studio booking core.

Service timings come from the @BaseService.measure_operation decorator;
domain counters are recorded by the slot lock, booking and reconciliation
services. All series live on a dedicated registry exposed at /metrics.
"""

from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Dedicated registry so repeated app imports in tests never re-register series
REGISTRY = CollectorRegistry()

NAMESPACE = "studio_booking"

REQUEST_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
OPERATION_BUCKETS = (0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5)
GUARD_BUCKETS = (0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0)

api_request_seconds = Histogram(
    "http_request_duration_seconds",
    "Latency of API requests",
    ["method", "endpoint", "status_code"],
    namespace=NAMESPACE,
    registry=REGISTRY,
    buckets=REQUEST_BUCKETS,
)

api_requests = Counter(
    "http_requests_total",
    "API requests served",
    ["method", "endpoint", "status_code"],
    namespace=NAMESPACE,
    registry=REGISTRY,
)

operation_seconds = Histogram(
    "service_operation_duration_seconds",
    "Latency of measured service operations",
    ["service", "operation"],
    namespace=NAMESPACE,
    registry=REGISTRY,
    buckets=OPERATION_BUCKETS,
)

operations = Counter(
    "service_operations_total",
    "Measured service operations by status",
    ["service", "operation", "status"],
    namespace=NAMESPACE,
    registry=REGISTRY,
)

errors = Counter(
    "errors_total",
    "Failed operations and API errors by error type",
    ["service", "operation", "error_type"],
    namespace=NAMESPACE,
    registry=REGISTRY,
)

slot_lock_attempts = Counter(
    "slot_lock_attempts_total",
    "Slot lock acquisition attempts by outcome",
    ["outcome"],  # acquired | conflict | unavailable
    namespace=NAMESPACE,
    registry=REGISTRY,
)

slot_locks_expired = Counter(
    "slot_locks_expired_total",
    "Expired slot locks purged",
    namespace=NAMESPACE,
    registry=REGISTRY,
)

booking_transitions = Counter(
    "booking_transitions_total",
    "Booking lifecycle transitions by outcome",
    ["transition", "outcome"],  # applied | rejected
    namespace=NAMESPACE,
    registry=REGISTRY,
)

payment_events = Counter(
    "payment_events_total",
    "Payment provider events by type and reconciliation result",
    ["event_type", "result"],  # applied | noop | duplicate | ignored
    namespace=NAMESPACE,
    registry=REGISTRY,
)

reservation_guard_wait = Histogram(
    "reservation_guard_wait_seconds",
    "Time spent waiting for the per-resource reservation guard",
    ["mode"],  # advisory | local
    namespace=NAMESPACE,
    registry=REGISTRY,
    buckets=GUARD_BUCKETS,
)


class PrometheusMetrics:
    """Thin recording facade over the module-level series."""

    @staticmethod
    def record_http_request(method: str, endpoint: str, duration: float, status_code: int) -> None:
        labels = {"method": method, "endpoint": endpoint, "status_code": str(status_code)}
        api_request_seconds.labels(**labels).observe(duration)
        api_requests.labels(**labels).inc()

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record one measured call.

        Args:
            service: Service class name, e.g. 'SlotLockService'
            operation: Name given to @measure_operation, e.g. 'acquire_lock'
            duration: Wall time in seconds
            status: 'success' or 'error'
            error_type: Exception class name when status is 'error'
        """
        operation_seconds.labels(service=service, operation=operation).observe(duration)
        operations.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_error(error_type: str, endpoint: str) -> None:
        """Record a domain error surfaced through the API."""
        errors.labels(service="api", operation=endpoint, error_type=error_type).inc()

    @staticmethod
    def record_slot_lock_attempt(outcome: str) -> None:
        slot_lock_attempts.labels(outcome=outcome).inc()

    @staticmethod
    def inc_slot_locks_expired(count: int) -> None:
        if count > 0:
            slot_locks_expired.inc(count)

    @staticmethod
    def record_booking_transition(transition: str, outcome: str) -> None:
        booking_transitions.labels(transition=transition, outcome=outcome).inc()

    @staticmethod
    def record_payment_event(event_type: str, result: str) -> None:
        payment_events.labels(event_type=event_type, result=result).inc()

    @staticmethod
    def record_reservation_guard(mode: str, waited: float) -> None:
        reservation_guard_wait.labels(mode=mode).observe(max(waited, 0.0))

    @staticmethod
    def get_metrics() -> bytes:
        """Text exposition of every series on the registry."""
        return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)


prometheus_metrics = PrometheusMetrics()
