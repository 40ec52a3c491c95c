"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# Admission metrics
admission_outcomes = Counter(
    'occasion_admission_outcomes_total',
    'Occasion purchase attempts by terminal state',
    ['state']  # notified, notify_failed, rejected, payment_failed, payment_unknown, reconciliation_required
)

admission_latency = Histogram(
    'occasion_admission_latency_seconds',
    'End-to-end occasion admission latency',
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0]
)

tickets_sold = Counter(
    'occasion_tickets_sold_total',
    'Tickets allocated to confirmed purchases',
    ['venue']
)

# Payment metrics
payment_charges = Counter(
    'payment_charges_total',
    'Payment gateway charge attempts',
    ['result']  # succeeded, declined, error, timeout
)

payment_refunds = Counter(
    'payment_refunds_total',
    'Refunds issued after a purchase lost the capacity race',
    ['result']  # succeeded, failed
)

# Highest severity: money moved without a booking
reconciliation_required = Counter(
    'occasion_reconciliation_required_total',
    'Charges that succeeded without a persisted booking'
)

# Capacity invariant
oversold_detected = Counter(
    'occasion_oversold_detected_total',
    'Capacity reads that found more tickets allocated than capacity'
)

commit_retries = Counter(
    'booking_commit_retries_total',
    'Booking commit retries caused by token collisions'
)

# Notifications
notifications = Counter(
    'notifications_total',
    'Notification deliveries',
    ['kind', 'result']  # ticket_purchased/occasion_created, sent/failed
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """Prometheus scrape response."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_admission(state: str):
    admission_outcomes.labels(state=state).inc()


def record_charge(result: str):
    payment_charges.labels(result=result).inc()


def record_refund(succeeded: bool):
    payment_refunds.labels(result="succeeded" if succeeded else "failed").inc()


def record_notification(kind: str, sent: bool):
    notifications.labels(kind=kind, result="sent" if sent else "failed").inc()


def record_cache_operation(operation: str, hit: bool):
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
