"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking attempts',
    ['status']  # success, conflict, rejected
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking request latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

booking_transitions = Counter(
    'booking_transitions_total',
    'Booking lifecycle transitions',
    ['actor', 'status']  # player/owner/admin/sweep, new status
)

# Rating metrics
rating_mutations = Counter(
    'rating_mutations_total',
    'Rating ledger mutations',
    ['operation']  # add, update, delete
)

rating_recompute_failures = Counter(
    'venue_rating_recompute_failures_total',
    'Venue aggregate recomputations that failed after the rating write committed'
)

# Best-effort side effects
sport_counter_failures = Counter(
    'sport_booking_counter_failures_total',
    'Failed best-effort sport booking counter increments'
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(status: str):
    """Record booking attempt. Status: success, conflict, rejected"""
    booking_attempts.labels(status=status).inc()


def record_transition(actor: str, status: str, count: int = 1):
    booking_transitions.labels(actor=actor, status=status).inc(count)


def record_rating_mutation(operation: str):
    rating_mutations.labels(operation=operation).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
