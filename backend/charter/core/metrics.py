"""
Metrics instrumentation for the charter lifecycle.
Exposes Prometheus-compatible metrics at the /metrics endpoint.
"""

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# Lifecycle metrics
lifecycle_transitions = Counter(
    'charter_transitions_total',
    'Status transitions applied by the lifecycle manager',
    ['entity', 'transition']  # e.g. quote, Pending->Accepted
)

quote_acceptances = Counter(
    'charter_quote_acceptances_total',
    'Quote acceptance attempts',
    ['result']  # accepted, rejected, error
)

acceptance_latency = Histogram(
    'charter_quote_acceptance_seconds',
    'Quote acceptance latency',
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

# Payment metrics
payment_initiations = Counter(
    'charter_payment_initiations_total',
    'Payment initiation requests',
    ['result']  # created, reused, gateway_error
)

payment_confirmations = Counter(
    'charter_payment_confirmations_total',
    'Payment confirmations received from the gateway',
    ['outcome']  # succeeded, failed, duplicate, mismatch
)

# Persistence metrics
persistence_retries = Counter(
    'charter_persistence_retries_total',
    'Atomic groups retried after transient persistence errors',
    ['operation']
)

# Cache metrics
cache_operations = Counter(
    'charter_cache_operations_total',
    'Listing cache operations',
    ['operation', 'result']  # get/set/invalidate, hit/miss/ok/error
)

redis_connection_errors = Counter(
    'charter_redis_connection_errors_total',
    'Redis connection errors'
)

# HTTP metrics
http_request_latency = Histogram(
    'charter_http_request_seconds',
    'HTTP request latency',
    ['method', 'status_code'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
)


def metrics_endpoint() -> Response:
    """Prometheus scrape endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_transition(entity: str, current: str, target: str):
    lifecycle_transitions.labels(entity=entity, transition=f"{current}->{target}").inc()


def record_acceptance(result: str):
    """Result: accepted, rejected, error"""
    quote_acceptances.labels(result=result).inc()


def record_payment_initiation(result: str):
    """Result: created, reused, gateway_error"""
    payment_initiations.labels(result=result).inc()


def record_payment_confirmation(outcome: str):
    """Outcome: succeeded, failed, duplicate, mismatch"""
    payment_confirmations.labels(outcome=outcome).inc()


def record_cache_operation(operation: str, result: str):
    cache_operations.labels(operation=operation, result=result).inc()
