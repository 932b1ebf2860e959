"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Ledger operation metrics
ledger_operations = Counter(
    'ledger_operations_total',
    'Ledger operations by outcome',
    ['operation', 'status']  # status: committed, or the rejection code
)

ledger_operation_latency = Histogram(
    'ledger_operation_latency_seconds',
    'Ledger operation latency including persistence',
    ['operation'],
    buckets=[0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

# Ticket / value flow
tickets_minted = Counter(
    'tickets_minted_total',
    'Tickets minted by successful purchases'
)

ledger_payouts = Counter(
    'ledger_payouts_total',
    'Value paid out of escrow',
    ['reason']  # refund, cancellation, withdrawal
)

payouts_deferred = Counter(
    'ledger_payouts_deferred_total',
    'Outbox payouts the payment rail refused; retried later'
)

# Persistence
persistence_failures = Counter(
    'ledger_persistence_failures_total',
    'Write-through failures that forced a reload from the database'
)

ledger_events = Gauge(
    'ledger_events',
    'Events currently recorded in the ledger'
)

ledger_tickets = Gauge(
    'ledger_tickets',
    'Tickets currently recorded in the ledger'
)


def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Usage:
        @app.get("/metrics")
        def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


# Convenience functions for instrumentation
def record_operation(operation: str, status: str, duration: float):
    """Record a ledger call. Status: committed or a LedgerError code."""
    ledger_operations.labels(operation=operation, status=status).inc()
    ledger_operation_latency.labels(operation=operation).observe(duration)

def record_payout(reason: str, amount: int):
    """Record value leaving escrow."""
    if amount > 0:
        ledger_payouts.labels(reason=reason).inc(amount)

def record_ledger_size(events: int, tickets: int):
    ledger_events.set(events)
    ledger_tickets.set(tickets)
