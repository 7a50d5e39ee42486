"""Prometheus metrics for ledger writes, investment trades and financing payments"""

from prometheus_client import Counter, Histogram

# Ledger metrics
ledger_transaction_counter = Counter(
    "finledger_ledger_transactions_total",
    "Ledger transaction lifecycle events",
    ["action", "type"],  # create | update | delete, income | expense
)

# Investment metrics
investment_operation_counter = Counter(
    "finledger_investment_operations_total",
    "Investment operations registered",
    ["operation_type"],  # buy | sell
)

# Financing metrics
financing_payment_counter = Counter(
    "finledger_financing_payments_total",
    "Financing payments registered",
    ["payment_type"],  # regular | early
)

schedule_generation_histogram = Histogram(
    "finledger_schedule_generation_seconds",
    "Amortization schedule generation time",
    ["method"],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0],
)

# Failures
operation_failure_counter = Counter(
    "finledger_operation_failures_total",
    "Core operations rolled back",
    ["operation", "kind"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_failure(operation: str, error: Exception) -> None:
    """Count a rolled-back operation by error kind"""
    kind = getattr(error, "kind", "unexpected")
    operation_failure_counter.labels(operation=operation, kind=kind).inc()
