"""Prometheus metrics for generation volume, plan lifecycle and webhook performance"""

from prometheus_client import Counter, Histogram

# Generation metrics
generated_transactions_counter = Counter(
    "finance_generated_transactions_total",
    "Ledger transactions generated by the scheduling engine",
    ["source"],  # installment | recurring
)

plan_transition_counter = Counter(
    "finance_plan_transitions_total",
    "Installment plan lifecycle transitions",
    ["transition"],  # created | completed | cancelled
)

state_conflict_counter = Counter(
    "finance_state_conflicts_total",
    "Rejected attempts to regress or re-issue progress",
    ["reason"],
)

# Webhook metrics
webhook_latency_histogram = Histogram(
    "ledger_webhook_latency_seconds",
    "Ledger webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

webhook_failure_counter = Counter(
    "ledger_webhook_failures_total",
    "Failed ledger webhook deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_generation(source: str, count: int) -> None:
    """Count transactions emitted by one operation"""
    if count > 0:
        generated_transactions_counter.labels(source=source).inc(count)


def record_plan_transition(previous_status: str | None, status: str) -> None:
    """Count a lifecycle change; creation counts as "created" plus any initial completion"""
    if previous_status is None:
        plan_transition_counter.labels(transition="created").inc()
    if previous_status != status and status != "active":
        plan_transition_counter.labels(transition=status).inc()
