from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi.responses import Response

# Vote ledger metrics
votes_applied = Counter(
    "agora_votes_total",
    "Votes applied to posts and comments",
    ["item_type", "action"],  # action: created | removed | updated
)

vote_retries = Counter(
    "agora_vote_retries_total",
    "Vote operations retried after a concurrent change to the same vote",
)

# Report workflow metrics
reports_submitted = Counter(
    "agora_reports_total",
    "Reports submitted",
    ["item_type"],
)

# Moderation metrics
moderation_actions = Counter(
    "agora_moderation_actions_total",
    "Moderation actions applied",
    ["action"],
)

# Incremented when the action stood but its audit entry could not be written
audit_write_failures = Counter(
    "agora_audit_write_failures_total",
    "Moderation log entries that failed to persist",
)

# HTTP request metrics (from middleware)
http_requests = Counter(
    "agora_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status_code"],
)

http_request_duration = Histogram(
    "agora_http_request_duration_seconds",
    "HTTP request duration",
    ["method", "path"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)


async def metrics_endpoint():
    """FastAPI endpoint handler that returns Prometheus metrics."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
