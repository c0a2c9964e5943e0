"""Prometheus metrics export."""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Request metrics
request_count = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

request_duration = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
)

# Agent assembly
agent_builds_total = Counter(
    "agent_builds_total",
    "Total runtime agent builds",
    ["status"],
)

agent_build_duration = Histogram(
    "agent_build_duration_seconds",
    "Runtime agent build duration in seconds",
)

agent_cache_requests_total = Counter(
    "agent_cache_requests_total",
    "Agent instance cache lookups",
    ["result"],  # hit or miss
)

agent_cache_invalidations_total = Counter(
    "agent_cache_invalidations_total",
    "Agent instance cache invalidations",
)

# Credentials
token_refreshes_total = Counter(
    "token_refreshes_total",
    "OAuth token refresh attempts",
    ["provider", "status"],  # status: refreshed, reauth_required, failed
)

# LLM metrics
llm_calls_total = Counter(
    "llm_calls_total",
    "Total LLM API calls",
    ["provider", "model", "status"],
)

llm_call_duration = Histogram(
    "llm_call_duration_seconds",
    "LLM API call duration in seconds",
    ["provider", "model"],
)

llm_tokens_total = Counter(
    "llm_tokens_total",
    "Total LLM tokens",
    ["provider", "model", "type"],  # type: prompt or completion
)

# Tool metrics
tool_calls_total = Counter(
    "tool_calls_total",
    "Total tool calls",
    ["tool_name", "provider", "status"],
)

tool_call_duration = Histogram(
    "tool_call_duration_seconds",
    "Tool call duration in seconds",
    ["tool_name", "provider"],
)

# Ingestion
documents_ingested_total = Counter(
    "documents_ingested_total",
    "Documents ingested into the vector index",
    ["content_type"],
)

chunks_indexed_total = Counter(
    "chunks_indexed_total",
    "Document chunks upserted into the vector index",
)


def get_metrics_response() -> Response:
    """Get Prometheus metrics as HTTP response."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
