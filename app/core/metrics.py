"""Application metrics using the Prometheus client library.

This module defines all metrics in one place — a single inventory of
everything the service measures.  Other modules import specific metrics
and increment/observe them at the point of action.

Counters only go up; Prometheus derives rates with rate().  Histograms
bucket observations so p95/p99 can be computed server-side with
histogram_quantile().  Gauges are point-in-time snapshots.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Analytics metrics (populated by the analytics service)
# ---------------------------------------------------------------------------

ANALYTICS_AGGREGATIONS = Counter(
    "analytics_aggregations_total",
    "Aggregations computed, by dashboard view and outcome",
    ["view", "outcome"],  # outcome: "ok" | "not_found" | "error"
)

ANALYTICS_DURATION = Histogram(
    "analytics_aggregation_duration_seconds",
    "Time spent querying and reducing one dashboard view",
    ["view"],
    # Aggregations fan out into several store queries, so the buckets
    # run longer than the per-request ones.
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

ANALYTICS_FETCH_CAP_HITS = Counter(
    "analytics_fetch_cap_hits_total",
    "Store fetches that returned exactly the hard cap (aggregate may be truncated)",
    ["entity"],
)
