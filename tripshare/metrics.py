from __future__ import annotations

import os

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram, multiprocess

from .config import parse_bool

METRICS_ENABLED = parse_bool(os.environ.get("TRIPSHARE_METRICS_ENABLED", "true"))
PROMETHEUS_MULTIPROC_DIR = (os.environ.get("PROMETHEUS_MULTIPROC_DIR") or "").strip()
PROMETHEUS_MULTIPROC_ENABLED = bool(PROMETHEUS_MULTIPROC_DIR)

if METRICS_ENABLED:
    REQUEST_LATENCY = Histogram(
        "tripshare_http_request_duration_seconds",
        "HTTP request latency",
        ["method", "endpoint"],
    )
    REQUEST_COUNT = Counter(
        "tripshare_http_requests_total",
        "Total HTTP requests",
        ["method", "endpoint", "status"],
    )
    REQUEST_ERRORS = Counter(
        "tripshare_http_request_errors_total",
        "HTTP error responses",
        ["method", "endpoint", "status"],
    )
    REQUEST_IN_FLIGHT = Gauge(
        "tripshare_http_requests_in_flight",
        "In-flight HTTP requests",
    )
    ACCESS_VERDICTS = Counter(
        "tripshare_access_verdicts_total",
        "Trip access decisions by verdict",
        ["verdict", "transport"],
    )
    TOKEN_VERIFY_LATENCY = Histogram(
        "tripshare_token_verify_duration_seconds",
        "Time spent verifying trip access tokens",
    )
    PROTECTION_UPDATES = Counter(
        "tripshare_protection_updates_total",
        "Trip protection updates",
        ["visibility"],
    )
else:
    REQUEST_LATENCY = None
    REQUEST_COUNT = None
    REQUEST_ERRORS = None
    REQUEST_IN_FLIGHT = None
    ACCESS_VERDICTS = None
    TOKEN_VERIFY_LATENCY = None
    PROTECTION_UPDATES = None


def _get_metrics_registry() -> CollectorRegistry:
    if PROMETHEUS_MULTIPROC_ENABLED:
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        return registry
    return REGISTRY
