"""Prometheus Metrics for the auth core.

Provides:
- Login, registration and OAuth outcomes
- Password hashing latency
- OAuth provider call counts and latencies
- Gate rejections by reason
- Session registry touch results and active session count

Metrics follow Prometheus naming conventions and live in the default registry.
"""

import time
from contextlib import contextmanager

from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, Counter, Gauge, Histogram, Info, generate_latest


# ==================== Counters ====================

AUTH_EVENTS_TOTAL = Counter(
    "forum_auth_events_total",
    "Authentication events by kind and outcome",
    ["event", "outcome"],
)

GATE_REJECTIONS_TOTAL = Counter(
    "forum_gate_rejections_total",
    "Requests stopped by the auth, ban or role gate",
    ["reason"],
)

SESSION_TOUCH_TOTAL = Counter(
    "forum_session_touch_total",
    "Session registry touch results",
    ["result"],
)

OAUTH_PROVIDER_REQUESTS_TOTAL = Counter(
    "forum_oauth_provider_requests_total",
    "Calls to OAuth provider endpoints",
    ["provider", "step", "status"],
)


# ==================== Latency Histograms ====================

PASSWORD_HASH_LATENCY = Histogram(
    "forum_password_hash_latency_seconds",
    "Latency of password hashing and verification",
    ["operation"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

OAUTH_PROVIDER_LATENCY = Histogram(
    "forum_oauth_provider_latency_seconds",
    "Latency of OAuth provider calls",
    ["provider", "step"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)


# ==================== Gauges ====================

ACTIVE_SESSIONS = Gauge(
    "forum_active_sessions",
    "Principals seen within the activity window at the last listing",
)


# ==================== Info Metrics ====================

SERVICE_INFO = Info(
    "forum_auth",
    "Forum auth service information",
)


class MetricsRecorder:
    """Helper for recording auth metrics."""

    def __init__(self):
        self._initialized = False

    def initialize(self, version: str, providers: list[str] | None = None):
        """Publish service info once per process."""
        if self._initialized:
            return
        SERVICE_INFO.info({
            "version": version,
            "oauth_providers": ",".join(providers or []),
        })
        self._initialized = True

    @contextmanager
    def track_password_hash(self, operation: str):
        """Time a hash or verify call.

        Usage:
            with metrics.track_password_hash("verify"):
                ok = hasher.verify(digest, password)
        """
        start_time = time.perf_counter()
        try:
            yield
        finally:
            PASSWORD_HASH_LATENCY.labels(operation=operation).observe(time.perf_counter() - start_time)

    @contextmanager
    def track_provider_call(self, provider: str, step: str):
        """Count and time one provider request (token exchange or profile fetch).

        ``status`` is the transport outcome; HTTP error answers count as success.
        """
        start_time = time.perf_counter()
        status = "success"
        try:
            yield
        except Exception:
            status = "error"
            raise
        finally:
            OAUTH_PROVIDER_LATENCY.labels(provider=provider, step=step).observe(time.perf_counter() - start_time)
            OAUTH_PROVIDER_REQUESTS_TOTAL.labels(provider=provider, step=step, status=status).inc()

    def record_auth_event(self, event: str, outcome: str):
        AUTH_EVENTS_TOTAL.labels(event=event, outcome=outcome).inc()

    def record_gate_rejection(self, reason: str):
        GATE_REJECTIONS_TOTAL.labels(reason=reason).inc()

    def record_touch(self, result: str):
        SESSION_TOUCH_TOTAL.labels(result=result).inc()

    def set_active_sessions(self, count: int):
        ACTIVE_SESSIONS.set(count)


def setup_metrics(app, providers: list[str] | None = None):
    """Mount ``/metrics`` on the app and publish service info."""
    from fastapi import Response

    from forum import __version__

    @app.get("/metrics", include_in_schema=False)
    async def prometheus_metrics():
        return Response(
            content=generate_latest(REGISTRY),
            media_type=CONTENT_TYPE_LATEST,
        )

    metrics.initialize(version=__version__, providers=providers)


# Singleton instance
metrics = MetricsRecorder()
