"""
Prometheus metrics for the provider orchestrator.

All metrics are no-op when disabled. The switch comes from configure(), which
ProviderManager calls with its own settings, else from
observability.metrics_enabled of the process settings. Exposes
configure, track_provider_call, record_provider_*, record_cache_lookup,
record_provider_disabled, record_strategy_failure, start_server.
"""

from __future__ import annotations

import contextlib
import threading
import time
from typing import Any, Optional

import structlog
from prometheus_client import (
    Counter,
    Histogram,
    start_http_server as prometheus_start_http_server,
)

logger = structlog.get_logger()


# Set by configure(); None falls back to the process-wide settings
_configured_enabled: Optional[bool] = None


def _enabled() -> bool:
    if _configured_enabled is not None:
        return _configured_enabled
    try:
        from ai_orchestrator.config import get_settings

        return bool(get_settings().observability.metrics_enabled)
    except (ValueError, OSError):
        return False


# Lazy registry: only create metrics when enabled and first used
_metrics_created = False
_create_lock = threading.Lock()


def _ensure_metrics() -> bool:
    global _metrics_created
    if _metrics_created or not _enabled():
        return _metrics_created
    with _create_lock:
        if not _metrics_created:
            _create_metrics()
            _metrics_created = True
    return True


def _create_metrics() -> None:
    """Create all Prometheus metrics (called once when enabled)."""
    _provider_duration = Histogram(
        "ai_provider_call_duration_seconds",
        "Provider call latency",
        ["provider", "strategy"],
        buckets=[0.5, 1, 2, 5, 10, 30],
    )
    _provider_requests = Counter(
        "ai_provider_requests_total",
        "Provider calls by outcome",
        ["provider", "outcome"],
    )
    _provider_errors = Counter(
        "ai_provider_errors_total",
        "Provider call errors",
        ["provider", "error_type"],
    )
    _provider_tokens = Counter(
        "ai_provider_tokens_total",
        "Tokens consumed",
        ["provider"],
    )
    _provider_cost = Counter(
        "ai_provider_cost_usd",
        "Recorded spend in USD",
        ["provider"],
    )
    _provider_disabled = Counter(
        "ai_provider_disabled_total",
        "Circuit breaker trips and manual disables",
        ["provider", "reason"],
    )
    _cache_lookups = Counter(
        "ai_response_cache_lookups_total",
        "Response cache lookups",
        ["result"],
    )
    _strategy_failures = Counter(
        "ai_strategy_failures_total",
        "Requests that failed after the strategy exhausted its providers",
        ["strategy", "error_type"],
    )

    # Store on the collector class for access from _MetricsCollector
    _registry = {
        "provider_duration": _provider_duration,
        "provider_requests": _provider_requests,
        "provider_errors": _provider_errors,
        "provider_tokens": _provider_tokens,
        "provider_cost": _provider_cost,
        "provider_disabled": _provider_disabled,
        "cache_lookups": _cache_lookups,
        "strategy_failures": _strategy_failures,
    }
    setattr(_MetricsCollector, "_registry", _registry)


class _MetricsCollector:
    """Collector that delegates to Prometheus when enabled, no-op otherwise."""

    _registry: dict[str, Any] = {}

    def configure(self, enabled: bool) -> None:
        global _configured_enabled
        _configured_enabled = enabled

    def _get(self, name: str) -> Any:
        _ensure_metrics()
        return self._registry.get(name)

    # --- Provider calls ---
    @contextlib.asynccontextmanager
    async def track_provider_call(self, provider: str = "", strategy: str = ""):
        h = self._get("provider_duration")
        start = time.perf_counter()
        try:
            yield
        finally:
            if h:
                h.labels(
                    provider=provider or "unknown",
                    strategy=strategy or "unknown",
                ).observe(time.perf_counter() - start)

    def record_provider_success(self, provider: str, tokens_used: int = 0) -> None:
        c = self._get("provider_requests")
        if c:
            c.labels(provider=provider or "unknown", outcome="success").inc()
        t = self._get("provider_tokens")
        if t and tokens_used > 0:
            t.labels(provider=provider or "unknown").inc(tokens_used)

    def record_provider_failure(self, provider: str, error_type: str = "") -> None:
        c = self._get("provider_requests")
        if c:
            c.labels(provider=provider or "unknown", outcome="failure").inc()
        e = self._get("provider_errors")
        if e:
            e.labels(provider=provider or "unknown", error_type=(error_type or "unknown")[:64]).inc()

    def record_provider_cost(self, provider: str, cost_usd: float = 0.0) -> None:
        c = self._get("provider_cost")
        if c and cost_usd > 0:
            c.labels(provider=provider or "unknown").inc(cost_usd)

    def record_provider_disabled(self, provider: str, reason: str = "circuit_breaker") -> None:
        c = self._get("provider_disabled")
        if c:
            c.labels(provider=provider or "unknown", reason=reason).inc()

    # --- Cache ---
    def record_cache_lookup(self, hit: bool) -> None:
        c = self._get("cache_lookups")
        if c:
            c.labels(result="hit" if hit else "miss").inc()

    # --- Strategy ---
    def record_strategy_failure(self, strategy: str, error_type: str) -> None:
        c = self._get("strategy_failures")
        if c:
            c.labels(strategy=strategy or "unknown", error_type=error_type or "unknown").inc()

    def start_server(self, port: int = 8000) -> None:
        if not _enabled():
            return
        _ensure_metrics()

        def run() -> None:
            try:
                prometheus_start_http_server(port, addr="0.0.0.0")
            except OSError as e:
                logger.warning("metrics_server_failed", port=port, error=str(e))

        t = threading.Thread(target=run, daemon=True)
        t.start()


metrics = _MetricsCollector()
