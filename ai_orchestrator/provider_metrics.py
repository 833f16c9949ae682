"""
In-process per-provider request metrics.

Counters only; averages and success rates are computed from them on read.
Every record is also mirrored to the Prometheus collector, which is a no-op
unless metrics export is enabled.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Optional

import structlog

from ai_orchestrator.models import AggregatedMetrics, MetricsSummary, ProviderMetrics
from ai_orchestrator.observability import metrics as obs_metrics

logger = structlog.get_logger()

HEALTHY_SUCCESS_RATE = 0.8
HEALTHY_AVERAGE_LATENCY_MS = 10_000


class MetricsCollector:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._providers: dict[str, ProviderMetrics] = {}
        self._started_at = datetime.now(timezone.utc)

    def initialize_provider(self, name: str) -> None:
        with self._lock:
            self._providers.setdefault(name, ProviderMetrics(provider_name=name))

    def remove_provider(self, name: str) -> None:
        with self._lock:
            self._providers.pop(name, None)

    def _get_or_create(self, name: str) -> ProviderMetrics:
        m = self._providers.get(name)
        if m is None:
            m = ProviderMetrics(provider_name=name)
            self._providers[name] = m
        return m

    def record_success(self, provider: str, response_time_ms: float, tokens_used: Optional[int] = None) -> None:
        with self._lock:
            m = self._get_or_create(provider)
            m.total_requests += 1
            m.successful_requests += 1
            m.total_response_time_ms += response_time_ms
            m.total_tokens_used += tokens_used or 0
            m.last_request_at = datetime.now(timezone.utc)
        obs_metrics.record_provider_success(provider, tokens_used or 0)

    def record_failure(
        self,
        provider: str,
        response_time_ms: float,
        error_type: str,
        message: str = "",
    ) -> None:
        now = datetime.now(timezone.utc)
        with self._lock:
            m = self._get_or_create(provider)
            m.total_requests += 1
            m.failed_requests += 1
            m.total_response_time_ms += response_time_ms
            m.errors_by_type[error_type] = m.errors_by_type.get(error_type, 0) + 1
            m.last_request_at = now
            m.last_error_at = now
            m.last_error = message or error_type
        obs_metrics.record_provider_failure(provider, error_type)

    def provider_metrics(self, name: str) -> Optional[ProviderMetrics]:
        with self._lock:
            m = self._providers.get(name)
            return m.model_copy(deep=True) if m else None

    def all_provider_metrics(self) -> list[ProviderMetrics]:
        with self._lock:
            return [m.model_copy(deep=True) for m in self._providers.values()]

    def aggregated(self) -> AggregatedMetrics:
        providers = self.all_provider_metrics()
        now = datetime.now(timezone.utc)
        return AggregatedMetrics(
            total_requests=sum(p.total_requests for p in providers),
            total_successes=sum(p.successful_requests for p in providers),
            total_failures=sum(p.failed_requests for p in providers),
            total_tokens_used=sum(p.total_tokens_used for p in providers),
            total_response_time_ms=sum(p.total_response_time_ms for p in providers),
            started_at=self._started_at,
            uptime_seconds=(now - self._started_at).total_seconds(),
            providers=providers,
        )

    def summary(self) -> MetricsSummary:
        agg = self.aggregated()
        healthy = (
            agg.overall_success_rate > HEALTHY_SUCCESS_RATE
            and agg.average_response_time_ms < HEALTHY_AVERAGE_LATENCY_MS
        )
        return MetricsSummary(
            healthy=healthy,
            total_requests=agg.total_requests,
            success_rate_pct=round(agg.overall_success_rate * 100, 2),
            average_response_time_ms=round(agg.average_response_time_ms, 2),
            providers=[
                {
                    "name": p.provider_name,
                    "requests": p.total_requests,
                    "success_rate_pct": round(p.success_rate * 100, 2),
                    "average_response_time_ms": round(p.average_response_time_ms, 2),
                }
                for p in agg.providers
            ],
        )

    def reset(self, name: Optional[str] = None) -> None:
        """Zero one provider's counters, or everything when name is None."""
        with self._lock:
            if name is None:
                self._providers = {n: ProviderMetrics(provider_name=n) for n in self._providers}
                self._started_at = datetime.now(timezone.utc)
            elif name in self._providers:
                self._providers[name] = ProviderMetrics(provider_name=name)

    def log_metrics(self) -> None:
        agg = self.aggregated()
        logger.info(
            "provider_metrics_summary",
            uptime_seconds=round(agg.uptime_seconds, 1),
            total_requests=agg.total_requests,
            success_rate=f"{agg.overall_success_rate * 100:.2f}%",
            average_response_time_ms=round(agg.average_response_time_ms, 2),
            total_tokens=agg.total_tokens_used,
        )
        for p in agg.providers:
            logger.info(
                "provider_metrics",
                provider=p.provider_name,
                requests=p.total_requests,
                successes=p.successful_requests,
                failures=p.failed_requests,
                success_rate=f"{p.success_rate * 100:.2f}%",
                average_response_time_ms=round(p.average_response_time_ms, 2),
                errors_by_type=p.errors_by_type,
            )
