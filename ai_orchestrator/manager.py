"""
ProviderManager: the single entry point for generating completions.

Flow per request: cache lookup -> eligible providers -> strategy executor ->
cache store. Health, cost and metrics bookkeeping happen inside the executor;
the manager owns registration, strategy selection and the admin surface.

Collaborators (cache, health tracker, cost ledger, metrics collector) are
injected or built from settings, never module-level singletons, so several
managers can coexist in one process (and in one test session).
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from structlog.contextvars import bound_contextvars

from ai_orchestrator.cache import ResponseCache
from ai_orchestrator.config import Settings, get_settings
from ai_orchestrator.cost_ledger import CostLedger
from ai_orchestrator.errors import OrchestratorError, ProviderConfigError
from ai_orchestrator.health import HealthTracker
from ai_orchestrator.models import (
    AggregatedMetrics,
    CacheStats,
    DailyCostSummary,
    GenerationRequest,
    GenerationResponse,
    MetricsSummary,
    ProviderHealth,
    ProviderStrategy,
)
from ai_orchestrator.observability import metrics as obs_metrics
from ai_orchestrator.provider_metrics import MetricsCollector
from ai_orchestrator.providers.base import AIProvider
from ai_orchestrator.strategies import ExecutionResult, StrategyExecutor

logger = structlog.get_logger()


class ProviderManager:
    """Routes generation requests over registered providers."""

    def __init__(
        self,
        strategy: ProviderStrategy | str | None = None,
        settings: Optional[Settings] = None,
        cache: Optional[ResponseCache] = None,
        health: Optional[HealthTracker] = None,
        cost_ledger: Optional[CostLedger] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.settings = settings if settings is not None else get_settings()
        s = self.settings
        obs_metrics.configure(s.observability.metrics_enabled)

        self.cache_enabled = s.cache.enabled
        self.cache = cache if cache is not None else ResponseCache(
            ttl_seconds=s.cache.ttl_seconds,
            sweep_interval_seconds=s.cache.sweep_interval_seconds,
            start_sweeper=s.cache.enabled,
        )
        self.health = health if health is not None else HealthTracker(
            max_consecutive_failures=s.health.max_consecutive_failures,
            cooldown_seconds=s.health.cooldown_seconds,
        )
        self.cost_ledger = cost_ledger if cost_ledger is not None else CostLedger(
            daily_limit_usd=s.cost.daily_limit_usd,
            alert_threshold_usd=s.cost.alert_threshold_usd,
            enabled=s.cost.enabled,
        )
        self.metrics = metrics if metrics is not None else MetricsCollector()
        self._executor = StrategyExecutor(
            self.health,
            self.cost_ledger,
            self.metrics,
            quality_threshold=s.strategy.quality_threshold,
        )
        self._strategy = ProviderStrategy(strategy) if strategy else s.strategy.strategy
        # Insertion order is registration order; it breaks priority ties
        self._providers: dict[str, AIProvider] = {}
        self._closed = False

        logger.info(
            "provider_manager_initialized",
            strategy=self._strategy.value,
            cache_enabled=self.cache_enabled,
            cache_ttl_seconds=self.cache.ttl_seconds,
        )

    # ── Generation ──

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        result = await self.generate_detailed(request)
        return result.response

    async def generate_detailed(self, request: GenerationRequest) -> ExecutionResult:
        """Like generate() but also returns the per-provider attempt trail."""
        correlation_id = uuid.uuid4().hex[:12]
        with bound_contextvars(correlation_id=correlation_id):
            if self.cache_enabled:
                cached = self.cache.get(request)
                if cached is not None:
                    logger.info("cache_hit", provider=cached.provider_name)
                    return ExecutionResult(response=cached, strategy=self._strategy)

            strategy = self._strategy
            providers = self.eligible_providers()
            logger.debug(
                "generation_started",
                strategy=strategy.value,
                eligible=[p.name for p in providers],
            )
            try:
                result = await self._executor.execute(strategy, providers, request)
            except OrchestratorError as e:
                logger.error("generation_failed", strategy=strategy.value, code=e.code, error=str(e)[:300])
                raise

            if self.cache_enabled:
                self.cache.set(request, result.response)
            logger.info(
                "generation_completed",
                strategy=strategy.value,
                provider=result.response.provider_name,
                response_time_ms=round(result.response.response_time_ms, 2),
                attempted=[a.provider_name for a in result.attempts],
            )
            return result

    # ── Registration ──

    def register_provider(self, provider: AIProvider) -> None:
        """Register a provider; an existing registration with the same name is replaced."""
        if not isinstance(provider, AIProvider):
            raise ProviderConfigError(f"Expected an AIProvider, got {type(provider).__name__}")
        name = provider.name
        replaced = self._providers.pop(name, None) is not None
        self._providers[name] = provider
        self.health.register(name)
        self.metrics.initialize_provider(name)
        if replaced:
            self.metrics.reset(name)
        self.cost_ledger.set_provider_limit(name, provider.descriptor.daily_cost_limit_usd)
        logger.info(
            "provider_replaced" if replaced else "provider_registered",
            provider=name,
            priority=provider.priority,
            available=provider.is_available(),
        )

    def unregister_provider(self, name: str) -> bool:
        """Remove a provider and purge its health, metrics and cost state."""
        if self._providers.pop(name, None) is None:
            return False
        self.health.remove(name)
        self.metrics.remove_provider(name)
        self.cost_ledger.remove_provider(name)
        logger.info("provider_unregistered", provider=name)
        return True

    def get_provider(self, name: str) -> Optional[AIProvider]:
        return self._providers.get(name)

    def list_providers(self) -> list[AIProvider]:
        """Registered providers by ascending priority."""
        return sorted(self._providers.values(), key=lambda p: p.priority)

    def eligible_providers(self) -> list[AIProvider]:
        return self._executor.eligible(list(self._providers.values()))

    # ── Strategy ──

    @property
    def strategy(self) -> ProviderStrategy:
        return self._strategy

    def get_strategy(self) -> ProviderStrategy:
        return self._strategy

    def set_strategy(self, strategy: ProviderStrategy | str) -> None:
        previous = self._strategy
        self._strategy = ProviderStrategy(strategy)
        logger.info("provider_strategy_changed", previous=previous.value, strategy=self._strategy.value)

    # ── Health ──

    def disable_provider(self, name: str, cooldown_seconds: Optional[float] = None) -> bool:
        return self.health.disable(name, cooldown_seconds)

    def enable_provider(self, name: str) -> bool:
        return self.health.enable(name)

    def get_provider_health(self, name: str) -> Optional[ProviderHealth]:
        return self.health.snapshot(name)

    def get_all_provider_health(self) -> dict[str, ProviderHealth]:
        return self.health.snapshot_all()

    def provider_success_rate(self, name: str) -> Optional[float]:
        return self.health.success_rate(name)

    def reset_provider_health(self, name: str) -> bool:
        return self.health.reset(name)

    def reset_all_provider_health(self) -> None:
        self.health.reset_all()

    # ── Cache / cost / metrics accessors ──

    def invalidate_cache(self, request: GenerationRequest) -> bool:
        return self.cache.invalidate(request)

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("response_cache_cleared")

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()

    def aggregated_metrics(self) -> AggregatedMetrics:
        return self.metrics.aggregated()

    def metrics_summary(self) -> MetricsSummary:
        return self.metrics.summary()

    def cost_summaries(self, date: Optional[str] = None) -> list[DailyCostSummary]:
        return self.cost_ledger.all_daily_summaries(date)

    # ── Logging ──

    def log_registered_providers(self) -> None:
        for p in self.list_providers():
            health = self.health.snapshot(p.name)
            logger.info(
                "registered_provider",
                provider=p.name,
                priority=p.priority,
                available=p.is_available(),
                disabled=bool(health and health.disabled),
                model=p.descriptor.model,
            )

    def log_provider_health(self) -> None:
        self.health.log_health()

    # ── Lifecycle ──

    def shutdown(self) -> None:
        """Stop background sweeping and log final statistics. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        self.cache.stop_sweeper()
        self.cache.log_statistics()
        self.health.log_health()
        self.metrics.log_metrics()
        self.cost_ledger.log_summary()
        logger.info("provider_manager_shutdown", providers=len(self._providers))
