"""Shared pytest fixtures for provider orchestrator tests."""

from __future__ import annotations

from collections.abc import Callable, Iterator

import pytest

from ai_orchestrator.cache import ResponseCache
from ai_orchestrator.config import Settings
from ai_orchestrator.cost_ledger import CostLedger
from ai_orchestrator.health import HealthTracker
from ai_orchestrator.manager import ProviderManager
from ai_orchestrator.models import GenerationRequest
from ai_orchestrator.provider_metrics import MetricsCollector
from ai_orchestrator.providers.base import AIProvider
from fakes import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def request_hi() -> GenerationRequest:
    return GenerationRequest(prompt="hi")


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def health(clock: FakeClock) -> HealthTracker:
    return HealthTracker(max_consecutive_failures=5, cooldown_seconds=300, clock=clock)


@pytest.fixture
def ledger() -> CostLedger:
    return CostLedger(today=lambda: "2025-01-15")


@pytest.fixture
def collector() -> MetricsCollector:
    return MetricsCollector()


@pytest.fixture
def make_manager(
    settings: Settings,
    health: HealthTracker,
    ledger: CostLedger,
    collector: MetricsCollector,
    clock: FakeClock,
) -> Iterator[Callable[..., ProviderManager]]:
    """Factory for a manager wired to the per-test health/ledger/metrics instances."""
    created: list[ProviderManager] = []

    def _make(strategy: str = "fallback-chain", *providers: AIProvider) -> ProviderManager:
        manager = ProviderManager(
            strategy=strategy,
            settings=settings,
            cache=ResponseCache(ttl_seconds=3600, clock=clock, start_sweeper=False),
            health=health,
            cost_ledger=ledger,
            metrics=collector,
        )
        for p in providers:
            manager.register_provider(p)
        created.append(manager)
        return manager

    yield _make
    for m in created:
        m.shutdown()
