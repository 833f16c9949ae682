"""Multi-provider AI request orchestration: strategies, circuit breaking, caching and cost control."""

from ai_orchestrator.cache import ResponseCache, cache_key
from ai_orchestrator.cost_ledger import CostLedger
from ai_orchestrator.errors import (
    AllProvidersFailedError,
    CostLimitExceededError,
    NoProvidersAvailableError,
    OrchestratorError,
    ProviderAuthError,
    ProviderConfigError,
    ProviderError,
    ProviderRateLimitedError,
    ProviderTimeoutError,
    ProviderValidationError,
    QualityThresholdError,
)
from ai_orchestrator.health import HealthTracker
from ai_orchestrator.manager import ProviderManager
from ai_orchestrator.models import (
    GenerationRequest,
    GenerationResponse,
    ProviderDescriptor,
    ProviderStrategy,
)
from ai_orchestrator.provider_metrics import MetricsCollector
from ai_orchestrator.providers import AIProvider, MockProvider
from ai_orchestrator.strategies import ExecutionResult, StrategyExecutor

__version__ = "0.1.0"

__all__ = [
    "AIProvider",
    "AllProvidersFailedError",
    "CostLedger",
    "CostLimitExceededError",
    "ExecutionResult",
    "GenerationRequest",
    "GenerationResponse",
    "HealthTracker",
    "MetricsCollector",
    "MockProvider",
    "NoProvidersAvailableError",
    "OrchestratorError",
    "ProviderAuthError",
    "ProviderConfigError",
    "ProviderDescriptor",
    "ProviderError",
    "ProviderManager",
    "ProviderRateLimitedError",
    "ProviderStrategy",
    "ProviderTimeoutError",
    "ProviderValidationError",
    "QualityThresholdError",
    "ResponseCache",
    "StrategyExecutor",
    "cache_key",
]
