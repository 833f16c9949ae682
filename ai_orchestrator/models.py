"""
Core data models for provider orchestration.

These Pydantic models are the values that flow between the manager, the
strategy executor and the bookkeeping components (cache, health, cost, metrics).
Providers only ever see GenerationRequest and return GenerationResponse; every
other model is a snapshot handed out by a component so that callers can never
mutate shared state behind its lock.

Design principles:
  - Descriptors are frozen once registered
  - Derived figures (success rate, averages) are computed, never stored
  - `cached` on a response is owned by the cache layer alone
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

UTC = timezone.utc


def _now_utc() -> datetime:
    return datetime.now(UTC)


# ═══════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════


class ProviderStrategy(str, Enum):
    """How a single request is spread over the registered providers."""

    PRIMARY_ONLY = "primary-only"
    FALLBACK_CHAIN = "fallback-chain"
    PARALLEL_COMPARISON = "parallel-comparison"
    COST_OPTIMIZED = "cost-optimized"


class AttemptOutcome(str, Enum):
    """What happened to one provider during one request."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


# ═══════════════════════════════════════════════════════════
# Provider contract values
# ═══════════════════════════════════════════════════════════


class ProviderDescriptor(BaseModel):
    """Static configuration of one registered provider."""

    model_config = ConfigDict(frozen=True)

    name: str
    priority: int = Field(default=10, ge=0, description="Lower number = more preferred")
    enabled: bool = True
    api_key: str = ""
    endpoint: Optional[str] = None
    model: Optional[str] = None
    max_tokens: Optional[int] = Field(default=None, gt=0)
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    timeout_seconds: float = Field(default=30.0, gt=0)
    daily_cost_limit_usd: Optional[float] = Field(
        default=None,
        ge=0.0,
        description="Overrides the ledger-wide daily limit for this provider",
    )

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("provider name is required")
        return v


class GenerationRequest(BaseModel):
    """One logical completion request."""

    prompt: str
    system_prompt: Optional[str] = None
    max_tokens: Optional[int] = Field(default=None, gt=0)
    temperature: Optional[float] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("prompt")
    @classmethod
    def _prompt_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("prompt must be a non-empty string")
        return v


class GenerationResponse(BaseModel):
    """A completion produced by a provider (or replayed from the cache)."""

    content: str
    provider_name: str
    model: str = ""
    tokens_used: Optional[int] = None
    response_time_ms: float = 0.0
    cached: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)


class ProviderAttempt(BaseModel):
    """One entry of the per-request diagnostic trail."""

    provider_name: str
    outcome: AttemptOutcome
    code: str = ""
    reason: str = ""
    response_time_ms: float = 0.0


# ═══════════════════════════════════════════════════════════
# Health
# ═══════════════════════════════════════════════════════════


class ProviderHealth(BaseModel):
    """Circuit-breaker state for one provider. Owned by HealthTracker."""

    provider_name: str
    success_count: int = 0
    failure_count: int = 0
    consecutive_failures: int = 0
    disabled: bool = False
    disabled_until: Optional[float] = None  # epoch seconds
    manually_disabled: bool = False
    last_failure_at: Optional[float] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def success_rate(self) -> float:
        total = self.success_count + self.failure_count
        return self.success_count / total if total else 0.0


# ═══════════════════════════════════════════════════════════
# Cache
# ═══════════════════════════════════════════════════════════


class CacheEntry(BaseModel):
    """Stored response plus insertion time (cache clock units)."""

    key: str
    response: GenerationResponse
    stored_at: float


class CacheStats(BaseModel):
    hits: int = 0
    misses: int = 0
    size: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_requests(self) -> int:
        return self.hits + self.misses

    @computed_field  # type: ignore[prop-decorator]
    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return round(self.hits / total, 4) if total else 0.0


# ═══════════════════════════════════════════════════════════
# Cost
# ═══════════════════════════════════════════════════════════


class CostEntry(BaseModel):
    """One recorded spend. Append-only."""

    provider_name: str
    date: str  # YYYY-MM-DD, UTC
    estimated_cost: float
    actual_cost: float
    tokens_used: int
    timestamp: datetime = Field(default_factory=_now_utc)


class DailyCostSummary(BaseModel):
    provider_name: str
    date: str
    total_cost: float = 0.0
    total_requests: int = 0
    total_tokens: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def average_cost_per_request(self) -> float:
        return self.total_cost / self.total_requests if self.total_requests else 0.0


# ═══════════════════════════════════════════════════════════
# Metrics
# ═══════════════════════════════════════════════════════════


class ProviderMetrics(BaseModel):
    """Raw counters for one provider; averages and rates are derived."""

    provider_name: str
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_response_time_ms: float = 0.0
    total_tokens_used: int = 0
    errors_by_type: dict[str, int] = Field(default_factory=dict)
    last_request_at: Optional[datetime] = None
    last_error_at: Optional[datetime] = None
    last_error: Optional[str] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def average_response_time_ms(self) -> float:
        return self.total_response_time_ms / self.total_requests if self.total_requests else 0.0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def success_rate(self) -> float:
        return self.successful_requests / self.total_requests if self.total_requests else 0.0


class AggregatedMetrics(BaseModel):
    total_requests: int = 0
    total_successes: int = 0
    total_failures: int = 0
    total_tokens_used: int = 0
    total_response_time_ms: float = 0.0
    started_at: datetime = Field(default_factory=_now_utc)
    uptime_seconds: float = 0.0
    providers: list[ProviderMetrics] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def overall_success_rate(self) -> float:
        return self.total_successes / self.total_requests if self.total_requests else 0.0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def average_response_time_ms(self) -> float:
        return self.total_response_time_ms / self.total_requests if self.total_requests else 0.0


class MetricsSummary(BaseModel):
    """Compact view for health checks."""

    healthy: bool
    total_requests: int
    success_rate_pct: float
    average_response_time_ms: float
    providers: list[dict[str, Any]] = Field(default_factory=list)
