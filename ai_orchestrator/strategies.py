"""
Strategy executor: spreads one request over the eligible providers.

Four strategies share the same per-call plumbing (_call): timeout, error
classification, response validation and failure bookkeeping. Success
bookkeeping (health, metrics, cost) is done by each strategy once it decides
a response is accepted, because the cost-optimized quality gate can still
reject a response the provider itself considered good.

Shared state (health, ledger, metrics) is only touched before or after a
provider await, never across one. A budget-gated call holds a ledger
reservation for its estimated cost until it settles. Providers unregistered
mid-call get no bookkeeping.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import NoReturn, Optional

import structlog

from ai_orchestrator.cost_ledger import CostLedger
from ai_orchestrator.errors import (
    AllProvidersFailedError,
    CostLimitExceededError,
    NoProvidersAvailableError,
    ProviderError,
    ProviderTimeoutError,
    ProviderValidationError,
    QualityThresholdError,
    classify_error,
)
from ai_orchestrator.health import HealthTracker
from ai_orchestrator.models import (
    AttemptOutcome,
    GenerationRequest,
    GenerationResponse,
    ProviderAttempt,
    ProviderStrategy,
)
from ai_orchestrator.observability import metrics as obs_metrics
from ai_orchestrator.provider_metrics import MetricsCollector
from ai_orchestrator.providers.base import AIProvider
from ai_orchestrator.scoring import (
    DEFAULT_QUALITY_THRESHOLD,
    comparison_score,
    estimate_request_tokens,
    quality_score,
)

logger = structlog.get_logger()


@dataclass
class ExecutionResult:
    """Accepted response plus the trail of every provider considered."""

    response: GenerationResponse
    strategy: ProviderStrategy
    attempts: list[ProviderAttempt] = field(default_factory=list)


@dataclass
class _CallOutcome:
    provider: AIProvider
    response: Optional[GenerationResponse]
    error: Optional[ProviderError]
    elapsed_ms: float


class StrategyExecutor:
    def __init__(
        self,
        health: HealthTracker,
        cost_ledger: CostLedger,
        metrics: MetricsCollector,
        quality_threshold: float = DEFAULT_QUALITY_THRESHOLD,
    ) -> None:
        self.health = health
        self.cost_ledger = cost_ledger
        self.metrics = metrics
        self.quality_threshold = quality_threshold

    def eligible(self, providers: list[AIProvider]) -> list[AIProvider]:
        """Available and not disabled, by ascending priority (stable on input order)."""
        selected = [p for p in providers if p.is_available() and self.health.eligible(p.name)]
        return sorted(selected, key=lambda p: p.priority)

    async def execute(
        self,
        strategy: ProviderStrategy,
        providers: list[AIProvider],
        request: GenerationRequest,
    ) -> ExecutionResult:
        if not providers:
            obs_metrics.record_strategy_failure(strategy.value, "NO_PROVIDERS")
            raise NoProvidersAvailableError()

        if strategy == ProviderStrategy.PRIMARY_ONLY:
            return await self._primary_only(providers, request)
        if strategy == ProviderStrategy.FALLBACK_CHAIN:
            return await self._sequential(strategy, providers, request, quality_gate=False)
        if strategy == ProviderStrategy.PARALLEL_COMPARISON:
            return await self._parallel_comparison(providers, request)
        if strategy == ProviderStrategy.COST_OPTIMIZED:
            estimated_tokens = estimate_request_tokens(request)
            by_cost = sorted(providers, key=lambda p: p.estimate_cost(estimated_tokens))
            return await self._sequential(strategy, by_cost, request, quality_gate=True)
        raise ValueError(f"Unknown provider strategy: {strategy}")

    # ── Strategies ──

    async def _primary_only(self, providers: list[AIProvider], request: GenerationRequest) -> ExecutionResult:
        strategy = ProviderStrategy.PRIMARY_ONLY
        provider = providers[0]
        estimated_tokens = estimate_request_tokens(request)
        estimated_cost = provider.estimate_cost(estimated_tokens)
        if not self.cost_ledger.try_reserve(provider.name, estimated_cost):
            obs_metrics.record_strategy_failure(strategy.value, "COST_LIMIT_EXCEEDED")
            raise CostLimitExceededError(
                provider.name,
                estimated_cost,
                self.cost_ledger.remaining_budget(provider.name),
            )

        try:
            outcome = await self._call(provider, request, strategy)
            if outcome.response is None:
                error = outcome.error or ProviderValidationError(provider.name, "no response")
                obs_metrics.record_strategy_failure(strategy.value, error.code)
                raise error
            self._record_success(provider, outcome.response, estimated_tokens)
        finally:
            self.cost_ledger.release(provider.name, estimated_cost)
        return ExecutionResult(
            response=outcome.response,
            strategy=strategy,
            attempts=[_attempt(outcome)],
        )

    async def _sequential(
        self,
        strategy: ProviderStrategy,
        providers: list[AIProvider],
        request: GenerationRequest,
        quality_gate: bool,
    ) -> ExecutionResult:
        """Fallback chain; with quality_gate it is the cost-optimized walk."""
        estimated_tokens = estimate_request_tokens(request)
        attempts: list[ProviderAttempt] = []

        for provider in providers:
            estimated_cost = provider.estimate_cost(estimated_tokens)
            if not self.cost_ledger.try_reserve(provider.name, estimated_cost):
                logger.info(
                    "provider_skipped_cost_limit",
                    provider=provider.name,
                    estimated_cost=round(estimated_cost, 6),
                    strategy=strategy.value,
                )
                attempts.append(
                    ProviderAttempt(
                        provider_name=provider.name,
                        outcome=AttemptOutcome.SKIPPED,
                        code="COST_LIMIT_EXCEEDED",
                        reason="daily cost limit would be exceeded",
                    )
                )
                continue

            try:
                outcome = await self._call(provider, request, strategy)
                response = outcome.response
                if response is None:
                    attempts.append(_attempt(outcome))
                    continue

                if quality_gate:
                    score = quality_score(response)
                    if score < self.quality_threshold:
                        # Tokens were consumed even though the answer is rejected
                        self._record_cost(provider, response, estimated_tokens)
                        rejection = QualityThresholdError(provider.name, score, self.quality_threshold)
                        self._record_failure(provider, rejection, outcome.elapsed_ms)
                        attempts.append(_attempt(outcome, error=rejection))
                        continue

                self._record_success(provider, response, estimated_tokens)
                attempts.append(_attempt(outcome))
                return ExecutionResult(response=response, strategy=strategy, attempts=attempts)
            finally:
                self.cost_ledger.release(provider.name, estimated_cost)

        self._fail(strategy, attempts)

    async def _parallel_comparison(self, providers: list[AIProvider], request: GenerationRequest) -> ExecutionResult:
        strategy = ProviderStrategy.PARALLEL_COMPARISON
        estimated_tokens = estimate_request_tokens(request)

        # _call never raises ProviderError, so one failing branch cannot
        # abort the join; cancellation still propagates to every branch.
        outcomes = await asyncio.gather(*(self._call(p, request, strategy) for p in providers))

        attempts: list[ProviderAttempt] = []
        best: Optional[_CallOutcome] = None
        best_score = float("-inf")
        for outcome in outcomes:
            if outcome.response is None:
                attempts.append(_attempt(outcome))
                continue
            score = comparison_score(outcome.response, outcome.provider.priority)
            attempts.append(_attempt(outcome, reason=f"score={score:.2f}"))
            self._record_success(outcome.provider, outcome.response, estimated_tokens)
            if score > best_score:
                best, best_score = outcome, score

        if best is None or best.response is None:
            self._fail(strategy, attempts)

        logger.info(
            "parallel_comparison_winner",
            provider=best.provider.name,
            score=round(best_score, 2),
            candidates=len(outcomes),
        )
        return ExecutionResult(response=best.response, strategy=strategy, attempts=attempts)

    # ── Per-call plumbing ──

    async def _call(
        self,
        provider: AIProvider,
        request: GenerationRequest,
        strategy: ProviderStrategy,
    ) -> _CallOutcome:
        """One provider call under its timeout. Failures are recorded and returned, not raised."""
        timeout = provider.descriptor.timeout_seconds
        start = time.perf_counter()
        error: Optional[ProviderError] = None
        try:
            async with obs_metrics.track_provider_call(provider.name, strategy.value):
                raw = await asyncio.wait_for(provider.generate_response(request), timeout=timeout)
        except (asyncio.TimeoutError, TimeoutError):
            error = ProviderTimeoutError(provider.name, timeout)
        except ProviderError as e:
            error = e
        except Exception as e:
            error = classify_error(e, provider.name)
            error.__cause__ = e
        else:
            if not provider.validate_response(raw):
                error = ProviderValidationError(provider.name, "empty or malformed response")

        elapsed_ms = (time.perf_counter() - start) * 1000
        if error is not None:
            self._record_failure(provider, error, elapsed_ms)
            return _CallOutcome(provider, None, error, elapsed_ms)

        updates: dict = {"cached": False}
        if raw.response_time_ms <= 0:
            updates["response_time_ms"] = round(elapsed_ms, 2)
        if not raw.provider_name:
            updates["provider_name"] = provider.name
        return _CallOutcome(provider, raw.model_copy(update=updates), None, elapsed_ms)

    def _tracked(self, provider: AIProvider) -> bool:
        """False once the provider was unregistered while its call was in flight."""
        if provider.name in self.health:
            return True
        logger.debug("provider_bookkeeping_skipped", provider=provider.name, reason="unregistered")
        return False

    def _record_success(self, provider: AIProvider, response: GenerationResponse, estimated_tokens: int) -> None:
        if not self._tracked(provider):
            return
        self.health.record_success(provider.name)
        self.metrics.record_success(provider.name, response.response_time_ms, response.tokens_used)
        self._record_cost(provider, response, estimated_tokens)
        logger.debug(
            "provider_succeeded",
            provider=provider.name,
            response_time_ms=round(response.response_time_ms, 2),
            tokens_used=response.tokens_used,
        )

    def _record_cost(self, provider: AIProvider, response: GenerationResponse, estimated_tokens: int) -> None:
        if not self._tracked(provider):
            return
        tokens = response.tokens_used if response.tokens_used is not None else estimated_tokens
        self.cost_ledger.record_cost(
            provider.name,
            estimated_cost=provider.estimate_cost(estimated_tokens),
            actual_cost=provider.estimate_cost(tokens),
            tokens_used=tokens,
        )

    def _record_failure(self, provider: AIProvider, error: ProviderError, elapsed_ms: float) -> None:
        logger.warning(
            "provider_failed",
            provider=provider.name,
            code=error.code,
            retryable=error.retryable,
            error=str(error)[:200],
        )
        if not self._tracked(provider):
            return
        self.health.record_failure(provider.name, error)
        self.metrics.record_failure(provider.name, elapsed_ms, error.code, str(error))

    def _fail(self, strategy: ProviderStrategy, attempts: list[ProviderAttempt]) -> NoReturn:
        err = AllProvidersFailedError(strategy.value, attempts)
        obs_metrics.record_strategy_failure(strategy.value, err.code)
        logger.error("strategy_failed", strategy=strategy.value, attempts=len(attempts), error=str(err))
        raise err


def _attempt(
    outcome: _CallOutcome,
    error: Optional[ProviderError] = None,
    reason: str = "",
) -> ProviderAttempt:
    error = error or outcome.error
    if error is None:
        return ProviderAttempt(
            provider_name=outcome.provider.name,
            outcome=AttemptOutcome.SUCCEEDED,
            reason=reason,
            response_time_ms=round(outcome.elapsed_ms, 2),
        )
    return ProviderAttempt(
        provider_name=outcome.provider.name,
        outcome=AttemptOutcome.FAILED,
        code=error.code,
        reason=str(error),
        response_time_ms=round(outcome.elapsed_ms, 2),
    )
