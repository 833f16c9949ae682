"""
Error taxonomy for provider orchestration.

Every failure the orchestrator can surface is a subclass of OrchestratorError.
Provider-local failures carry the provider name, a stable code and whether the
strategy layer may move on to another provider. The aggregate
AllProvidersFailedError carries one ProviderAttempt per provider tried, so a
total outage can be diagnosed without re-running the request.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ai_orchestrator.models import ProviderAttempt


class OrchestratorError(Exception):
    """Base for all orchestration errors."""

    code: str = "ORCHESTRATOR_ERROR"


class ProviderConfigError(OrchestratorError):
    """Provider registration rejected: missing or invalid configuration."""

    code = "CONFIG_ERROR"


class ProviderError(OrchestratorError):
    """A single provider failed to produce a usable response."""

    def __init__(
        self,
        message: str,
        provider: str,
        code: str = "PROVIDER_ERROR",
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.code = code
        self.retryable = retryable


class ProviderTimeoutError(ProviderError):
    """Provider call exceeded its timeout; try the next provider."""

    def __init__(self, provider: str, timeout_seconds: Optional[float] = None) -> None:
        message = (
            f"Provider {provider} timed out after {timeout_seconds:g}s"
            if timeout_seconds
            else f"Provider {provider} timed out"
        )
        super().__init__(message, provider, "TIMEOUT", retryable=True)
        self.timeout_seconds = timeout_seconds


class ProviderRateLimitedError(ProviderError):
    """Provider rejected the call with a rate limit; may carry a retry-after hint."""

    def __init__(self, provider: str, retry_after: Optional[float] = None) -> None:
        message = (
            f"Provider {provider} rate limit exceeded. Retry after {retry_after:g}s"
            if retry_after
            else f"Provider {provider} rate limit exceeded"
        )
        super().__init__(message, provider, "RATE_LIMIT", retryable=True)
        self.retry_after = retry_after


class ProviderAuthError(ProviderError):
    """Invalid or missing credentials. Never retried."""

    def __init__(self, provider: str, details: str = "") -> None:
        message = f"Provider {provider} authentication failed"
        if details:
            message = f"{message}: {details}"
        super().__init__(message, provider, "AUTH_ERROR", retryable=False)


class ProviderValidationError(ProviderError):
    """Provider answered but the payload was malformed or empty."""

    def __init__(self, provider: str, details: str, code: str = "VALIDATION_ERROR") -> None:
        super().__init__(
            f"Provider {provider} response validation failed: {details}",
            provider,
            code,
            retryable=False,
        )
        self.details = details


class QualityThresholdError(ProviderValidationError):
    """Response was valid but scored below the cost-optimized quality bar."""

    def __init__(self, provider: str, score: float, threshold: float) -> None:
        super().__init__(
            provider,
            f"quality score {score:.2f} below threshold {threshold:.2f}",
            code="QUALITY_THRESHOLD",
        )
        self.score = score
        self.threshold = threshold


class CostLimitExceededError(ProviderError):
    """Request would push the provider over its daily budget."""

    def __init__(self, provider: str, estimated_cost: float, remaining: Optional[float] = None) -> None:
        message = f"Provider {provider} would exceed daily cost limit (estimated ${estimated_cost:.4f}"
        if remaining is not None:
            message += f", remaining ${max(remaining, 0.0):.4f}"
        message += ")"
        super().__init__(message, provider, "COST_LIMIT_EXCEEDED", retryable=False)
        self.estimated_cost = estimated_cost


class NoProvidersAvailableError(OrchestratorError):
    """Nothing is registered, enabled and healthy."""

    code = "NO_PROVIDERS"

    def __init__(self, message: str = "No available providers") -> None:
        super().__init__(message)


class AllProvidersFailedError(OrchestratorError):
    """Every eligible provider failed or was skipped."""

    code = "ALL_PROVIDERS_FAILED"

    def __init__(self, strategy: str, attempts: list[ProviderAttempt]) -> None:
        summary = "; ".join(f"{a.provider_name}: {a.reason}" for a in attempts) or "no attempts"
        super().__init__(f"All providers failed ({strategy}). Errors: {summary}")
        self.strategy = strategy
        self.attempts = attempts

    @property
    def providers(self) -> list[str]:
        return [a.provider_name for a in self.attempts]


def classify_error(exc: BaseException, provider: str) -> ProviderError:
    """Map an arbitrary exception raised by a provider onto the taxonomy."""
    if isinstance(exc, ProviderError):
        return exc
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return ProviderTimeoutError(provider)
    msg = str(exc).lower()
    if "429" in msg or "rate limit" in msg or "too many requests" in msg:
        return ProviderRateLimitedError(provider)
    if "401" in msg or "403" in msg or "api key" in msg or "unauthorized" in msg:
        return ProviderAuthError(provider, str(exc))
    if "timeout" in msg or "timed out" in msg:
        return ProviderTimeoutError(provider)
    if "malformed" in msg or "schema" in msg or "invalid response" in msg:
        return ProviderValidationError(provider, str(exc))
    # Unknown failures: 5xx and connection resets are worth trying elsewhere
    retryable = any(s in msg for s in ("500", "502", "503", "504", "connection", "reset", "unavailable"))
    return ProviderError(
        f"Provider {provider} failed: {exc}",
        provider,
        code=type(exc).__name__,
        retryable=retryable,
    )


def is_retryable(exc: BaseException) -> bool:
    """True when a provider error is transient (timeout, rate limit, 5xx)."""
    if isinstance(exc, ProviderError):
        return exc.retryable
    return classify_error(exc, "unknown").retryable
