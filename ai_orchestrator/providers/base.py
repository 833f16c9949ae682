"""
Provider contract.

A provider is an opaque capability: given a GenerationRequest it eventually
produces a GenerationResponse or raises. The orchestrator only relies on the
methods declared here; concrete vendor clients (HTTP, SDK) subclass AIProvider
and may use the helpers below for their own retry and status mapping.

Design decisions:
  - is_available() is a local check only (enabled + configured), no I/O
  - estimate_cost() is pure so the cost-optimized strategy can rank providers
  - Retries against the same vendor happen here, inside the provider, never in
    the orchestrator
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any, Optional, TypeVar

import structlog
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ai_orchestrator.errors import (
    ProviderAuthError,
    ProviderConfigError,
    ProviderError,
    ProviderRateLimitedError,
    ProviderValidationError,
    is_retryable,
)
from ai_orchestrator.models import GenerationRequest, GenerationResponse, ProviderDescriptor

logger = structlog.get_logger()
T = TypeVar("T")

DEFAULT_RETRY_ATTEMPTS = 3


def classify_http_status(
    provider: str,
    status: int,
    body: str = "",
    retry_after: Optional[float] = None,
) -> ProviderError:
    """Map a non-2xx HTTP status from a vendor API onto the error taxonomy."""
    if status in (401, 403):
        return ProviderAuthError(provider, body[:200])
    if status == 429:
        return ProviderRateLimitedError(provider, retry_after)
    if status == 400 or status == 422:
        return ProviderValidationError(provider, body[:200] or f"HTTP {status}", code="BAD_REQUEST")
    retryable = status >= 500 or status == 408
    return ProviderError(
        f"Provider {provider} returned HTTP {status}" + (f": {body[:200]}" if body else ""),
        provider,
        code=f"HTTP_{status}",
        retryable=retryable,
    )


class AIProvider(ABC):
    """Base class every provider implements."""

    requires_api_key: bool = True

    def __init__(self, descriptor: ProviderDescriptor | dict[str, Any]) -> None:
        if isinstance(descriptor, dict):
            try:
                descriptor = ProviderDescriptor(**descriptor)
            except ValidationError as e:
                raise ProviderConfigError(f"Invalid provider configuration: {e}") from e
        self._descriptor = descriptor
        self._validate_config()

    def _validate_config(self) -> None:
        """Raise ProviderConfigError when the descriptor cannot be used."""
        if not self._descriptor.name:
            raise ProviderConfigError("Provider name is required")
        if self._descriptor.priority < 0:
            raise ProviderConfigError(f"Provider {self._descriptor.name}: priority must be >= 0")
        if self._descriptor.timeout_seconds <= 0:
            raise ProviderConfigError(f"Provider {self._descriptor.name}: timeout must be > 0")

    @property
    def descriptor(self) -> ProviderDescriptor:
        return self._descriptor

    @property
    def name(self) -> str:
        return self._descriptor.name

    @property
    def priority(self) -> int:
        return self._descriptor.priority

    def is_available(self) -> bool:
        if not self._descriptor.enabled:
            return False
        if self.requires_api_key and not self._descriptor.api_key:
            return False
        return True

    @abstractmethod
    async def generate_response(self, request: GenerationRequest) -> GenerationResponse:
        """Produce a completion or raise a ProviderError."""

    @abstractmethod
    def estimate_cost(self, tokens_used: int) -> float:
        """USD cost of a call consuming tokens_used tokens."""

    def validate_response(self, response: object) -> bool:
        """Structural check: a GenerationResponse with non-blank content."""
        if not isinstance(response, GenerationResponse):
            return False
        return bool(response.content and response.content.strip())

    # --- helpers for concrete providers ---

    async def call_with_retry(
        self,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
        attempts: int = DEFAULT_RETRY_ATTEMPTS,
        wait_min: float = 1.0,
        wait_max: float = 10.0,
        **kwargs: Any,
    ) -> T:
        """Run fn with exponential backoff, retrying only transient failures."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=1, min=wait_min, max=wait_max),
            retry=retry_if_exception(is_retryable),
            reraise=True,
            before_sleep=lambda rs: logger.warning(
                "provider_retry",
                provider=self.name,
                attempt=rs.attempt_number,
                error=str(rs.outcome.exception()) if rs.outcome else "unknown",
            ),
        )
        async for attempt in retrying:
            with attempt:
                return await fn(*args, **kwargs)
        raise AssertionError("unreachable")  # pragma: no cover

    def log_request(self, request: GenerationRequest) -> float:
        logger.debug(
            "provider_request",
            provider=self.name,
            model=self._descriptor.model,
            prompt_length=len(request.prompt),
            has_system_prompt=bool(request.system_prompt),
            max_tokens=request.max_tokens or self._descriptor.max_tokens,
        )
        return time.perf_counter()

    def log_response(self, response: GenerationResponse, started: float) -> None:
        logger.debug(
            "provider_response",
            provider=self.name,
            model=response.model,
            content_length=len(response.content),
            tokens_used=response.tokens_used,
            elapsed_ms=round((time.perf_counter() - started) * 1000, 1),
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, priority={self.priority})"
