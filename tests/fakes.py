"""Scripted providers and a manual clock shared by the test modules."""

from __future__ import annotations

import asyncio
from typing import Optional

from ai_orchestrator.models import GenerationRequest, GenerationResponse, ProviderDescriptor
from ai_orchestrator.providers.base import AIProvider


class FakeClock:
    """Manually advanced clock for TTL and cooldown tests."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedProvider(AIProvider):
    """Provider whose behaviour is fixed at construction: succeed, fail or stall."""

    requires_api_key = False

    def __init__(
        self,
        name: str,
        priority: int = 10,
        content: str = "x" * 200,
        tokens_used: Optional[int] = 200,
        response_time_ms: float = 100.0,
        error: Optional[BaseException] = None,
        delay: float = 0.0,
        cost: float = 0.0,
        timeout_seconds: float = 30.0,
        enabled: bool = True,
    ) -> None:
        super().__init__(
            ProviderDescriptor(
                name=name,
                priority=priority,
                enabled=enabled,
                timeout_seconds=timeout_seconds,
            )
        )
        self.content = content
        self.tokens_used = tokens_used
        self.response_time_ms = response_time_ms
        self.error = error
        self.delay = delay
        self.cost = cost
        self.calls = 0
        self.cancelled = False

    async def generate_response(self, request: GenerationRequest) -> GenerationResponse:
        self.calls += 1
        if self.delay:
            try:
                await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        if self.error is not None:
            raise self.error
        return GenerationResponse(
            content=self.content,
            provider_name=self.name,
            model="scripted",
            tokens_used=self.tokens_used,
            response_time_ms=self.response_time_ms,
        )

    def estimate_cost(self, tokens_used: int) -> float:
        return self.cost


