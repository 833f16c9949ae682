"""Null-object provider for development, tests and as a last-resort fallback."""

from __future__ import annotations

import asyncio
import math
from typing import Any

from ai_orchestrator.models import GenerationRequest, GenerationResponse, ProviderDescriptor
from ai_orchestrator.providers.base import AIProvider

MOCK_MODEL = "mock-v1"


class MockProvider(AIProvider):
    """Always available when enabled; returns deterministic markdown at no cost."""

    requires_api_key = False

    def __init__(self, descriptor: ProviderDescriptor | dict[str, Any], delay_seconds: float = 0.1) -> None:
        super().__init__(descriptor)
        self.delay_seconds = delay_seconds

    async def generate_response(self, request: GenerationRequest) -> GenerationResponse:
        started = self.log_request(request)
        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)

        content = self._render(request)
        chars = len(request.prompt) + len(request.system_prompt or "")
        response = GenerationResponse(
            content=content,
            provider_name=self.name,
            model=self.descriptor.model or MOCK_MODEL,
            tokens_used=math.ceil(chars / 4),
            response_time_ms=round(self.delay_seconds * 1000, 1),
            metadata={"is_mock": True},
        )
        self.log_response(response, started)
        return response

    def estimate_cost(self, tokens_used: int) -> float:
        return 0.0

    def _render(self, request: GenerationRequest) -> str:
        preview = request.prompt.strip().splitlines()[0][:80]
        return (
            "# Mock Response\n\n"
            f"Generated by `{self.name}` for the prompt: *{preview}*\n\n"
            "## Summary\n\n"
            "- This content is synthetic and produced without calling an upstream model.\n"
            "- Configure a real provider to receive model output.\n"
        )
