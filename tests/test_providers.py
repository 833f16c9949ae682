"""Tests for the provider base class and the mock provider."""

from unittest.mock import AsyncMock

import pytest

from ai_orchestrator.errors import ProviderAuthError, ProviderConfigError, ProviderTimeoutError
from ai_orchestrator.models import GenerationRequest, GenerationResponse, ProviderDescriptor
from ai_orchestrator.providers.base import AIProvider
from ai_orchestrator.providers.mock import MockProvider


class KeyedProvider(AIProvider):
    async def generate_response(self, request: GenerationRequest) -> GenerationResponse:
        raise NotImplementedError

    def estimate_cost(self, tokens_used: int) -> float:
        return tokens_used * 0.00001


class TestMockProvider:
    @pytest.mark.asyncio
    async def test_deterministic_content(self) -> None:
        provider = MockProvider({"name": "mock"}, delay_seconds=0)
        request = GenerationRequest(prompt="Explain caching", system_prompt="Be brief")
        first = await provider.generate_response(request)
        second = await provider.generate_response(request)
        assert first.content == second.content
        assert "Explain caching" in first.content
        assert first.provider_name == "mock"
        assert first.model == "mock-v1"
        assert first.tokens_used == 6  # ceil(23 / 4)
        assert first.metadata["is_mock"] is True
        assert first.cached is False
        assert provider.validate_response(first)

    def test_available_without_api_key(self) -> None:
        assert MockProvider({"name": "mock"}).is_available()
        assert not MockProvider({"name": "mock", "enabled": False}).is_available()

    def test_costs_nothing(self) -> None:
        assert MockProvider({"name": "mock"}).estimate_cost(1_000_000) == 0.0


class TestProviderContract:
    def test_api_key_required_for_availability(self) -> None:
        assert not KeyedProvider({"name": "vendor"}).is_available()
        assert KeyedProvider({"name": "vendor", "api_key": "sk-test"}).is_available()

    @pytest.mark.parametrize(
        "config",
        [
            {"name": ""},
            {"name": "   "},
            {"name": "vendor", "priority": -1},
            {"name": "vendor", "timeout_seconds": 0},
            {"priority": 1},
        ],
    )
    def test_invalid_config_rejected_at_construction(self, config: dict) -> None:
        with pytest.raises(ProviderConfigError):
            KeyedProvider(config)

    def test_accepts_descriptor_instance(self) -> None:
        provider = KeyedProvider(ProviderDescriptor(name="vendor", priority=2, api_key="k"))
        assert provider.name == "vendor"
        assert provider.priority == 2

    def test_validate_response(self) -> None:
        provider = KeyedProvider({"name": "vendor"})
        assert provider.validate_response(GenerationResponse(content="ok", provider_name="vendor"))
        assert not provider.validate_response(GenerationResponse(content="  ", provider_name="vendor"))
        assert not provider.validate_response({"content": "ok"})
        assert not provider.validate_response(None)


class TestCallWithRetry:
    @pytest.mark.asyncio
    async def test_retries_transient_errors(self) -> None:
        provider = KeyedProvider({"name": "vendor"})
        fn = AsyncMock(side_effect=[ProviderTimeoutError("vendor"), ProviderTimeoutError("vendor"), "done"])
        result = await provider.call_with_retry(fn, "arg", wait_min=0, wait_max=0)
        assert result == "done"
        assert fn.await_count == 3
        fn.assert_awaited_with("arg")

    @pytest.mark.asyncio
    async def test_gives_up_after_attempts(self) -> None:
        provider = KeyedProvider({"name": "vendor"})
        fn = AsyncMock(side_effect=ProviderTimeoutError("vendor"))
        with pytest.raises(ProviderTimeoutError):
            await provider.call_with_retry(fn, attempts=2, wait_min=0, wait_max=0)
        assert fn.await_count == 2

    @pytest.mark.asyncio
    async def test_does_not_retry_permanent_errors(self) -> None:
        provider = KeyedProvider({"name": "vendor"})
        fn = AsyncMock(side_effect=ProviderAuthError("vendor"))
        with pytest.raises(ProviderAuthError):
            await provider.call_with_retry(fn, wait_min=0, wait_max=0)
        assert fn.await_count == 1
