"""Tests for the command-line entry point."""

import pytest
import structlog

from ai_orchestrator.config import Settings
from ai_orchestrator.main import DEFAULT_DESCRIPTORS, build_manager, main
from ai_orchestrator.models import ProviderDescriptor, ProviderStrategy
from ai_orchestrator.providers.mock import MockProvider


@pytest.fixture(autouse=True)
def _restore_logging():
    yield
    structlog.reset_defaults()


def test_build_manager_uses_default_mocks() -> None:
    manager = build_manager(Settings(), strategy="cost-optimized")
    try:
        assert [p.name for p in manager.list_providers()] == [d.name for d in DEFAULT_DESCRIPTORS]
        assert all(isinstance(p, MockProvider) for p in manager.list_providers())
        assert manager.strategy == ProviderStrategy.COST_OPTIMIZED
    finally:
        manager.shutdown()


def test_build_manager_uses_configured_descriptors() -> None:
    settings = Settings()
    settings.providers = [ProviderDescriptor(name="from-yaml", priority=2)]
    manager = build_manager(settings)
    try:
        assert [p.name for p in manager.list_providers()] == ["from-yaml"]
    finally:
        manager.shutdown()


def test_generate_command(capsys) -> None:
    assert main(["generate", "Explain TTL caches", "--strategy", "primary-only"]) == 0
    out = capsys.readouterr().out
    assert "Generation Summary" in out
    assert "mock-primary" in out


def test_providers_command(capsys) -> None:
    assert main(["providers"]) == 0
    out = capsys.readouterr().out
    assert "Registered Providers" in out
    assert "mock-fallback" in out


def test_no_command_prints_help(capsys) -> None:
    assert main([]) == 0
    assert "usage" in capsys.readouterr().out.lower()
