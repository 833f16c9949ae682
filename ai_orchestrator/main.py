"""
Provider Orchestrator: command-line entry point.

Usage:
    python -m ai_orchestrator.main generate "Summarize the attached notes" --strategy parallel-comparison
    python -m ai_orchestrator.main generate "Explain TTL caches" --system "Be brief" --max-tokens 300
    python -m ai_orchestrator.main providers

Providers come from config/providers.yaml when present; only the mock provider
ships with this package, so every configured entry is served by a MockProvider.
"""

from __future__ import annotations

import argparse
import asyncio
import time
from typing import Optional

import structlog
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ai_orchestrator.config import Settings, get_settings
from ai_orchestrator.errors import AllProvidersFailedError, OrchestratorError
from ai_orchestrator.manager import ProviderManager
from ai_orchestrator.models import AttemptOutcome, GenerationRequest, ProviderDescriptor, ProviderStrategy
from ai_orchestrator.observability import configure_logging
from ai_orchestrator.observability import metrics as obs_metrics
from ai_orchestrator.providers.mock import MockProvider

logger = structlog.get_logger()
console = Console(highlight=False)

DEFAULT_DESCRIPTORS = [
    ProviderDescriptor(name="mock-primary", priority=1, model="mock-v1"),
    ProviderDescriptor(name="mock-fallback", priority=5, model="mock-v1"),
]

_OUTCOME_STYLE = {
    AttemptOutcome.SUCCEEDED: "green",
    AttemptOutcome.FAILED: "red",
    AttemptOutcome.SKIPPED: "yellow",
}


def build_manager(
    settings: Optional[Settings] = None,
    strategy: Optional[str] = None,
) -> ProviderManager:
    """Manager with one MockProvider per configured descriptor (or the defaults)."""
    settings = settings if settings is not None else get_settings()
    manager = ProviderManager(strategy=strategy, settings=settings)
    for descriptor in settings.providers or DEFAULT_DESCRIPTORS:
        manager.register_provider(MockProvider(descriptor))
    return manager


async def run_generate(
    prompt: str,
    system_prompt: Optional[str] = None,
    max_tokens: Optional[int] = None,
    temperature: Optional[float] = None,
    strategy: Optional[str] = None,
) -> int:
    manager = build_manager(strategy=strategy)
    request = GenerationRequest(
        prompt=prompt,
        system_prompt=system_prompt,
        max_tokens=max_tokens,
        temperature=temperature,
    )
    started = time.perf_counter()
    try:
        result = await manager.generate_detailed(request)
    except AllProvidersFailedError as e:
        _display_attempts(e.attempts, title="Failed Attempts")
        console.print(f"[red]{e}[/red]")
        return 1
    except OrchestratorError as e:
        console.print(f"[red]{type(e).__name__}: {e}[/red]")
        return 1
    finally:
        manager.shutdown()

    response = result.response
    table = Table(title="Generation Summary")
    table.add_column("Field", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Strategy", result.strategy.value)
    table.add_row("Provider", response.provider_name)
    table.add_row("Model", response.model or "-")
    table.add_row("Tokens", str(response.tokens_used) if response.tokens_used is not None else "-")
    table.add_row("Provider Time", f"{response.response_time_ms:.0f} ms")
    table.add_row("Wall Time", f"{time.perf_counter() - started:.2f}s")
    table.add_row("Cached", "yes" if response.cached else "no")
    console.print(table)
    if result.attempts:
        _display_attempts(result.attempts, title="Attempts")
    console.print(Panel(response.content, title=f"Response from {response.provider_name}"))
    return 0


def show_providers(strategy: Optional[str] = None) -> int:
    manager = build_manager(strategy=strategy)
    try:
        table = Table(title=f"Registered Providers ({manager.strategy.value})")
        table.add_column("Name", style="bold")
        table.add_column("Priority", justify="right")
        table.add_column("Model")
        table.add_column("Available")
        table.add_column("Status")
        table.add_column("Success Rate", justify="right")
        for provider in manager.list_providers():
            health = manager.get_provider_health(provider.name)
            disabled = bool(health and health.disabled)
            table.add_row(
                provider.name,
                str(provider.priority),
                provider.descriptor.model or "-",
                "yes" if provider.is_available() else "no",
                "[red]disabled[/red]" if disabled else "[green]active[/green]",
                f"{health.success_rate * 100:.1f}%" if health else "-",
            )
        console.print(table)
    finally:
        manager.shutdown()
    return 0


def _display_attempts(attempts, title: str) -> None:
    table = Table(title=title)
    table.add_column("Provider", style="bold")
    table.add_column("Outcome")
    table.add_column("Code")
    table.add_column("Time", justify="right")
    table.add_column("Detail")
    for a in attempts:
        style = _OUTCOME_STYLE.get(a.outcome, "white")
        table.add_row(
            a.provider_name,
            f"[{style}]{a.outcome.value}[/{style}]",
            a.code or "-",
            f"{a.response_time_ms:.0f} ms",
            a.reason[:120],
        )
    console.print(table)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Multi-provider AI request orchestrator")
    parser.add_argument("--log-level", default=None, help="Overrides LOG_LEVEL")
    parser.add_argument("--json-logs", action="store_true", help="Render log events as JSON")
    sub = parser.add_subparsers(dest="command")

    gen = sub.add_parser("generate", help="Run one prompt through the configured providers")
    gen.add_argument("prompt", help="Prompt text")
    gen.add_argument("--system", dest="system_prompt", help="System prompt")
    gen.add_argument("--max-tokens", type=int, default=None, help="Maximum output tokens")
    gen.add_argument("--temperature", type=float, default=None, help="Sampling temperature")
    gen.add_argument(
        "--strategy",
        choices=[s.value for s in ProviderStrategy],
        default=None,
        help="Dispatch strategy; uses AI_PROVIDER_STRATEGY if not set",
    )

    prov = sub.add_parser("providers", help="List registered providers and their health")
    prov.add_argument("--strategy", choices=[s.value for s in ProviderStrategy], default=None)

    args = parser.parse_args(argv)
    settings = get_settings()
    configure_logging(args.log_level or settings.observability.log_level, json_output=args.json_logs)
    obs_metrics.configure(settings.observability.metrics_enabled)
    obs_metrics.start_server(settings.observability.metrics_port)

    if args.command == "generate":
        return asyncio.run(
            run_generate(
                args.prompt,
                system_prompt=args.system_prompt,
                max_tokens=args.max_tokens,
                temperature=args.temperature,
                strategy=args.strategy,
            )
        )
    if args.command == "providers":
        return show_providers(args.strategy)
    parser.print_help()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
