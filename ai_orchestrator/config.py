"""
Centralized configuration for the provider orchestrator.

All settings are loaded from environment variables with sensible defaults.
Pydantic Settings provides validation and type coercion. Provider definitions
may additionally come from a YAML file (config/providers.yaml by default);
the surrounding application is free to build descriptors any other way.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

from ai_orchestrator.models import ProviderDescriptor, ProviderStrategy

# Load .env then .env.local (so .env.local overrides).
_repo_root = Path(__file__).resolve().parent.parent
load_dotenv(_repo_root / ".env")
_env_local = _repo_root / ".env.local"
if _env_local.exists():
    load_dotenv(_env_local, override=True)

logger = structlog.get_logger()


class CacheConfig(BaseSettings):
    """Response cache behaviour."""

    enabled: bool = Field(default=True, alias="AI_RESPONSE_CACHE_ENABLED")
    ttl_seconds: float = Field(default=3600.0, gt=0, alias="AI_RESPONSE_CACHE_TTL")
    sweep_interval_seconds: float = Field(default=300.0, gt=0, alias="AI_RESPONSE_CACHE_SWEEP_INTERVAL")


class HealthConfig(BaseSettings):
    """Circuit breaker thresholds."""

    max_consecutive_failures: int = Field(default=5, ge=1, alias="AI_MAX_CONSECUTIVE_FAILURES")
    cooldown_seconds: float = Field(default=300.0, gt=0, alias="AI_PROVIDER_COOLDOWN_SECONDS")


class CostConfig(BaseSettings):
    """Daily spend caps; None = no limit."""

    enabled: bool = Field(default=True, alias="AI_COST_TRACKING_ENABLED")
    daily_limit_usd: Optional[float] = Field(default=None, ge=0, alias="AI_DAILY_COST_LIMIT_USD")
    alert_threshold_usd: Optional[float] = Field(default=None, ge=0, alias="AI_COST_ALERT_THRESHOLD_USD")


class StrategyConfig(BaseSettings):
    """Default dispatch strategy and cost-optimized quality bar."""

    strategy: ProviderStrategy = Field(default=ProviderStrategy.FALLBACK_CHAIN, alias="AI_PROVIDER_STRATEGY")
    quality_threshold: float = Field(default=0.6, ge=0.0, le=1.0, alias="AI_QUALITY_THRESHOLD")


class ObservabilityConfig(BaseSettings):
    """Logging and Prometheus metrics."""

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    # Prometheus: /metrics exposed on this port when enabled
    metrics_enabled: bool = Field(default=False, alias="PROMETHEUS_METRICS_ENABLED")
    metrics_port: int = Field(default=8000, alias="PROMETHEUS_METRICS_PORT")


class YAMLConfigLoader:
    """Loads YAML config files from a configurable directory."""

    def __init__(self, config_dir: str | Path = "config") -> None:
        config_dir = Path(config_dir)
        self._dir = config_dir if config_dir.is_absolute() else _repo_root / config_dir

    def load(self, filename: str) -> dict[str, Any]:
        """Load a YAML file; returns empty dict if the file is missing."""
        path = self._dir / filename
        if not path.exists():
            return {}
        with open(path, encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in config file {path}: {e}") from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping at the top level")
        return data


def parse_provider_descriptors(raw: dict[str, Any]) -> list[ProviderDescriptor]:
    """Build descriptors from the `providers:` section of a YAML document.

    Accepts either a list of mappings (each with a `name`) or a mapping keyed
    by provider name. Invalid entries raise ValueError naming the provider.
    """
    section = raw.get("providers", [])
    if isinstance(section, dict):
        items = [{"name": name, **(body or {})} for name, body in section.items()]
    elif isinstance(section, list):
        items = section
    else:
        raise ValueError("'providers' must be a list or a mapping")

    descriptors: list[ProviderDescriptor] = []
    for item in items:
        if not isinstance(item, dict):
            raise ValueError(f"Provider entry must be a mapping, got {type(item).__name__}")
        try:
            descriptors.append(ProviderDescriptor.model_validate(item))
        except ValueError as e:
            raise ValueError(f"Invalid provider config '{item.get('name', '?')}': {e}") from e
    return descriptors


class Settings(BaseSettings):
    """Root settings container; all config is read from one object."""

    cache: CacheConfig = Field(default_factory=CacheConfig)
    health: HealthConfig = Field(default_factory=HealthConfig)
    cost: CostConfig = Field(default_factory=CostConfig)
    strategy: StrategyConfig = Field(default_factory=StrategyConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    # YAML-loaded provider definitions (populated in get_settings)
    providers: list[ProviderDescriptor] = Field(default_factory=list)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton settings instance. Cached after first call."""
    settings = Settings()
    raw = YAMLConfigLoader().load("providers.yaml")
    if raw:
        settings.providers = parse_provider_descriptors(raw)
        logger.debug("provider_config_loaded", providers=[p.name for p in settings.providers])
    return settings
