"""Observability: structlog setup and Prometheus metrics for the provider orchestrator."""

from ai_orchestrator.observability.log_config import configure_logging
from ai_orchestrator.observability.metrics import metrics

__all__ = ["configure_logging", "metrics"]
