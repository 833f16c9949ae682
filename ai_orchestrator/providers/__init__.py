from ai_orchestrator.providers.base import AIProvider, classify_http_status
from ai_orchestrator.providers.mock import MockProvider

__all__ = ["AIProvider", "MockProvider", "classify_http_status"]
