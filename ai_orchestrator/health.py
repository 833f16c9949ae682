"""
Per-provider circuit breaker.

Each provider is Active, Disabled with a cooldown, or Disabled manually.
Consecutive failures trip the breaker; any success closes it again, except a
manual disable, which only enable() lifts. Cooldown expiry is checked lazily
when a provider is considered for selection, so there is no timer per
provider. The lock is only held for in-memory updates, never around a
provider call.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Optional

import structlog

from ai_orchestrator.models import ProviderHealth
from ai_orchestrator.observability import metrics as obs_metrics

logger = structlog.get_logger()

DEFAULT_MAX_CONSECUTIVE_FAILURES = 5
DEFAULT_COOLDOWN_SECONDS = 300.0


class HealthTracker:
    """Tracks success/failure streaks and temporary disablement per provider."""

    def __init__(
        self,
        max_consecutive_failures: int = DEFAULT_MAX_CONSECUTIVE_FAILURES,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_consecutive_failures < 1:
            raise ValueError("max_consecutive_failures must be >= 1")
        self.max_consecutive_failures = max_consecutive_failures
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._health: dict[str, ProviderHealth] = {}
        self._lock = threading.Lock()

    def register(self, name: str) -> None:
        """Start (or restart) tracking a provider with clean counters."""
        with self._lock:
            self._health[name] = ProviderHealth(provider_name=name)

    def remove(self, name: str) -> bool:
        with self._lock:
            return self._health.pop(name, None) is not None

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._health

    def eligible(self, name: str, now: Optional[float] = None) -> bool:
        """Selection-time check; clears an elapsed cooldown as a side effect."""
        now = self._clock() if now is None else now
        with self._lock:
            health = self._health.get(name)
            if health is None:
                return False
            if not health.disabled:
                return True
            if health.manually_disabled or health.disabled_until is None:
                return False
            if now < health.disabled_until:
                return False
            health.disabled = False
            health.disabled_until = None
            health.consecutive_failures = 0
        logger.info("provider_reenabled", provider=name, reason="cooldown_elapsed")
        return True

    def record_success(self, name: str) -> Optional[ProviderHealth]:
        reenabled = False
        with self._lock:
            health = self._health.get(name)
            if health is None:
                return None
            health.success_count += 1
            health.consecutive_failures = 0
            health.last_failure_at = None
            # A manual disable outlives successes of calls already in flight
            if health.disabled and not health.manually_disabled:
                health.disabled = False
                health.disabled_until = None
                reenabled = True
            snapshot = health.model_copy()
        if reenabled:
            logger.info("provider_reenabled", provider=name, reason="successful_response")
        return snapshot

    def record_failure(self, name: str, error: Optional[BaseException] = None) -> Optional[ProviderHealth]:
        now = self._clock()
        tripped = False
        with self._lock:
            health = self._health.get(name)
            if health is None:
                return None
            health.failure_count += 1
            health.consecutive_failures += 1
            health.last_failure_at = now
            if health.consecutive_failures >= self.max_consecutive_failures and not health.disabled:
                health.disabled = True
                health.disabled_until = now + self.cooldown_seconds
                tripped = True
            snapshot = health.model_copy()

        logger.debug(
            "provider_failure_tracked",
            provider=name,
            consecutive_failures=snapshot.consecutive_failures,
            max_consecutive_failures=self.max_consecutive_failures,
            error=str(error)[:120] if error else None,
        )
        if tripped:
            obs_metrics.record_provider_disabled(name, reason="circuit_breaker")
            logger.error(
                "provider_disabled",
                provider=name,
                consecutive_failures=snapshot.consecutive_failures,
                cooldown_seconds=self.cooldown_seconds,
            )
        return snapshot

    def disable(self, name: str, cooldown_seconds: Optional[float] = None) -> bool:
        """Operator disable. Without a cooldown it lasts until enable()."""
        with self._lock:
            health = self._health.get(name)
            if health is None:
                logger.warning("provider_disable_unknown", provider=name)
                return False
            health.disabled = True
            if cooldown_seconds is None:
                health.manually_disabled = True
                health.disabled_until = None
            else:
                health.manually_disabled = False
                health.disabled_until = self._clock() + cooldown_seconds
        obs_metrics.record_provider_disabled(name, reason="manual")
        logger.info("provider_manually_disabled", provider=name, cooldown_seconds=cooldown_seconds)
        return True

    def enable(self, name: str) -> bool:
        with self._lock:
            health = self._health.get(name)
            if health is None:
                logger.warning("provider_enable_unknown", provider=name)
                return False
            health.disabled = False
            health.disabled_until = None
            health.manually_disabled = False
            health.consecutive_failures = 0
        logger.info("provider_manually_enabled", provider=name)
        return True

    def snapshot(self, name: str) -> Optional[ProviderHealth]:
        with self._lock:
            health = self._health.get(name)
            return health.model_copy() if health else None

    def snapshot_all(self) -> dict[str, ProviderHealth]:
        with self._lock:
            return {name: h.model_copy() for name, h in self._health.items()}

    def success_rate(self, name: str) -> Optional[float]:
        health = self.snapshot(name)
        return health.success_rate if health else None

    def reset(self, name: str) -> bool:
        with self._lock:
            if name not in self._health:
                return False
            self._health[name] = ProviderHealth(provider_name=name)
        logger.info("provider_health_reset", provider=name)
        return True

    def reset_all(self) -> None:
        with self._lock:
            for name in list(self._health):
                self._health[name] = ProviderHealth(provider_name=name)
        logger.info("provider_health_reset_all")

    def log_health(self) -> None:
        for name, health in self.snapshot_all().items():
            logger.info(
                "provider_health",
                provider=name,
                status="disabled" if health.disabled else "active",
                disabled_until=health.disabled_until,
                successes=health.success_count,
                failures=health.failure_count,
                success_rate=f"{health.success_rate * 100:.2f}%",
            )
