"""
Per-provider daily cost ledger.

Entries are append-only; the cumulative spend for a (provider, UTC day) pair is
maintained alongside so that budget checks stay O(1). Alert and limit
crossings are logged, never raised: blocking is the caller's job via
can_make_request(), or try_reserve() when admission must hold a share of the
budget until the call settles.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Optional

import structlog

from ai_orchestrator.models import CostEntry, DailyCostSummary
from ai_orchestrator.observability import metrics as obs_metrics

logger = structlog.get_logger()


def utc_today() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


class CostLedger:
    """Records provider spend and answers daily budget questions."""

    def __init__(
        self,
        daily_limit_usd: Optional[float] = None,
        alert_threshold_usd: Optional[float] = None,
        enabled: bool = True,
        today: Callable[[], str] = utc_today,
    ) -> None:
        self.daily_limit_usd = daily_limit_usd
        self.alert_threshold_usd = alert_threshold_usd
        self.enabled = enabled
        self._today = today
        self._lock = threading.Lock()
        self._entries: list[CostEntry] = []
        self._daily: dict[str, dict[str, DailyCostSummary]] = defaultdict(dict)
        self._provider_limits: dict[str, float] = {}
        # Estimates of calls admitted by try_reserve() and not yet settled
        self._pending: dict[str, float] = {}

    def set_provider_limit(self, provider: str, limit_usd: Optional[float]) -> None:
        """Per-provider daily cap overriding the ledger-wide one; None clears it."""
        with self._lock:
            if limit_usd is None:
                self._provider_limits.pop(provider, None)
            else:
                self._provider_limits[provider] = limit_usd

    def limit_for(self, provider: str) -> Optional[float]:
        with self._lock:
            return self._provider_limits.get(provider, self.daily_limit_usd)

    def record_cost(
        self,
        provider: str,
        estimated_cost: float,
        actual_cost: Optional[float] = None,
        tokens_used: int = 0,
    ) -> Optional[CostEntry]:
        """Append a spend. Returns the entry, or None when tracking is disabled."""
        if not self.enabled:
            return None
        cost = estimated_cost if actual_cost is None else actual_cost
        date = self._today()
        entry = CostEntry(
            provider_name=provider,
            date=date,
            estimated_cost=estimated_cost,
            actual_cost=cost,
            tokens_used=tokens_used,
        )
        with self._lock:
            self._entries.append(entry)
            summary = self._daily[provider].get(date)
            if summary is None:
                summary = DailyCostSummary(provider_name=provider, date=date)
                self._daily[provider][date] = summary
            summary.total_cost += cost
            summary.total_requests += 1
            summary.total_tokens += tokens_used
            daily_total = summary.total_cost
            limit = self._provider_limits.get(provider, self.daily_limit_usd)
            alert = self.alert_threshold_usd

        obs_metrics.record_provider_cost(provider, cost)
        logger.debug("cost_recorded", provider=provider, cost=round(cost, 6), daily_total=round(daily_total, 6))

        previous_total = daily_total - cost
        if alert is not None and previous_total < alert <= daily_total:
            logger.warning(
                "cost_alert_threshold_reached",
                provider=provider,
                daily_total=round(daily_total, 4),
                threshold=alert,
            )
        if limit is not None and daily_total >= limit:
            logger.error(
                "daily_cost_limit_reached",
                provider=provider,
                daily_total=round(daily_total, 4),
                limit=limit,
            )
        return entry

    def can_make_request(self, provider: str, estimated_cost: float) -> bool:
        """True unless today's spend plus estimated_cost would exceed the limit.

        Spend reserved by calls still in flight counts towards today's total.
        """
        return self._admit(provider, estimated_cost, reserve=False)

    def try_reserve(self, provider: str, estimated_cost: float) -> bool:
        """Atomic can_make_request() that also holds estimated_cost until release()."""
        return self._admit(provider, estimated_cost, reserve=True)

    def release(self, provider: str, estimated_cost: float) -> None:
        """Drop a reservation once the call settled (recorded or failed)."""
        with self._lock:
            pending = self._pending.get(provider, 0.0) - estimated_cost
            if pending > 1e-12:
                self._pending[provider] = pending
            else:
                self._pending.pop(provider, None)

    def pending_cost(self, provider: str) -> float:
        with self._lock:
            return self._pending.get(provider, 0.0)

    def _admit(self, provider: str, estimated_cost: float, reserve: bool) -> bool:
        if not self.enabled:
            return True
        date = self._today()
        with self._lock:
            limit = self._provider_limits.get(provider, self.daily_limit_usd)
            summary = self._daily.get(provider, {}).get(date)
            spent = summary.total_cost if summary else 0.0
            pending = self._pending.get(provider, 0.0)
            allowed = limit is None or spent + pending + estimated_cost <= limit
            if allowed and reserve:
                self._pending[provider] = pending + estimated_cost
        if not allowed:
            logger.warning(
                "cost_limit_would_be_exceeded",
                provider=provider,
                estimated_cost=round(estimated_cost, 6),
                daily_total=round(spent, 6),
                pending=round(pending, 6),
                limit=limit,
            )
        return allowed

    def daily_cost(self, provider: str, date: Optional[str] = None) -> float:
        date = date or self._today()
        with self._lock:
            summary = self._daily.get(provider, {}).get(date)
            return summary.total_cost if summary else 0.0

    def total_cost(self, date: Optional[str] = None) -> float:
        """Sum across providers for one day (today by default)."""
        date = date or self._today()
        with self._lock:
            return sum(days[date].total_cost for days in self._daily.values() if date in days)

    def remaining_budget(self, provider: str) -> Optional[float]:
        limit = self.limit_for(provider)
        if limit is None:
            return None
        return max(0.0, limit - self.daily_cost(provider))

    def daily_summary(self, provider: str, date: Optional[str] = None) -> Optional[DailyCostSummary]:
        date = date or self._today()
        with self._lock:
            summary = self._daily.get(provider, {}).get(date)
            return summary.model_copy() if summary else None

    def all_daily_summaries(self, date: Optional[str] = None) -> list[DailyCostSummary]:
        date = date or self._today()
        with self._lock:
            return [days[date].model_copy() for days in self._daily.values() if date in days]

    def entries(self, provider: Optional[str] = None, limit: Optional[int] = None) -> list[CostEntry]:
        """Most recent entries first."""
        with self._lock:
            selected = [e for e in self._entries if provider is None or e.provider_name == provider]
        selected.reverse()
        return selected[:limit] if limit is not None else selected

    def reset(self, provider: Optional[str] = None) -> None:
        with self._lock:
            if provider is None:
                self._entries.clear()
                self._daily.clear()
                self._pending.clear()
            else:
                self._entries = [e for e in self._entries if e.provider_name != provider]
                self._daily.pop(provider, None)
                self._pending.pop(provider, None)
        logger.info("cost_ledger_reset", provider=provider or "all")

    def remove_provider(self, provider: str) -> None:
        self.reset(provider)
        self.set_provider_limit(provider, None)

    def update_config(
        self,
        daily_limit_usd: Optional[float] = None,
        alert_threshold_usd: Optional[float] = None,
        enabled: Optional[bool] = None,
    ) -> None:
        """Change global limits at runtime; None leaves a field unchanged."""
        with self._lock:
            if daily_limit_usd is not None:
                self.daily_limit_usd = daily_limit_usd
            if alert_threshold_usd is not None:
                self.alert_threshold_usd = alert_threshold_usd
            if enabled is not None:
                self.enabled = enabled
        logger.info(
            "cost_config_updated",
            daily_limit_usd=self.daily_limit_usd,
            alert_threshold_usd=self.alert_threshold_usd,
            enabled=self.enabled,
        )

    def log_summary(self) -> None:
        summaries = self.all_daily_summaries()
        if not summaries:
            logger.info("cost_summary", date=self._today(), total_cost=0.0)
            return
        for s in summaries:
            logger.info(
                "provider_daily_cost",
                provider=s.provider_name,
                date=s.date,
                total_cost=round(s.total_cost, 4),
                requests=s.total_requests,
                tokens=s.total_tokens,
                average_cost=round(s.average_cost_per_request, 6),
            )
        logger.info("cost_summary", date=self._today(), total_cost=round(self.total_cost(), 4))
