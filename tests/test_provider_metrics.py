"""Tests for in-process provider metrics: counters and derived figures."""

from ai_orchestrator.provider_metrics import MetricsCollector


def test_derived_values_match_recomputation(collector: MetricsCollector) -> None:
    collector.record_success("a", 120.0, 300)
    collector.record_success("a", 80.0, None)
    collector.record_failure("a", 200.0, "TIMEOUT", "timed out")
    m = collector.provider_metrics("a")
    assert m.total_requests == m.successful_requests + m.failed_requests == 3
    assert m.total_tokens_used == 300
    assert m.average_response_time_ms == m.total_response_time_ms / m.total_requests == 400.0 / 3
    assert m.success_rate == m.successful_requests / m.total_requests


def test_errors_grouped_by_type(collector: MetricsCollector) -> None:
    collector.record_failure("a", 10.0, "TIMEOUT")
    collector.record_failure("a", 10.0, "TIMEOUT")
    collector.record_failure("a", 10.0, "RATE_LIMIT", "slow down")
    m = collector.provider_metrics("a")
    assert m.errors_by_type == {"TIMEOUT": 2, "RATE_LIMIT": 1}
    assert m.last_error == "slow down"
    assert m.last_error_at is not None


def test_empty_provider_has_zero_rates(collector: MetricsCollector) -> None:
    collector.initialize_provider("a")
    m = collector.provider_metrics("a")
    assert m.total_requests == 0
    assert m.average_response_time_ms == 0.0
    assert m.success_rate == 0.0


def test_aggregated_sums_providers(collector: MetricsCollector) -> None:
    collector.record_success("a", 100.0, 10)
    collector.record_success("b", 300.0, 20)
    collector.record_failure("b", 200.0, "X")
    agg = collector.aggregated()
    assert agg.total_requests == 3
    assert agg.total_successes == 2
    assert agg.total_failures == 1
    assert agg.total_tokens_used == 30
    assert agg.average_response_time_ms == 200.0
    assert agg.uptime_seconds >= 0
    assert {p.provider_name for p in agg.providers} == {"a", "b"}


def test_summary_health_flag(collector: MetricsCollector) -> None:
    for _ in range(9):
        collector.record_success("a", 100.0)
    collector.record_failure("a", 100.0, "X")
    summary = collector.summary()
    assert summary.healthy
    assert summary.success_rate_pct == 90.0
    assert summary.providers[0]["name"] == "a"

    collector.record_failure("a", 100.0, "X")
    collector.record_failure("a", 100.0, "X")
    assert not collector.summary().healthy


def test_slow_providers_are_unhealthy(collector: MetricsCollector) -> None:
    collector.record_success("a", 15_000.0)
    assert not collector.summary().healthy


def test_reset_and_remove(collector: MetricsCollector) -> None:
    collector.record_success("a", 10.0)
    collector.record_success("b", 10.0)
    collector.reset("a")
    assert collector.provider_metrics("a").total_requests == 0
    assert collector.provider_metrics("b").total_requests == 1
    collector.reset()
    assert collector.provider_metrics("b").total_requests == 0
    collector.remove_provider("b")
    assert collector.provider_metrics("b") is None


def test_snapshots_are_copies(collector: MetricsCollector) -> None:
    collector.record_failure("a", 10.0, "X")
    snap = collector.provider_metrics("a")
    snap.errors_by_type["X"] = 99
    assert collector.provider_metrics("a").errors_by_type["X"] == 1
