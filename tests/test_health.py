"""Tests for the per-provider circuit breaker."""

from ai_orchestrator.health import HealthTracker


def _trip(health: HealthTracker, name: str, times: int = 5) -> None:
    for _ in range(times):
        health.record_failure(name, RuntimeError("boom"))


class TestCircuitBreaker:
    def test_five_failures_disable_provider(self, health) -> None:
        health.register("a")
        _trip(health, "a", 4)
        assert health.eligible("a")
        health.record_failure("a")
        assert not health.eligible("a")
        snap = health.snapshot("a")
        assert snap.disabled and snap.disabled_until is not None
        assert snap.failure_count == 5

    def test_single_success_closes_breaker(self, health) -> None:
        health.register("a")
        _trip(health, "a")
        health.record_success("a")
        snap = health.snapshot("a")
        assert snap.consecutive_failures == 0
        assert not snap.disabled
        assert health.eligible("a")

    def test_success_resets_streak_without_tripping(self, health) -> None:
        health.register("a")
        _trip(health, "a", 4)
        health.record_success("a")
        _trip(health, "a", 4)
        assert health.eligible("a")
        assert health.snapshot("a").consecutive_failures == 4

    def test_cooldown_elapses_lazily(self, health, clock) -> None:
        health.register("a")
        _trip(health, "a")
        clock.advance(299)
        assert not health.eligible("a")
        clock.advance(1)
        assert health.eligible("a")
        snap = health.snapshot("a")
        assert not snap.disabled
        assert snap.disabled_until is None
        assert snap.consecutive_failures == 0

    def test_eligible_accepts_explicit_now(self, health, clock) -> None:
        health.register("a")
        _trip(health, "a")
        assert not health.eligible("a", now=clock.now + 10)
        assert health.eligible("a", now=clock.now + 300)

    def test_manual_disable_never_auto_reenables(self, health, clock) -> None:
        health.register("a")
        assert health.disable("a")
        clock.advance(10 * 86_400)
        assert not health.eligible("a")
        assert health.snapshot("a").manually_disabled
        assert health.enable("a")
        assert health.eligible("a")

    def test_success_keeps_manual_disable(self, health) -> None:
        health.register("a")
        health.record_failure("a")
        health.disable("a")
        snap = health.record_success("a")
        assert snap.success_count == 1
        assert snap.consecutive_failures == 0
        assert snap.disabled and snap.manually_disabled
        assert not health.eligible("a")

    def test_success_lifts_manual_cooldown_disable(self, health) -> None:
        health.register("a")
        health.disable("a", cooldown_seconds=60)
        health.record_success("a")
        assert health.eligible("a")

    def test_manual_disable_with_cooldown(self, health, clock) -> None:
        health.register("a")
        health.disable("a", cooldown_seconds=60)
        assert not health.eligible("a")
        clock.advance(61)
        assert health.eligible("a")

    def test_enable_zeroes_streak(self, health) -> None:
        health.register("a")
        _trip(health, "a", 3)
        health.enable("a")
        assert health.snapshot("a").consecutive_failures == 0

    def test_unknown_provider(self, health) -> None:
        assert not health.eligible("ghost")
        assert health.record_success("ghost") is None
        assert health.record_failure("ghost") is None
        assert not health.disable("ghost")
        assert not health.enable("ghost")
        assert health.snapshot("ghost") is None


class TestHealthBookkeeping:
    def test_success_rate(self, health) -> None:
        health.register("a")
        health.record_success("a")
        health.record_success("a")
        health.record_success("a")
        health.record_failure("a")
        assert health.success_rate("a") == 0.75
        assert health.success_rate("ghost") is None

    def test_register_resets_existing_entry(self, health) -> None:
        health.register("a")
        health.record_success("a")
        _trip(health, "a")
        health.register("a")
        snap = health.snapshot("a")
        assert (snap.success_count, snap.failure_count, snap.disabled) == (0, 0, False)

    def test_reset_and_reset_all(self, health) -> None:
        health.register("a")
        health.register("b")
        _trip(health, "a")
        health.record_failure("b")
        assert health.reset("a")
        assert not health.reset("ghost")
        assert health.snapshot("a").failure_count == 0
        health.reset_all()
        assert health.snapshot("b").failure_count == 0

    def test_snapshots_are_copies(self, health) -> None:
        health.register("a")
        snap = health.snapshot("a")
        snap.failure_count = 99
        assert health.snapshot("a").failure_count == 0
        assert set(health.snapshot_all()) == {"a"}

    def test_remove(self, health) -> None:
        health.register("a")
        assert "a" in health
        assert health.remove("a")
        assert "a" not in health
        assert not health.remove("a")
