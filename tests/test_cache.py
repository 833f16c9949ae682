"""Tests for the TTL response cache: fingerprinting, expiry, copies and sweeping."""

import time

import pytest

from ai_orchestrator.cache import ResponseCache, cache_key
from ai_orchestrator.models import GenerationRequest, GenerationResponse


def _response(content: str = "cached answer") -> GenerationResponse:
    return GenerationResponse(content=content, provider_name="a", tokens_used=10, response_time_ms=50)


class TestCacheKey:
    def test_metadata_order_does_not_change_key(self) -> None:
        r1 = GenerationRequest(prompt="hi", metadata={"a": 1, "b": {"x": 1, "y": 2}})
        r2 = GenerationRequest(prompt="hi", metadata={"b": {"y": 2, "x": 1}, "a": 1})
        assert cache_key(r1) == cache_key(r2)

    def test_absent_and_explicit_none_are_equal(self) -> None:
        r1 = GenerationRequest(prompt="hi")
        r2 = GenerationRequest(prompt="hi", system_prompt=None, temperature=None, max_tokens=None)
        assert cache_key(r1) == cache_key(r2)

    @pytest.mark.parametrize(
        "changes",
        [
            {"prompt": "hello"},
            {"system_prompt": "be brief"},
            {"max_tokens": 100},
            {"temperature": 0.2},
            {"metadata": {"tenant": "t1"}},
        ],
    )
    def test_any_semantic_field_changes_key(self, changes: dict) -> None:
        base = GenerationRequest(prompt="hi")
        other = GenerationRequest(**{"prompt": "hi", **changes})
        assert cache_key(base) != cache_key(other)

    def test_key_is_sha256_hex(self) -> None:
        key = cache_key(GenerationRequest(prompt="hi"))
        assert len(key) == 64
        int(key, 16)


class TestResponseCache:
    def test_miss_then_hit(self, clock, request_hi) -> None:
        cache = ResponseCache(ttl_seconds=60, clock=clock, start_sweeper=False)
        assert cache.get(request_hi) is None
        cache.set(request_hi, _response())
        hit = cache.get(request_hi)
        assert hit is not None
        assert hit.cached is True
        assert hit.content == "cached answer"
        stats = cache.stats()
        assert (stats.hits, stats.misses, stats.size) == (1, 1, 1)
        assert stats.hit_rate == 0.5

    def test_hit_is_a_copy_and_stored_original_stays_uncached(self, clock, request_hi) -> None:
        cache = ResponseCache(ttl_seconds=60, clock=clock, start_sweeper=False)
        original = _response()
        cache.set(request_hi, original)
        first = cache.get(request_hi)
        first.metadata["mutated"] = True
        second = cache.get(request_hi)
        assert original.cached is False
        assert second.cached is True
        assert "mutated" not in second.metadata

    def test_entry_expires_after_ttl(self, clock, request_hi) -> None:
        cache = ResponseCache(ttl_seconds=60, clock=clock, start_sweeper=False)
        cache.set(request_hi, _response())
        clock.advance(60)
        assert cache.get(request_hi) is not None
        clock.advance(1)
        assert cache.get(request_hi) is None
        assert len(cache) == 0

    def test_sweep_expired_removes_only_stale_entries(self, clock) -> None:
        cache = ResponseCache(ttl_seconds=60, clock=clock, start_sweeper=False)
        old = GenerationRequest(prompt="old")
        new = GenerationRequest(prompt="new")
        cache.set(old, _response())
        clock.advance(45)
        cache.set(new, _response())
        clock.advance(30)
        assert cache.sweep_expired() == 1
        assert cache.get(old) is None
        assert cache.get(new) is not None

    def test_set_overwrites_last_write_wins(self, clock, request_hi) -> None:
        cache = ResponseCache(ttl_seconds=60, clock=clock, start_sweeper=False)
        cache.set(request_hi, _response("first"))
        cache.set(request_hi, _response("second"))
        assert cache.get(request_hi).content == "second"
        assert len(cache) == 1

    def test_invalidate(self, clock, request_hi) -> None:
        cache = ResponseCache(ttl_seconds=60, clock=clock, start_sweeper=False)
        cache.set(request_hi, _response())
        assert cache.invalidate(request_hi) is True
        assert cache.invalidate(request_hi) is False
        assert cache.get(request_hi) is None

    def test_clear_resets_entries_and_counters(self, clock, request_hi) -> None:
        cache = ResponseCache(ttl_seconds=60, clock=clock, start_sweeper=False)
        cache.set(request_hi, _response())
        cache.get(request_hi)
        cache.get(GenerationRequest(prompt="other"))
        cache.clear()
        stats = cache.stats()
        assert (stats.hits, stats.misses, stats.size, stats.hit_rate) == (0, 0, 0, 0.0)

    def test_invalid_ttl_rejected(self) -> None:
        with pytest.raises(ValueError):
            ResponseCache(ttl_seconds=0, start_sweeper=False)

    def test_background_sweeper_evicts_and_stops(self, clock, request_hi) -> None:
        cache = ResponseCache(ttl_seconds=60, sweep_interval_seconds=0.01, clock=clock, start_sweeper=True)
        try:
            assert cache.sweeper_running
            cache.set(request_hi, _response())
            clock.advance(120)
            deadline = time.monotonic() + 2.0
            while len(cache) and time.monotonic() < deadline:
                time.sleep(0.01)
            assert len(cache) == 0
        finally:
            cache.stop_sweeper()
        assert not cache.sweeper_running
