"""
In-memory response cache with per-entry TTL.

Requests are fingerprinted by hashing a canonical JSON rendering of every field
that can change the answer (prompt, system prompt, limits, metadata). Expired
entries are evicted lazily on read and by a background sweeper thread so that
never-repeated requests do not pile up.
"""

from __future__ import annotations

import hashlib
import json
import threading
import time
from collections.abc import Callable
from typing import Optional

import structlog

from ai_orchestrator.models import CacheEntry, CacheStats, GenerationRequest, GenerationResponse
from ai_orchestrator.observability import metrics as obs_metrics

logger = structlog.get_logger()

DEFAULT_TTL_SECONDS = 3600.0
DEFAULT_SWEEP_INTERVAL_SECONDS = 300.0


def cache_key(request: GenerationRequest) -> str:
    """SHA-256 of the request's semantic content, independent of key order."""
    key_data = {
        "prompt": request.prompt,
        "system_prompt": request.system_prompt,
        "max_tokens": request.max_tokens,
        "temperature": request.temperature,
        "metadata": request.metadata,
    }
    canonical = json.dumps(key_data, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class ResponseCache:
    """Thread-safe TTL cache mapping request fingerprints to responses."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        start_sweeper: bool = True,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self._ttl = ttl_seconds
        self._sweep_interval = sweep_interval_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._stop_event = threading.Event()
        self._sweeper: Optional[threading.Thread] = None
        if start_sweeper:
            self.start_sweeper()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, request: GenerationRequest) -> Optional[GenerationResponse]:
        """Return a copy of the cached response marked cached=True, or None."""
        key = cache_key(request)
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and now - entry.stored_at > self._ttl:
                del self._entries[key]
                entry = None
            if entry is None:
                self._misses += 1
            else:
                self._hits += 1
        obs_metrics.record_cache_lookup(hit=entry is not None)
        if entry is None:
            return None
        return entry.response.model_copy(update={"cached": True}, deep=True)

    def set(self, request: GenerationRequest, response: GenerationResponse) -> None:
        """Store a response; concurrent writers for one key: last write wins."""
        key = cache_key(request)
        stored = response.model_copy(update={"cached": False}, deep=True)
        entry = CacheEntry(key=key, response=stored, stored_at=self._clock())
        with self._lock:
            self._entries[key] = entry

    def invalidate(self, request: GenerationRequest) -> bool:
        key = cache_key(request)
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Drop every entry and reset hit/miss counters."""
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(hits=self._hits, misses=self._misses, size=len(self._entries))

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def sweep_expired(self) -> int:
        """Remove every expired entry; returns how many were dropped."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if now - e.stored_at > self._ttl]
            for k in expired:
                del self._entries[k]
        if expired:
            logger.debug("cache_swept", removed=len(expired))
        return len(expired)

    # --- background sweeping ---

    def start_sweeper(self) -> None:
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop_event.clear()
        self._sweeper = threading.Thread(
            target=self._sweep_loop,
            name="response-cache-sweeper",
            daemon=True,
        )
        self._sweeper.start()

    def stop_sweeper(self) -> None:
        self._stop_event.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=1.0)
            self._sweeper = None

    @property
    def sweeper_running(self) -> bool:
        return self._sweeper is not None and self._sweeper.is_alive()

    def _sweep_loop(self) -> None:
        while not self._stop_event.wait(self._sweep_interval):
            self.sweep_expired()

    def log_statistics(self) -> None:
        stats = self.stats()
        logger.info(
            "cache_statistics",
            hits=stats.hits,
            misses=stats.misses,
            hit_rate=f"{stats.hit_rate * 100:.2f}%",
            size=stats.size,
            ttl_seconds=self._ttl,
        )
