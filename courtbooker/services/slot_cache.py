"""
LRU + TTL cache for generated alternative time slots.

Keys are a deterministic digest of the generation inputs, so repeated retry
attempts with the same configuration skip recomputation. Entries expire lazily
on access (or via cleanup()) once older than the TTL, and the least recently
used entry is evicted when the cache is full. All mutation happens under a
per-instance lock so concurrent orchestration runs can share one cache.
"""

import hashlib
import json
import logging
import threading
import time as time_module
from collections import OrderedDict
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from courtbooker.models.schemas import CacheMetrics, TimePreference, TimeSlot

logger = logging.getLogger(__name__)

KEY_LENGTH = 16
TOP_KEYS_LIMIT = 5
LOW_HIT_RATE_THRESHOLD = 0.5

# Rough memory accounting used for the metrics estimate
ESTIMATED_SLOT_BYTES = 128
ESTIMATED_ENTRY_OVERHEAD_BYTES = 200

COMMON_CONFIGURATIONS = (
    ("14:00", 120, 30),
    ("15:00", 120, 30),
    ("16:00", 90, 30),
    ("17:00", 90, 30),
    ("18:00", 120, 30),
    ("19:00", 90, 30),
    ("20:00", 60, 30),
    ("14:00", 120, 15),
    ("16:00", 120, 15),
)


@dataclass
class CacheEntry:
    key: str
    slots: list[TimeSlot]
    computation_time_ms: float
    created_at: float
    last_used: float
    hit_count: int = 0


@dataclass
class _Counters:
    total_queries: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    ttl_evictions: int = 0
    lru_evictions: int = 0
    timed_queries: int = 0
    total_query_time_ms: float = 0.0

    def record_query_time(self, elapsed_ms: float) -> None:
        self.timed_queries += 1
        self.total_query_time_ms += elapsed_ms


def _copy_slots(slots: Iterable[TimeSlot]) -> list[TimeSlot]:
    return [slot.model_copy() for slot in slots]


class SlotCache:
    """
    Memoizes AlternativeGenerator output keyed by normalized inputs.

    Attributes:
        enabled: When False every lookup misses, set() is a no-op and no metrics are tracked.
        max_size: Maximum number of entries before LRU eviction.
        ttl_seconds: Maximum entry age; expired entries are dropped on access.
    """

    def __init__(
        self,
        enabled: bool = True,
        max_size: int = 100,
        ttl_seconds: float = 3600.0,
        debug_mode: bool = False,
        clock: Callable[[], float] = time_module.monotonic,
    ) -> None:
        self.enabled = enabled
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self.debug_mode = debug_mode
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._counters = _Counters()
        self._lock = threading.RLock()

        if self.enabled:
            logger.info(
                f"SlotCache initialized (max_size={max_size}, ttl_seconds={ttl_seconds}, "
                f"debug={debug_mode})"
            )

    @staticmethod
    def generate_cache_key(
        target_time: str,
        preferences: Iterable[TimePreference] = (),
        fallback_range: int = 120,
        slot_interval: int = 30,
    ) -> str:
        """
        Build a deterministic key for a set of generation inputs.

        Preferences are sorted before hashing so their order never changes the key.
        """
        sorted_preferences = sorted(
            (p.model_dump() for p in preferences),
            key=lambda p: (p["start_time"], p["priority"], p["flexibility"]),
        )
        canonical = json.dumps(
            {
                "target_time": target_time,
                "preferences": sorted_preferences,
                "fallback_range": fallback_range,
                "slot_interval": slot_interval,
            },
            sort_keys=True,
            separators=(",", ":"),
        )
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:KEY_LENGTH]

    def get(
        self,
        target_time: str,
        preferences: Iterable[TimePreference] = (),
        fallback_range: int = 120,
        slot_interval: int = 30,
    ) -> CacheEntry | None:
        """
        Look up an entry, refreshing its LRU position and hit metadata.

        Returns:
            The entry, or None on a miss or when the entry has expired
            (in which case it is evicted).
        """
        if not self.enabled:
            return None

        key = self.generate_cache_key(target_time, list(preferences), fallback_range, slot_interval)
        with self._lock:
            self._counters.total_queries += 1
            entry = self._entries.get(key)
            if entry is None:
                self._counters.cache_misses += 1
                return None

            now = self._clock()
            if self._is_expired(entry, now):
                del self._entries[key]
                self._counters.ttl_evictions += 1
                self._counters.cache_misses += 1
                if self.debug_mode:
                    logger.debug(f"Cache entry {key} expired after {now - entry.created_at:.1f}s")
                return None

            self._entries.move_to_end(key)
            entry.hit_count += 1
            entry.last_used = now
            self._counters.cache_hits += 1
            if self.debug_mode:
                logger.debug(f"Cache hit {key} (hit_count={entry.hit_count})")
            return entry

    def set(
        self,
        target_time: str,
        preferences: Iterable[TimePreference],
        fallback_range: int,
        slot_interval: int,
        slots: Iterable[TimeSlot],
        computation_time_ms: float = 0.0,
    ) -> None:
        """Insert or overwrite an entry, evicting the least recently used one when full."""
        if not self.enabled:
            return

        key = self.generate_cache_key(target_time, list(preferences), fallback_range, slot_interval)
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_size:
                self._evict_lru()

            now = self._clock()
            self._entries[key] = CacheEntry(
                key=key,
                slots=_copy_slots(slots),
                computation_time_ms=computation_time_ms,
                created_at=now,
                last_used=now,
            )
            self._entries.move_to_end(key)
            if self.debug_mode:
                logger.debug(f"Cache entry {key} set (size={len(self._entries)})")

    def generate_with_cache(
        self,
        target_time: str,
        preferences: Iterable[TimePreference],
        fallback_range: int,
        slot_interval: int,
        compute_fn: Callable[[], list[TimeSlot]],
    ) -> list[TimeSlot]:
        """
        Return cached slots for the inputs, computing and storing them on a miss.

        The returned list is always a copy; callers cannot mutate cache-owned data.
        """
        if not self.enabled:
            return compute_fn()

        preferences = list(preferences)
        started = time_module.perf_counter()
        entry = self.get(target_time, preferences, fallback_range, slot_interval)
        if entry is not None:
            with self._lock:
                slots = _copy_slots(entry.slots)
                self._counters.record_query_time((time_module.perf_counter() - started) * 1000)
            return slots

        computation_started = time_module.perf_counter()
        slots = compute_fn()
        computation_ms = (time_module.perf_counter() - computation_started) * 1000

        self.set(target_time, preferences, fallback_range, slot_interval, slots, computation_ms)
        with self._lock:
            self._counters.record_query_time((time_module.perf_counter() - started) * 1000)

        if self.debug_mode:
            logger.debug(
                f"Computed and cached {len(slots)} slots for {target_time} "
                f"in {computation_ms:.2f}ms"
            )
        return _copy_slots(slots)

    def cleanup(self) -> int:
        """Sweep every expired entry. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if self._is_expired(entry, now)]
            for key in expired:
                del self._entries[key]
            self._counters.ttl_evictions += len(expired)

        if expired and self.debug_mode:
            logger.debug(f"Cleanup removed {len(expired)} expired entries")
        return len(expired)

    def clear(self) -> None:
        """Drop every entry. Cumulative counters are kept."""
        with self._lock:
            previous_size = len(self._entries)
            self._entries.clear()
        logger.info(f"SlotCache cleared ({previous_size} entries)")

    def reset(self) -> None:
        """Drop every entry and zero all counters."""
        with self._lock:
            self._entries.clear()
            self._counters = _Counters()

    def get_metrics(self) -> CacheMetrics:
        with self._lock:
            counters = self._counters
            memory_bytes = sum(
                len(key) * 2
                + len(entry.slots) * ESTIMATED_SLOT_BYTES
                + ESTIMATED_ENTRY_OVERHEAD_BYTES
                for key, entry in self._entries.items()
            )
            top_keys = [
                entry.key
                for entry in sorted(
                    self._entries.values(), key=lambda e: e.hit_count, reverse=True
                )[:TOP_KEYS_LIMIT]
            ]
            return CacheMetrics(
                total_queries=counters.total_queries,
                cache_hits=counters.cache_hits,
                cache_misses=counters.cache_misses,
                hit_rate=(
                    counters.cache_hits / counters.total_queries if counters.total_queries else 0.0
                ),
                avg_query_time_ms=(
                    counters.total_query_time_ms / counters.timed_queries
                    if counters.timed_queries
                    else 0.0
                ),
                cache_size=len(self._entries),
                memory_usage_mb=memory_bytes / (1024 * 1024),
                ttl_evictions=counters.ttl_evictions,
                lru_evictions=counters.lru_evictions,
                top_hit_keys=top_keys,
            )

    def log_cache_status(self) -> None:
        metrics = self.get_metrics()
        logger.info(
            f"SlotCache status: enabled={self.enabled}, hit_rate={metrics.hit_rate:.1%}, "
            f"size={metrics.cache_size}/{self.max_size}, "
            f"avg_query={metrics.avg_query_time_ms:.1f}ms, queries={metrics.total_queries}, "
            f"memory={metrics.memory_usage_mb:.2f}MB, lru_evictions={metrics.lru_evictions}, "
            f"ttl_evictions={metrics.ttl_evictions}"
        )
        if metrics.hit_rate < LOW_HIT_RATE_THRESHOLD and metrics.total_queries > 10:
            logger.warning(
                f"Low SlotCache hit rate {metrics.hit_rate:.1%} over {metrics.total_queries} "
                "queries. Consider increasing cache size or TTL."
            )

    def warm_cache(
        self, compute_fn: Callable[[str, list[TimePreference], int, int], list[TimeSlot]]
    ) -> int:
        """
        Pre-compute common configurations (popular start times, no preferences).

        Returns:
            Number of configurations successfully warmed.
        """
        if not self.enabled:
            return 0

        warmed = 0
        for target_time, fallback_range, slot_interval in COMMON_CONFIGURATIONS:
            try:
                self.generate_with_cache(
                    target_time,
                    [],
                    fallback_range,
                    slot_interval,
                    lambda t=target_time, r=fallback_range, i=slot_interval: compute_fn(t, [], r, i),
                )
                warmed += 1
            except ValueError as e:
                logger.warning(f"Cache warming failed for {target_time}/{fallback_range}: {e}")

        logger.info(f"Cache warming completed: {warmed}/{len(COMMON_CONFIGURATIONS)} entries")
        return warmed

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.created_at > self.ttl_seconds

    def _evict_lru(self) -> None:
        key, _ = self._entries.popitem(last=False)
        self._counters.lru_evictions += 1
        if self.debug_mode:
            logger.debug(f"LRU eviction of {key} (size={len(self._entries)})")
