"""Derived-result cache for stock calculations and the invalidation bus that clears it"""
from collections import OrderedDict
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, Tuple
import logging
import threading
import time

from availability.exceptions import StaleCache
from availability.schemas.filters import InvalidationKind, InvalidationScope

logger = logging.getLogger(__name__)

EQUIPMENT_BUCKET = "equipment"
VIRTUAL_STOCK_BUCKET = "virtual-stock"
CONFLICTS_BUCKET = "conflicts"
SUGGESTIONS_BUCKET = "suggestions"
PROVIDERS_BUCKET = "providers"

ALL_BUCKETS = (EQUIPMENT_BUCKET, VIRTUAL_STOCK_BUCKET, CONFLICTS_BUCKET, SUGGESTIONS_BUCKET, PROVIDERS_BUCKET)
STOCK_BUCKETS = (VIRTUAL_STOCK_BUCKET, CONFLICTS_BUCKET, SUGGESTIONS_BUCKET)

# Coarse on purpose: every stock-affecting mutation clears every derived stock result
_BUCKETS_BY_KIND = {
    InvalidationKind.BOOKING: STOCK_BUCKETS,
    InvalidationKind.SUBRENTAL: STOCK_BUCKETS,
    InvalidationKind.REPAIR: STOCK_BUCKETS,
    InvalidationKind.EQUIPMENT: (EQUIPMENT_BUCKET,) + STOCK_BUCKETS,
    InvalidationKind.PROVIDER: (PROVIDERS_BUCKET, SUGGESTIONS_BUCKET),
    InvalidationKind.ALL: ALL_BUCKETS,
}


def buckets_for_scope(scope: InvalidationScope) -> Tuple[str, ...]:
    return _BUCKETS_BY_KIND[scope.kind]


class _CacheEntry:
    __slots__ = ("value", "generation", "expires_at")

    def __init__(self, value: Any, generation: int, expires_at: float):
        self.value = value
        self.generation = generation
        self.expires_at = expires_at


class DerivedResultCache:
    """Thread-safe TTL/LRU cache keyed by (bucket, scope key).

    Every bucket has a generation counter that is bumped on invalidation.
    Callers read ``generation(bucket)`` before computing a value and pass it
    to ``set``; a value computed before an invalidation is never stored.
    One lock guards entries and generations together, so a reader never sees
    a bucket set half invalidated.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.clock = clock
        self._lock = threading.RLock()
        self._entries: "OrderedDict[Tuple[str, Hashable], _CacheEntry]" = OrderedDict()
        self._generations: Dict[str, int] = {bucket: 0 for bucket in ALL_BUCKETS}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def generation(self, bucket: str) -> int:
        with self._lock:
            return self._generations.get(bucket, 0)

    def get(self, bucket: str, key: Hashable) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get((bucket, key))
            if entry is None:
                return None

            if entry.expires_at <= self.clock():
                del self._entries[(bucket, key)]
                return None

            if entry.generation != self._generations.get(bucket, 0):
                # Should be unreachable: invalidation removes entries together with the bump
                del self._entries[(bucket, key)]
                logger.error(str(StaleCache(f"Evicted stale '{bucket}' entry from generation {entry.generation}")))
                return None

            self._entries.move_to_end((bucket, key))
            return entry.value

    def set(self, bucket: str, key: Hashable, value: Any, generation: int) -> bool:
        """Store ``value`` unless ``bucket`` was invalidated since ``generation`` was read"""
        with self._lock:
            if generation != self._generations.get(bucket, 0):
                logger.debug(f"Discarding '{bucket}' result computed before an invalidation")
                return False

            self._entries[(bucket, key)] = _CacheEntry(value, generation, self.clock() + self.ttl_seconds)
            self._entries.move_to_end((bucket, key))
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
            return True

    def invalidate_buckets(self, buckets: Iterable[str]) -> int:
        """Atomically drop every entry of ``buckets``; returns how many entries were removed"""
        buckets = set(buckets)
        with self._lock:
            for bucket in buckets:
                self._generations[bucket] = self._generations.get(bucket, 0) + 1
            stale_keys = [key for key in self._entries if key[0] in buckets]
            for key in stale_keys:
                del self._entries[key]
        return len(stale_keys)

    def invalidate(self, scope: InvalidationScope) -> int:
        buckets = buckets_for_scope(scope)
        removed = self.invalidate_buckets(buckets)
        logger.info(f"Invalidated {removed} cached entries for {scope.kind.value} mutation (buckets: {', '.join(buckets)})")
        return removed

    def clear(self) -> None:
        self.invalidate_buckets(ALL_BUCKETS)


class InvalidationBus:
    """Synchronous in-process fan-out of mutation events.

    ``publish`` returns only after every subscriber has handled the event, so
    a write acknowledged after publishing can never be followed by a read of
    pre-write cache state.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: List[Callable[[InvalidationScope], Any]] = []

    def subscribe(self, handler: Callable[[InvalidationScope], Any]) -> None:
        with self._lock:
            if handler not in self._subscribers:
                self._subscribers.append(handler)

    def unsubscribe(self, handler: Callable[[InvalidationScope], Any]) -> None:
        with self._lock:
            if handler in self._subscribers:
                self._subscribers.remove(handler)

    def publish(self, scope: InvalidationScope) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for handler in subscribers:
            try:
                handler(scope)
            except Exception as e:
                logger.error(f"Invalidation handler failed for {scope.kind.value} mutation: {e}", exc_info=True)
                raise
