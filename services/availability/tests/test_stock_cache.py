import pytest

from availability.schemas.filters import InvalidationKind, InvalidationScope
from availability.services.stock_cache import (
    DerivedResultCache,
    InvalidationBus,
    CONFLICTS_BUCKET,
    EQUIPMENT_BUCKET,
    PROVIDERS_BUCKET,
    SUGGESTIONS_BUCKET,
    VIRTUAL_STOCK_BUCKET,
)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return DerivedResultCache(ttl_seconds=60, max_entries=3, clock=clock)


def _put(cache, bucket, key, value):
    return cache.set(bucket, key, value, cache.generation(bucket))


def test_get_returns_stored_value(cache):
    assert _put(cache, CONFLICTS_BUCKET, "june", ["conflict"])

    assert cache.get(CONFLICTS_BUCKET, "june") == ["conflict"]
    assert cache.get(VIRTUAL_STOCK_BUCKET, "june") is None


def test_entries_expire_after_ttl(cache, clock):
    _put(cache, CONFLICTS_BUCKET, "june", [])

    clock.now += 59
    assert cache.get(CONFLICTS_BUCKET, "june") == []

    clock.now += 1
    assert cache.get(CONFLICTS_BUCKET, "june") is None
    assert len(cache) == 0


def test_least_recently_used_entry_is_evicted(cache):
    for key in ("a", "b", "c"):
        _put(cache, VIRTUAL_STOCK_BUCKET, key, key)
    cache.get(VIRTUAL_STOCK_BUCKET, "a")

    _put(cache, VIRTUAL_STOCK_BUCKET, "d", "d")

    assert cache.get(VIRTUAL_STOCK_BUCKET, "b") is None
    assert cache.get(VIRTUAL_STOCK_BUCKET, "a") == "a"
    assert len(cache) == 3


def test_result_computed_before_invalidation_is_discarded(cache):
    generation = cache.generation(CONFLICTS_BUCKET)

    cache.invalidate(InvalidationScope(kind=InvalidationKind.BOOKING))

    assert cache.set(CONFLICTS_BUCKET, "june", ["stale"], generation) is False
    assert cache.get(CONFLICTS_BUCKET, "june") is None


@pytest.mark.parametrize("kind, cleared, kept", [
    (InvalidationKind.BOOKING, {VIRTUAL_STOCK_BUCKET, CONFLICTS_BUCKET, SUGGESTIONS_BUCKET}, {EQUIPMENT_BUCKET, PROVIDERS_BUCKET}),
    (InvalidationKind.REPAIR, {VIRTUAL_STOCK_BUCKET, CONFLICTS_BUCKET, SUGGESTIONS_BUCKET}, {EQUIPMENT_BUCKET, PROVIDERS_BUCKET}),
    (InvalidationKind.EQUIPMENT, {EQUIPMENT_BUCKET, VIRTUAL_STOCK_BUCKET, CONFLICTS_BUCKET}, {PROVIDERS_BUCKET}),
    (InvalidationKind.PROVIDER, {PROVIDERS_BUCKET, SUGGESTIONS_BUCKET}, {VIRTUAL_STOCK_BUCKET, CONFLICTS_BUCKET}),
])
def test_invalidation_clears_affected_buckets(kind, cleared, kept):
    cache = DerivedResultCache()
    buckets = (EQUIPMENT_BUCKET, VIRTUAL_STOCK_BUCKET, CONFLICTS_BUCKET, SUGGESTIONS_BUCKET, PROVIDERS_BUCKET)
    for bucket in buckets:
        _put(cache, bucket, "key", bucket)

    cache.invalidate(InvalidationScope(kind=kind))

    for bucket in cleared:
        assert cache.get(bucket, "key") is None
    for bucket in kept:
        assert cache.get(bucket, "key") == bucket


def test_clear_drops_everything(cache):
    _put(cache, EQUIPMENT_BUCKET, "ids", [])
    _put(cache, PROVIDERS_BUCKET, "all", [])

    cache.clear()

    assert len(cache) == 0


def test_bus_delivers_before_publish_returns():
    bus = InvalidationBus()
    received = []
    bus.subscribe(received.append)
    bus.subscribe(received.append)  # duplicate subscriptions are ignored

    scope = InvalidationScope(kind=InvalidationKind.SUBRENTAL)
    bus.publish(scope)

    assert received == [scope]

    bus.unsubscribe(received.append)
    bus.publish(scope)
    assert received == [scope]


def test_bus_propagates_handler_failure():
    bus = InvalidationBus()

    def broken(scope):
        raise RuntimeError("cache backend gone")

    bus.subscribe(broken)

    with pytest.raises(RuntimeError):
        bus.publish(InvalidationScope(kind=InvalidationKind.ALL))
