from datetime import datetime, timedelta, timezone

import pytest

from kirana_store.services.session_cache import InMemorySessionCache, NullSessionCache

NOW = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


def test_touch_then_get_returns_last_seen():
    cache = InMemorySessionCache(max_size=10, ttl=timedelta(hours=24))

    cache.touch("919999900001", seen_at=NOW)

    assert cache.get("919999900001", now=NOW + timedelta(hours=1)) == NOW


def test_entry_expires_after_ttl():
    cache = InMemorySessionCache(max_size=10, ttl=timedelta(hours=24))
    cache.touch("919999900001", seen_at=NOW)

    assert cache.get("919999900001", now=NOW + timedelta(hours=24)) is None
    assert len(cache) == 0


def test_cache_is_bounded_and_evicts_least_recently_used():
    cache = InMemorySessionCache(max_size=2, ttl=timedelta(hours=24))
    cache.touch("a", seen_at=NOW)
    cache.touch("b", seen_at=NOW)

    # reading "a" makes "b" the oldest entry
    assert cache.get("a", now=NOW) == NOW
    cache.touch("c", seen_at=NOW)

    assert len(cache) == 2
    assert cache.get("b", now=NOW) is None
    assert cache.get("a", now=NOW) == NOW
    assert cache.get("c", now=NOW) == NOW


def test_clear_drops_everything():
    cache = InMemorySessionCache(max_size=5)
    cache.touch("a", seen_at=NOW)

    cache.clear()

    assert len(cache) == 0


def test_invalid_max_size_is_rejected():
    with pytest.raises(ValueError):
        InMemorySessionCache(max_size=0)


def test_null_cache_never_remembers():
    cache = NullSessionCache()
    cache.touch("a", seen_at=NOW)

    assert cache.get("a", now=NOW) is None
