import pytest

from homematch.core.cache import LRUCache
from homematch.core.query_params import parse_int_param


class _Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_entries_expire_after_ttl():
    clock = _Clock()
    cache = LRUCache(max_size=10, ttl_seconds=60, clock=clock)
    cache.set("hh-1", ["a"])

    clock.now = 59
    assert cache.get("hh-1") == ["a"]
    clock.now = 60
    assert cache.get("hh-1") is None
    assert len(cache) == 0


def test_least_recently_used_entry_is_evicted():
    cache = LRUCache(max_size=2, ttl_seconds=60)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.get("a")
    cache.set("c", 3)

    assert "a" in cache
    assert "b" not in cache
    assert "c" in cache


def test_delete_where_removes_every_matching_key():
    cache = LRUCache(max_size=10, ttl_seconds=60)
    cache.set(("hh-1", 20, 0), "page 1")
    cache.set(("hh-1", 20, 20), "page 2")
    cache.set(("hh-2", 20, 0), "other household")

    removed = cache.delete_where(lambda key: key[0] == "hh-1")

    assert removed == 2
    assert cache.get(("hh-2", 20, 0)) == "other household"


def test_max_size_must_be_positive():
    with pytest.raises(ValueError):
        LRUCache(max_size=0, ttl_seconds=1)


@pytest.mark.parametrize("raw,expected", [
    (None, 20),
    ("abc", 20),
    ("0", 1),
    ("500", 100),
    ("35", 35),
])
def test_parse_int_param_is_lenient_and_clamped(raw, expected):
    assert parse_int_param(raw, 20, 1, 100) == expected
