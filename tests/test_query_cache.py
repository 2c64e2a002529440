import pytest

from lms.errors import ApiError, NetworkError
from lms.query_cache import QueryCache, freeze_key


class _Loader:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def test_served_from_cache_within_stale_time(cache, clock):
    loader = _Loader(["a"], ["b"])

    assert cache.fetch(("courses",), loader) == ["a"]
    clock.advance(299)
    assert cache.fetch(("courses",), loader) == ["a"]
    assert loader.calls == 1

    clock.advance(1)
    assert cache.fetch(("courses",), loader) == ["b"]
    assert loader.calls == 2


def test_per_query_stale_time_zero_always_refetches(cache):
    loader = _Loader(1)

    cache.fetch(("attempts", 1), loader, stale_time=0)
    cache.fetch(("attempts", 1), loader, stale_time=0)

    assert loader.calls == 2


def test_invalidate_by_prefix(cache):
    courses = _Loader("courses")
    approved = _Loader("approved")
    users = _Loader("users")
    cache.fetch(("courses", 1), courses)
    cache.fetch(("courses", "approved", {"page": 1}), approved)
    cache.fetch(("users",), users)

    assert cache.invalidate(("courses",)) == 2

    cache.fetch(("courses", 1), courses)
    cache.fetch(("courses", "approved", {"page": 1}), approved)
    cache.fetch(("users",), users)
    assert (courses.calls, approved.calls, users.calls) == (2, 2, 1)


def test_retries_network_and_server_errors(cache):
    loader = _Loader(NetworkError("down"), ApiError("boom", status=503), "ok")

    assert cache.fetch(("x",), loader) == "ok"
    assert loader.calls == 3


def test_gives_up_after_configured_retries(cache):
    loader = _Loader(ApiError("boom", status=500))

    with pytest.raises(ApiError):
        cache.fetch(("x",), loader)

    assert loader.calls == 3
    assert cache.entry(("x",)).error is not None
    assert cache.is_stale(("x",))


def test_client_errors_are_not_retried(cache):
    loader = _Loader(ApiError("missing", status=404))

    with pytest.raises(ApiError):
        cache.fetch(("x",), loader)
    assert loader.calls == 1


def test_per_query_retry_override(cache):
    loader = _Loader(NetworkError("down"))

    with pytest.raises(NetworkError):
        cache.fetch(("auth",), loader, retry=0)
    assert loader.calls == 1


def test_disabled_query_does_not_load(cache):
    loader = _Loader("data")

    assert cache.fetch(("courses", "enrolled"), loader, enabled=False) is None
    assert loader.calls == 0


def test_set_data_counts_as_fresh(cache):
    cache.set_data(("auth",), {"id": 1})
    loader = _Loader({"id": 2})

    assert cache.fetch(("auth",), loader) == {"id": 1}
    assert loader.calls == 0


def test_remove_and_clear(cache):
    cache.set_data(("a", 1), 1)
    cache.set_data(("a", 2), 2)
    cache.set_data(("b",), 3)

    assert cache.remove(("a",)) == 2
    assert ("a", 1) not in cache
    assert ("b",) in cache
    cache.clear()
    assert ("b",) not in cache


def test_freeze_key_ignores_dict_order_and_none():
    assert freeze_key(("x", {"a": 1, "b": 2})) == freeze_key(("x", {"b": 2, "a": 1}))
    assert freeze_key(("x", {"a": 1, "q": None})) == freeze_key(("x", {"a": 1}))


def test_default_clock_is_used_without_injection():
    cache = QueryCache(stale_time=60, retry=0)
    cache.set_data(("k",), "v")
    assert not cache.is_stale(("k",))
