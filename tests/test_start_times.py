"""Tests for the process start time cache."""

import os
from datetime import datetime

import psutil

from pykilla.start_times import StartTimeCache, lookup_create_time


class CountingLookup:
    def __init__(self, fail: set[int] | None = None) -> None:
        self.calls: list[int] = []
        self._fail = fail or set()

    def __call__(self, pid: int) -> datetime:
        self.calls.append(pid)
        if pid in self._fail:
            raise psutil.NoSuchProcess(pid)
        return datetime(2024, 1, 1) if pid else datetime(1970, 1, 1)


def test_lookup_is_cached():
    lookup = CountingLookup()
    cache = StartTimeCache(lookup)

    first = cache.get(10)
    second = cache.get(10)

    assert first == second == datetime(2024, 1, 1)
    assert lookup.calls == [10]


def test_failed_lookup_returns_none_once():
    lookup = CountingLookup(fail={5})
    cache = StartTimeCache(lookup)

    assert cache.get(5) is None
    assert cache.get(5) is None
    assert lookup.calls == [5]


def test_evict_missing_drops_dead_pids():
    cache = StartTimeCache(CountingLookup())
    for pid in (1, 2, 3):
        cache.get(pid)

    dropped = cache.evict_missing([2, 4])

    assert dropped == 2
    assert 2 in cache
    assert 1 not in cache and 3 not in cache
    assert len(cache) == 1


def test_evicted_pid_is_looked_up_again():
    lookup = CountingLookup()
    cache = StartTimeCache(lookup)
    cache.get(1)
    cache.evict_missing([])
    cache.get(1)
    assert lookup.calls == [1, 1]


def test_lookup_create_time_for_own_process():
    started = lookup_create_time(os.getpid())
    assert started <= datetime.now()
