"""Process start time lookup with an explicit, pid-keyed cache."""

from collections.abc import Callable, Iterable
from datetime import datetime

import psutil
import structlog

log = structlog.get_logger()


def lookup_create_time(pid: int) -> datetime:
    """Ask the OS when a process was started."""
    return datetime.fromtimestamp(psutil.Process(pid).create_time())


class StartTimeCache:
    """
    Cache of process start times keyed by pid.

    A start time never changes for a live pid, so each pid is looked up once.
    Entries for pids that disappear are dropped by evict_missing(), which the
    collector calls after every sweep; the cache never outgrows the live
    process table.
    """

    def __init__(self, lookup: Callable[[int], datetime] = lookup_create_time) -> None:
        """
        Initialize the StartTimeCache.

        Args:
            lookup: Callable returning the start time of a pid. May raise
                psutil.Error or OSError for processes that vanished or are
                not accessible.
        """
        self._lookup = lookup
        self._cache: dict[int, datetime | None] = {}

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, pid: object) -> bool:
        return pid in self._cache

    def get(self, pid: int) -> datetime | None:
        """Return the start time of pid, looking it up on first access."""
        if pid in self._cache:
            return self._cache[pid]
        try:
            started = self._lookup(pid)
        except (psutil.Error, OSError) as e:
            log.debug("start_time_lookup_failed", pid=pid, error=str(e))
            started = None
        self._cache[pid] = started
        return started

    def evict_missing(self, live_pids: Iterable[int]) -> int:
        """Drop entries for pids not in live_pids. Returns how many were dropped."""
        live = set(live_pids)
        stale = [pid for pid in self._cache if pid not in live]
        for pid in stale:
            del self._cache[pid]
        return len(stale)

    def clear(self) -> None:
        self._cache.clear()
