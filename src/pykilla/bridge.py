"""Bridge between the background collector and the cooperative UI loop."""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

import structlog

from pykilla.channel import SlotClosed, SlotEmpty, SnapshotSlot
from pykilla.monitor import (
    CollectorStartupError,
    MetricsSource,
    PsutilSource,
    SystemMonitor,
    SystemSnapshot,
)

__all__ = ["CollectorBridge", "CollectorStartupError", "PollOutcome", "PollResult"]

log = structlog.get_logger()


class PollOutcome(Enum):
    """What a single poll of the bridge produced."""

    DATA = "data"
    EMPTY = "empty"
    ENDED = "ended"


@dataclass(slots=True, frozen=True)
class PollResult:
    """Result of CollectorBridge.poll()."""

    outcome: PollOutcome
    snapshot: SystemSnapshot | None = None


_EMPTY = PollResult(PollOutcome.EMPTY)
_ENDED = PollResult(PollOutcome.ENDED)


class CollectorBridge:
    """
    Turns the push-style collector thread into a non-blocking pull.

    The consumer calls poll() once per tick. A poll returns the newest
    snapshot the worker produced since the last poll, reports that nothing
    new arrived, or, exactly once, reports that the worker has stopped.
    """

    def __init__(
        self,
        source_factory: Callable[[], MetricsSource] = PsutilSource,
        poll_rate: float = 0.5,
    ) -> None:
        self._slot: SnapshotSlot[SystemSnapshot] = SnapshotSlot()
        self._monitor = SystemMonitor(self._slot, source_factory, poll_rate=poll_rate)
        self._started = False
        self._ended = False

    @property
    def monitor(self) -> SystemMonitor:
        return self._monitor

    @property
    def started(self) -> bool:
        return self._started

    @property
    def ended(self) -> bool:
        """True once end-of-stream has been reported."""
        return self._ended

    def start(self) -> None:
        """
        Start the collector thread.

        Raises:
            CollectorStartupError: If the metrics source is unavailable.
        """
        if self._started:
            return
        self._monitor.start()
        self._started = True

    def poll(self) -> PollResult:
        """Check for a new snapshot without blocking."""
        if self._ended:
            return _EMPTY
        try:
            return PollResult(PollOutcome.DATA, self._slot.try_recv())
        except SlotEmpty:
            return _EMPTY
        except SlotClosed:
            self._ended = True
            log.warning("collector_disconnected")
            return _ENDED

    def close(self, timeout: float | None = 5.0) -> None:
        """Hang up on the worker and wait for it to finish."""
        self._slot.close_receiver()
        self._monitor.stop(timeout=timeout)
