"""System monitoring engine for pykilla."""

import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol

import psutil
import structlog

from pykilla.channel import SnapshotSlot
from pykilla.models import ProcessRecord
from pykilla.start_times import StartTimeCache

log = structlog.get_logger()


@dataclass(slots=True)
class SystemSnapshot:
    """Snapshot of overall system state."""

    processes: list[ProcessRecord]
    memory_used: int
    memory_total: int
    cpu_count: int


class MetricsSource(Protocol):
    """Anything that can produce system snapshots on demand."""

    def collect(self) -> SystemSnapshot | None:
        """Return the next snapshot, or None once the source is exhausted."""
        ...

    def close(self) -> None:
        """Release whatever the source holds."""
        ...


class PsutilSource:
    """
    Metrics source backed by psutil.

    Handles AccessDenied and ZombieProcess errors gracefully by skipping the
    affected process.
    """

    # Attributes to fetch in oneshot
    ATTRS = [
        "pid",
        "name",
        "cmdline",
        "cpu_percent",
        "memory_info",
        "cpu_times",
    ]

    def __init__(self, start_times: StartTimeCache | None = None) -> None:
        """
        Initialize the PsutilSource.

        Args:
            start_times: Cache used to resolve process start times. A private
                cache is created if none is given.
        """
        self._start_times = start_times if start_times is not None else StartTimeCache()
        self._cpu_count = psutil.cpu_count(logical=True) or 1
        # Prime per-process CPU counters (first call returns 0.0)
        for _ in psutil.process_iter(attrs=["cpu_percent"]):
            pass

    @property
    def start_times(self) -> StartTimeCache:
        return self._start_times

    def collect(self) -> SystemSnapshot:
        """Collect a snapshot of the current system state."""
        mem = psutil.virtual_memory()
        processes = self._collect_processes()
        self._start_times.evict_missing(proc.pid for proc in processes)

        return SystemSnapshot(
            processes=processes,
            memory_used=mem.used,
            memory_total=mem.total,
            cpu_count=self._cpu_count,
        )

    def close(self) -> None:
        self._start_times.clear()

    def _collect_processes(self) -> list[ProcessRecord]:
        """
        Collect records of all running processes.

        Uses psutil.process_iter() with oneshot() context manager for efficiency.
        Handles AccessDenied and ZombieProcess errors gracefully.
        """
        processes: list[ProcessRecord] = []

        for proc in psutil.process_iter(attrs=self.ATTRS):
            try:
                with proc.oneshot():
                    info = proc.info

                    name = info.get("name") or ""
                    cmdline = info.get("cmdline") or []
                    command_line = " ".join(cmdline) if cmdline else name

                    mem_info = info.get("memory_info")
                    memory_rss = mem_info.rss if mem_info else 0

                    cpu_times = info.get("cpu_times")
                    cpu_seconds = cpu_times.user + cpu_times.system if cpu_times else 0.0

                    pid = info.get("pid", 0)
                    processes.append(
                        ProcessRecord(
                            pid=pid,
                            name=name,
                            command_line=command_line,
                            memory_rss=memory_rss,
                            cpu_percent=info.get("cpu_percent") or 0.0,
                            cpu_time=timedelta(seconds=cpu_seconds),
                            start_time=self._start_times.get(pid),
                        )
                    )

            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                # Process died mid-poll or is not ours to inspect
                continue

        return processes


class CollectorStartupError(RuntimeError):
    """The metrics source could not be constructed."""


class SystemMonitor:
    """
    Runs a metrics source in a separate daemon thread.

    The thread owns the source: it builds it, collects from it every
    poll_rate seconds and pushes each snapshot through the hand-off slot.
    The sending half of the slot is closed whenever the loop ends, whether
    because of stop(), the receiver going away, the source running dry or
    the source crashing.
    """

    def __init__(
        self,
        slot: SnapshotSlot[SystemSnapshot],
        source_factory: Callable[[], MetricsSource] = PsutilSource,
        poll_rate: float = 0.5,
        startup_timeout: float = 10.0,
    ) -> None:
        """
        Initialize the SystemMonitor.

        Args:
            slot: Hand-off slot the snapshots are sent through.
            source_factory: Builds the metrics source inside the worker thread.
            poll_rate: How often to poll the system (in seconds). Default 0.5s.
            startup_timeout: How long start() waits for the source to come up.
        """
        self._slot = slot
        self._source_factory = source_factory
        self._poll_rate = max(0.1, poll_rate)
        self._startup_timeout = startup_timeout
        self._stop_event = threading.Event()
        self._ready = threading.Event()
        self._startup_error: BaseException | None = None
        self._thread: threading.Thread | None = None

    @property
    def poll_rate(self) -> float:
        """Get the current poll rate."""
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        """Set the poll rate."""
        self._poll_rate = max(0.1, value)  # Minimum 0.1 seconds

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """
        Start the monitoring thread and wait for the source to come up.

        Raises:
            CollectorStartupError: If the metrics source could not be built.
        """
        if self.is_running:
            return

        self._stop_event.clear()
        self._ready.clear()
        self._startup_error = None
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="SystemMonitor",
        )
        self._thread.start()

        if not self._ready.wait(timeout=self._startup_timeout):
            self.stop(timeout=0)
            raise CollectorStartupError("metrics source did not start in time")
        if self._startup_error is not None:
            self._thread.join()
            self._thread = None
            raise CollectorStartupError(
                f"metrics source unavailable: {self._startup_error}"
            ) from self._startup_error

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        try:
            source = self._source_factory()
        except Exception as e:
            log.error("collector_startup_failed", error=str(e))
            self._startup_error = e
            self._slot.close_sender()
            self._ready.set()
            return

        self._ready.set()
        log.info("collector_started", poll_rate=self._poll_rate)
        try:
            while not self._stop_event.is_set():
                snapshot = source.collect()
                if snapshot is None:
                    log.info("collector_exhausted")
                    break
                if not self._slot.send(snapshot):
                    # Consumer went away
                    break

                # Wait for poll_rate seconds or until stop is requested
                self._stop_event.wait(timeout=self._poll_rate)
        except Exception:
            log.exception("collector_crashed")
        finally:
            self._slot.close_sender()
            source.close()
            log.info("collector_stopped")
