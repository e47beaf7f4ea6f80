"""Data models for pykilla."""

from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable raw process record as produced by a metrics source."""

    pid: int
    name: str
    command_line: str
    memory_rss: int  # Bytes
    cpu_percent: float  # 0.0 - 100.0 * core_count
    cpu_time: timedelta = timedelta(0)
    start_time: datetime | None = None


@dataclass(slots=True, frozen=True)
class Row:
    """Displayed state of one process.

    Lowercase name/command and the pid text are computed once when the row
    is built, so filtering never has to case-fold on every keystroke.
    """

    name: str
    name_lower: str
    pid: int
    pid_text: str
    command: str
    command_lower: str
    memory_bytes: int
    memory_mb: int
    cpu_percent: float  # Normalized by core count, one decimal
    cpu_time: timedelta
    start_time: datetime | None = None


@dataclass(slots=True, frozen=True)
class MemoryTotals:
    """System-wide memory usage."""

    used: int = 0
    total: int = 0

    def checked_percent(self) -> float | None:
        """Return used memory as a percentage, or None if the total is unknown."""
        if self.total <= 0:
            return None
        return self.used / self.total * 100


@dataclass(slots=True, frozen=True)
class TableData:
    """All rows of one collected snapshot plus the memory totals."""

    rows: tuple[Row, ...] = ()
    memory: MemoryTotals = MemoryTotals()
