"""Ordering of process rows."""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pykilla.models import Row


class ColumnKind(Enum):
    """Columns of the process table."""

    NAME = "name"
    MEMORY = "memory"
    CPU = "cpu"
    PID = "pid"
    COMMAND = "command"
    STARTED = "started"
    CPU_TIME = "cpu_time"

    @property
    def title(self) -> str:
        return _TITLES[self]

    @property
    def sortable(self) -> bool:
        return self in _SORT_KEYS


_TITLES = {
    ColumnKind.NAME: "Name",
    ColumnKind.MEMORY: "Memory",
    ColumnKind.CPU: "CPU",
    ColumnKind.PID: "ID",
    ColumnKind.COMMAND: "Command",
    ColumnKind.STARTED: "Started",
    ColumnKind.CPU_TIME: "Time",
}

# Memory sorts on raw bytes, not on the rounded megabytes shown in the table.
_SORT_KEYS: dict[ColumnKind, Callable[[Row], Any]] = {
    ColumnKind.MEMORY: lambda row: row.memory_bytes,
    ColumnKind.CPU: lambda row: row.cpu_percent,
    ColumnKind.PID: lambda row: row.pid,
    ColumnKind.CPU_TIME: lambda row: row.cpu_time,
}


class SortDirection(Enum):
    """Sort direction."""

    ASCENDING = "ascending"
    DESCENDING = "descending"

    def flipped(self) -> "SortDirection":
        if self is SortDirection.ASCENDING:
            return SortDirection.DESCENDING
        return SortDirection.ASCENDING


@dataclass(slots=True, frozen=True)
class SortSpec:
    """Active sort column and direction."""

    column: ColumnKind = ColumnKind.CPU
    direction: SortDirection = SortDirection.DESCENDING


def sort_rows(rows: Iterable[Row], spec: SortSpec) -> list[Row]:
    """
    Sort rows by spec.

    The sort is stable in both directions: rows with equal keys keep their
    relative order. Columns without a meaningful order return the rows as-is.
    """
    key = _SORT_KEYS.get(spec.column)
    if key is None:
        return list(rows)
    return sorted(rows, key=key, reverse=spec.direction is SortDirection.DESCENDING)
