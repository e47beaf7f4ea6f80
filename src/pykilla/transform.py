"""Turn raw collector snapshots into table rows."""

from pykilla.models import MemoryTotals, ProcessRecord, Row, TableData
from pykilla.monitor import SystemSnapshot

BYTES_PER_MB = 1_000_000


def normalize_cpu_percent(raw_percent: float, cpu_count: int) -> float:
    """Scale a per-process CPU percent to 0-100 of the whole machine, one decimal."""
    return round(raw_percent / max(1, cpu_count), 1)


def bytes_to_mb(size: int) -> int:
    """Whole megabytes, for display only."""
    return size // BYTES_PER_MB


def to_row(record: ProcessRecord, cpu_count: int) -> Row:
    """Build the display row for one process record."""
    return Row(
        name=record.name,
        name_lower=record.name.lower(),
        pid=record.pid,
        pid_text=str(record.pid),
        command=record.command_line,
        command_lower=record.command_line.lower(),
        memory_bytes=record.memory_rss,
        memory_mb=bytes_to_mb(record.memory_rss),
        cpu_percent=normalize_cpu_percent(record.cpu_percent, cpu_count),
        cpu_time=record.cpu_time,
        start_time=record.start_time,
    )


def to_table_data(snapshot: SystemSnapshot) -> TableData:
    """Map a raw snapshot to the rows and memory totals the pipeline works on."""
    return TableData(
        rows=tuple(to_row(record, snapshot.cpu_count) for record in snapshot.processes),
        memory=MemoryTotals(used=snapshot.memory_used, total=snapshot.memory_total),
    )
