"""pykilla - Main Textual application."""

import signal
from datetime import datetime, timedelta

from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.widgets import DataTable, Footer, Input, Static

from pykilla.bridge import CollectorBridge, CollectorStartupError
from pykilla.config import Config
from pykilla.models import Row
from pykilla.pipeline import Appearance, ProcessPipeline
from pykilla.signals import ProcessControl
from pykilla.sorting import ColumnKind, SortDirection, SortSpec

COLUMNS = [
    ColumnKind.NAME,
    ColumnKind.MEMORY,
    ColumnKind.CPU,
    ColumnKind.PID,
    ColumnKind.COMMAND,
    ColumnKind.STARTED,
    ColumnKind.CPU_TIME,
]


def format_bytes(size: int) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:.1f}{unit}" if unit != "B" else f"{size:d}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def format_cpu(percent: float) -> str:
    """CPU cell text; idle processes show a dash."""
    return f"{percent:.1f} %" if percent != 0.0 else "-"


def format_duration(duration: timedelta) -> str:
    """Format a duration like 1h 2m 3s."""
    total = int(duration.total_seconds())
    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)
    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if seconds or not parts:
        parts.append(f"{seconds}s")
    return " ".join(parts)


def format_started(started: datetime | None) -> str:
    return started.strftime("%d/%m/%Y %H:%M") if started else "-"


def row_cells(row: Row) -> tuple[str, ...]:
    """Cell texts of a row, in COLUMNS order."""
    return (
        row.name,
        f"{row.memory_mb} MB",
        format_cpu(row.cpu_percent),
        str(row.pid),
        row.command,
        format_started(row.start_time),
        format_duration(row.cpu_time),
    )


class StatusBar(Static):
    """Status line showing memory usage and the pipeline's mode."""

    DEFAULT_CSS = """
    StatusBar {
        height: auto;
        padding: 0 1;
        background: $surface;
    }
    """

    def show(self, pipeline: ProcessPipeline) -> None:
        """Render the status of pipeline."""
        self.update(self.describe(pipeline))

    @staticmethod
    def describe(pipeline: ProcessPipeline) -> Text:
        """
        Build the status line.

        Styles are applied as spans, never parsed from the search text, so
        whatever the user typed is shown literally.
        """
        text = Text()
        memory = pipeline.memory
        percent = memory.checked_percent()
        if percent is None:
            text.append("Mem n/a")
        else:
            bar_len = min(int(percent / 5), 20)
            text.append("Mem[")
            text.append("█" * bar_len, style="cyan")
            text.append("░" * (20 - bar_len), style="dim")
            text.append(
                f"] {format_bytes(memory.used)}/{format_bytes(memory.total)} ({percent:.1f}%)"
            )

        text.append(f"  {len(pipeline.visible_rows)} shown")
        if pipeline.disconnected:
            text.append("  DISCONNECTED (data is stale)", style="bold red")
        if pipeline.frozen:
            text.append("  FROZEN", style="bold yellow")
        if pipeline.staged_signal is not None:
            text.append(
                f"  {pipeline.staged_signal.name} staged for "
                f"{len(pipeline.visible_rows)} processes: Enter to send, Esc to cancel",
                style="bold red",
            )
        if pipeline.query_errors:
            hint = ", ".join(str(e) for e in pipeline.query_errors)
            text.append(f"  search: {hint}", style="red")
        report = pipeline.last_dispatch
        if report is not None and report.failures:
            text.append(f"  {report.sig.name}: {len(report.failures)} failed", style="red")
        return text


class ProcessTable(Container):
    """Container for the process data table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"
        for column in COLUMNS:
            table.add_column(column.title, key=column.value)

    def show(self, rows: list[Row], sort: SortSpec) -> None:
        """Replace the table contents with rows, in order."""
        table = self.query_one("#process-table", DataTable)
        arrow = "▼" if sort.direction is SortDirection.DESCENDING else "▲"
        for column in COLUMNS:
            label = f"{column.title} {arrow}" if column is sort.column else column.title
            table.columns[column.value].label = Text(label)
        table.clear()
        for row in rows:
            table.add_row(*row_cells(row), key=str(row.pid))


class PykillaApp(App):
    """Main pykilla application."""

    TITLE = "pykilla"
    SUB_TITLE = "Find and signal processes"

    CSS = """
    Screen {
        layout: vertical;
    }

    #search {
        dock: top;
        display: none;
    }
    """

    BINDINGS = [
        Binding("ctrl+f", "toggle_search", "Search", priority=True),
        Binding("f1", "sort('cpu')", "CPU"),
        Binding("f2", "sort('memory')", "Mem"),
        Binding("f3", "sort('pid')", "PID"),
        Binding("f4", "sort('cpu_time')", "Time"),
        Binding("f5", "toggle_freeze", "Freeze"),
        Binding("ctrl+k", "stage_signal('SIGTERM')", "Term", priority=True),
        Binding("ctrl+x", "stage_signal('SIGKILL')", "Kill", priority=True),
        Binding("enter", "confirm", "Confirm", priority=True, show=False),
        Binding("escape", "back", "Back", priority=True, show=False),
        Binding("ctrl+t", "toggle_appearance", "Theme"),
        Binding("ctrl+q", "quit", "Quit", priority=True),
    ]

    def __init__(
        self,
        config: Config | None = None,
        bridge: CollectorBridge | None = None,
        process_control: ProcessControl | None = None,
    ) -> None:
        """Initialize the PykillaApp."""
        super().__init__()
        self._config = config or Config()
        self._bridge = bridge or CollectorBridge(poll_rate=self._config.collector.poll_rate)
        self._pipeline = ProcessPipeline(
            self._bridge,
            process_control=process_control,
            min_phrase_length=self._config.search.min_signal_phrase_length,
            sort=self._config.ui.sort_spec(),
        )

    @property
    def pipeline(self) -> ProcessPipeline:
        return self._pipeline

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield StatusBar(id="status")
        yield Input(placeholder="[-][name:|pid:|cmd:]phrase ...", id="search")
        yield ProcessTable()
        yield Footer()

    def on_mount(self) -> None:
        """Start the collector when the app is mounted."""
        try:
            self._bridge.start()
        except CollectorStartupError as e:
            self.exit(return_code=1, message=str(e))
            return
        self._apply_appearance()
        self._sync_view()
        self.query_one("#process-table", DataTable).focus()
        # Set up a timer to poll the bridge for updates
        self.set_interval(self._config.ui.tick_interval, self._check_for_updates)

    def on_unmount(self) -> None:
        self._bridge.close(timeout=1.0)

    def _check_for_updates(self) -> None:
        """Poll the bridge and refresh the view if the visible data changed."""
        if self._pipeline.tick():
            self._sync_view()

    def _sync_view(self) -> None:
        """Push pipeline state into the widgets."""
        pipeline = self._pipeline
        search = self.query_one("#search", Input)
        search.display = pipeline.search_visible
        if search.value != pipeline.search_text:
            search.value = pipeline.search_text
        self.query_one(ProcessTable).show(pipeline.visible_rows, pipeline.sort)
        self.query_one("#status", StatusBar).show(pipeline)

    def _apply_appearance(self) -> None:
        light = self._pipeline.appearance is Appearance.LIGHT
        self.theme = "textual-light" if light else "textual-dark"

    def on_input_changed(self, event: Input.Changed) -> None:
        """Typing in the search box replaces the search text."""
        if event.input.id == "search":
            self._pipeline.replace_search(event.value)
            self._sync_view()

    def on_key(self, event: events.Key) -> None:
        """Type into the search even while the box is hidden."""
        if self.query_one("#search", Input).has_focus:
            return
        if event.key == "backspace":
            self._pipeline.pop_search_char()
        elif event.is_printable and event.character:
            self._pipeline.append_search(event.character)
        else:
            return
        event.stop()
        self._sync_view()

    def action_toggle_search(self) -> None:
        self._pipeline.toggle_search()
        self._sync_view()
        if self._pipeline.search_visible:
            self.query_one("#search", Input).focus()
        else:
            self.query_one("#process-table", DataTable).focus()

    def action_sort(self, column: str) -> None:
        self._pipeline.set_sort_column(ColumnKind(column))
        self._sync_view()

    def action_toggle_freeze(self) -> None:
        self._pipeline.toggle_freeze()
        self._sync_view()

    def action_stage_signal(self, name: str) -> None:
        if not self._pipeline.stage_signal(signal.Signals[name]):
            self.notify(
                f"Freeze (F5) and search at least {self._pipeline.min_phrase_length} "
                "characters to stage a signal",
                severity="warning",
            )
        self._sync_view()

    def action_confirm(self) -> None:
        report = self._pipeline.confirm()
        if report is None:
            return
        self.notify(
            f"{report.sig.name} sent to {len(report.delivered)} processes"
            + (f", {len(report.failures)} failed" if report.failures else ""),
            severity="information" if report.ok else "warning",
        )
        self._sync_view()

    def action_back(self) -> None:
        self._pipeline.back()
        if not self._pipeline.search_visible:
            self.query_one("#process-table", DataTable).focus()
        self._sync_view()

    def action_toggle_appearance(self) -> None:
        """Stand-in for the desktop telling us its appearance changed."""
        light = self._pipeline.appearance is Appearance.LIGHT
        self._pipeline.appearance_changed(Appearance.DARK if light else Appearance.LIGHT)
        self._apply_appearance()

    async def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._bridge.close(timeout=1.0)
        self.exit()
