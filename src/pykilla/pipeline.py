"""Consumer side of the live data pipeline.

ProcessPipeline owns all session state (live data, freeze, search, sort,
staged signal) and is driven from a single loop: the UI calls tick() on a
timer and calls the command methods in response to user input. Nothing in
here blocks or needs a lock.
"""

import signal
from enum import Enum

import structlog

from pykilla.bridge import CollectorBridge, PollOutcome
from pykilla.freeze import FreezeGate, FreezeState
from pykilla.models import MemoryTotals, Row, TableData
from pykilla.search import SearchQuery, UnknownColumnError, parse_query
from pykilla.signals import (
    DEFAULT_MIN_PHRASE_LENGTH,
    DispatchReport,
    ProcessControl,
    PsutilProcessControl,
    SignalStager,
    dispatch_signal,
)
from pykilla.sorting import ColumnKind, SortDirection, SortSpec, sort_rows
from pykilla.transform import to_table_data

log = structlog.get_logger()


class Appearance(Enum):
    """Light or dark look, as reported by the desktop."""

    LIGHT = "light"
    DARK = "dark"


class ProcessPipeline:
    """
    Live process table state.

    Data flows bridge -> transform -> freeze gate -> sort -> filter. The
    result is recomputed after every change and exposed as visible_rows.
    """

    def __init__(
        self,
        bridge: CollectorBridge | None = None,
        process_control: ProcessControl | None = None,
        min_phrase_length: int = DEFAULT_MIN_PHRASE_LENGTH,
        sort: SortSpec | None = None,
    ) -> None:
        """
        Initialize the ProcessPipeline.

        Args:
            bridge: Where new snapshots come from. tick() is a no-op without one.
            process_control: Delivers signals on confirm(). Defaults to psutil.
            min_phrase_length: Shortest search phrase that allows staging a signal.
            sort: Initial sort; CPU descending if not given.
        """
        self._bridge = bridge
        self._control = process_control if process_control is not None else PsutilProcessControl()
        self._stager = SignalStager(min_phrase_length)
        self._freeze = FreezeGate()
        self._live = TableData()
        self._query = SearchQuery()
        self._sort = sort if sort is not None else SortSpec()
        self._visible: list[Row] = []
        self.search_visible = False
        self.appearance = Appearance.DARK
        self.disconnected = False
        self.last_dispatch: DispatchReport | None = None

    # Read side

    @property
    def visible_rows(self) -> list[Row]:
        return self._visible

    @property
    def live(self) -> TableData:
        return self._live

    @property
    def memory(self) -> MemoryTotals:
        return self._live.memory

    @property
    def search_text(self) -> str:
        return self._query.text

    @property
    def query_errors(self) -> list[UnknownColumnError]:
        return self._query.errors

    @property
    def sort(self) -> SortSpec:
        return self._sort

    @property
    def frozen(self) -> bool:
        return self._freeze.frozen

    @property
    def freeze_state(self) -> FreezeState:
        return self._freeze.state

    @property
    def staged_signal(self) -> signal.Signals | None:
        return self._stager.staged

    @property
    def min_phrase_length(self) -> int:
        return self._stager.min_phrase_length

    # Data

    def tick(self) -> bool:
        """
        Poll the bridge once. Returns True if something changed.

        Never blocks; if the collector has nothing new, nothing happens.
        """
        if self._bridge is None or self.disconnected:
            return False
        result = self._bridge.poll()
        if result.outcome is PollOutcome.DATA:
            return self.accept(to_table_data(result.snapshot))
        if result.outcome is PollOutcome.ENDED:
            self.disconnected = True
            return True
        return False

    def accept(self, data: TableData) -> bool:
        """Take a new snapshot. Returns True if it went live (not frozen)."""
        live = self._freeze.offer(data)
        if live is None:
            return False
        self._live = live
        self.refresh()
        return True

    def refresh(self) -> None:
        """Recompute the visible rows: sort everything, then filter."""
        self._visible = self._query.apply(sort_rows(self._live.rows, self._sort))

    # Search

    def replace_search(self, text: str) -> None:
        if text == self._query.text:
            return
        self._query = parse_query(text)
        self._stager.clear()
        self.refresh()

    def append_search(self, text: str) -> None:
        self.replace_search(self._query.text + text)

    def pop_search_char(self) -> None:
        self.replace_search(self._query.text[:-1])

    def toggle_search(self) -> None:
        self.search_visible = not self.search_visible

    def hide_search(self) -> None:
        # The filter stays active while the box is hidden
        self.search_visible = False

    # Sort

    def set_sort_column(self, column: ColumnKind) -> None:
        """Sort by column. Picking the active column again flips the direction."""
        if column is self._sort.column:
            self._sort = SortSpec(column, self._sort.direction.flipped())
        else:
            self._sort = SortSpec(column, SortDirection.DESCENDING)
        self._stager.clear()
        self.refresh()

    # Freeze

    def set_freeze(self, enabled: bool) -> None:
        self._stager.clear()
        if enabled:
            self._freeze.enable()
            return
        pending = self._freeze.disable()
        if pending is not None:
            self._live = pending
        self.refresh()

    def toggle_freeze(self) -> None:
        self.set_freeze(not self.frozen)

    # Signals

    def stage_signal(self, sig: signal.Signals) -> bool:
        """Ask for sig to be sent to every visible process once confirmed."""
        return self._stager.stage(sig, frozen=self.frozen, phrase=self._query.narrowest_phrase)

    def confirm(self) -> DispatchReport | None:
        """
        Send the staged signal to every visible process.

        Afterwards the table is unfrozen (committing whatever arrived in the
        meantime), recomputed and frozen again. Returns None if nothing was
        staged.
        """
        sig = self._stager.clear()
        if sig is None:
            return None
        report = dispatch_signal(list(self._visible), sig, self._control)
        self.last_dispatch = report
        self.set_freeze(False)
        self.set_freeze(True)
        return report

    def back(self) -> None:
        """Escape: drop a staged signal, else unfreeze, else hide the search box."""
        if self._stager.staged is not None:
            self._stager.clear()
        elif self.frozen:
            self.set_freeze(False)
        else:
            self.hide_search()

    # Appearance

    def appearance_changed(self, appearance: Appearance) -> None:
        self.appearance = appearance
