"""Freeze mode: pin the visible table while updates keep arriving."""

from dataclasses import dataclass

import structlog

from pykilla.models import TableData

log = structlog.get_logger()


@dataclass(slots=True, frozen=True)
class Disabled:
    """Updates replace the live data immediately."""


@dataclass(slots=True, frozen=True)
class Enabled:
    """Updates are held back; only the latest one is kept."""

    pending: TableData | None = None


FreezeState = Disabled | Enabled


class FreezeGate:
    """
    Decides whether incoming data goes live now or waits for unfreeze.

    While enabled, at most one snapshot is buffered: each new one replaces
    the previous. Disabling hands the buffered snapshot back so the caller
    can commit it in one go.
    """

    def __init__(self) -> None:
        self._state: FreezeState = Disabled()

    @property
    def state(self) -> FreezeState:
        return self._state

    @property
    def frozen(self) -> bool:
        return isinstance(self._state, Enabled)

    @property
    def pending(self) -> TableData | None:
        if isinstance(self._state, Enabled):
            return self._state.pending
        return None

    def enable(self) -> bool:
        """Start freezing. Returns False if already frozen."""
        if self.frozen:
            return False
        self._state = Enabled()
        log.debug("freeze_enabled")
        return True

    def offer(self, data: TableData) -> TableData | None:
        """
        Hand a new snapshot to the gate.

        Returns:
            The data to make live right away, or None if it was buffered.
        """
        if isinstance(self._state, Enabled):
            self._state = Enabled(pending=data)
            return None
        return data

    def disable(self) -> TableData | None:
        """
        Stop freezing.

        Returns:
            The buffered snapshot to commit, or None when nothing arrived
            while frozen (or the gate was not frozen at all).
        """
        if not isinstance(self._state, Enabled):
            return None
        pending = self._state.pending
        self._state = Disabled()
        log.debug("freeze_disabled", committed=pending is not None)
        return pending
