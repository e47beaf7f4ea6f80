"""Two-phase sending of OS signals to every filtered process."""

import signal
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol

import psutil
import structlog

from pykilla.models import Row

log = structlog.get_logger()

DEFAULT_MIN_PHRASE_LENGTH = 3


class SignalDeliveryError(Exception):
    """The OS refused to deliver a signal to one process."""

    def __init__(self, pid: int, sig: signal.Signals, reason: str) -> None:
        super().__init__(f"cannot send {sig.name} to {pid}: {reason}")
        self.pid = pid
        self.sig = sig
        self.reason = reason


class ProcessControl(Protocol):
    """Delivers signals to processes."""

    def send_signal(self, pid: int, sig: signal.Signals) -> None:
        """
        Raises:
            SignalDeliveryError: If the signal could not be delivered.
        """
        ...


class PsutilProcessControl:
    """ProcessControl backed by psutil."""

    def send_signal(self, pid: int, sig: signal.Signals) -> None:
        try:
            psutil.Process(pid).send_signal(sig)
        except psutil.NoSuchProcess:
            raise SignalDeliveryError(pid, sig, "no such process") from None
        except psutil.AccessDenied:
            raise SignalDeliveryError(pid, sig, "permission denied") from None
        except (psutil.Error, OSError) as e:
            raise SignalDeliveryError(pid, sig, str(e)) from e


@dataclass(slots=True, frozen=True)
class DispatchFailure:
    pid: int
    reason: str


@dataclass(slots=True)
class DispatchReport:
    """Outcome of sending one signal to a batch of processes."""

    sig: signal.Signals
    delivered: list[int] = field(default_factory=list)
    failures: list[DispatchFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def dispatch_signal(
    rows: Iterable[Row], sig: signal.Signals, control: ProcessControl
) -> DispatchReport:
    """
    Send sig to every row's process, in order.

    A failure for one pid is recorded and the loop moves on to the next.
    """
    report = DispatchReport(sig=sig)
    for row in rows:
        try:
            control.send_signal(row.pid, sig)
        except SignalDeliveryError as e:
            log.warning("signal_delivery_failed", pid=row.pid, signal=sig.name, reason=e.reason)
            report.failures.append(DispatchFailure(pid=row.pid, reason=e.reason))
        else:
            report.delivered.append(row.pid)

    log.info(
        "signal_dispatched",
        signal=sig.name,
        delivered=len(report.delivered),
        failed=len(report.failures),
    )
    return report


class SignalStager:
    """
    Holds a signal the user asked for until they confirm it.

    A signal can only be staged while the table is frozen and the search
    phrase is non-empty and at least min_phrase_length characters long, so
    that a nearly empty filter (most of the process table) can't be
    signalled by accident.
    """

    def __init__(self, min_phrase_length: int = DEFAULT_MIN_PHRASE_LENGTH) -> None:
        self.min_phrase_length = min_phrase_length
        self._staged: signal.Signals | None = None

    @property
    def staged(self) -> signal.Signals | None:
        return self._staged

    def stage(self, sig: signal.Signals, *, frozen: bool, phrase: str) -> bool:
        """Stage sig if the guard allows it. Returns whether it was staged."""
        if not frozen or not phrase or len(phrase) < self.min_phrase_length:
            log.info(
                "signal_stage_rejected",
                signal=sig.name,
                frozen=frozen,
                phrase_length=len(phrase),
                min_phrase_length=self.min_phrase_length,
            )
            return False
        self._staged = sig
        log.info("signal_staged", signal=sig.name, phrase=phrase)
        return True

    def clear(self) -> signal.Signals | None:
        """Drop the staged signal, returning it."""
        staged, self._staged = self._staged, None
        return staged
