"""Single-slot hand-off channel between the collector thread and the UI loop."""

import threading
from typing import Generic, TypeVar

T = TypeVar("T")


class SlotEmpty(Exception):
    """Nothing is waiting in the slot."""


class SlotClosed(Exception):
    """The sender closed and the slot has been drained."""


class SnapshotSlot(Generic[T]):
    """
    Bounded channel holding at most one item.

    A new item overwrites one that has not been consumed yet, so the receiver
    always sees the freshest value and never a backlog. Items are delivered in
    the order they were sent; overwritten ones are simply lost.

    Exactly one thread sends and exactly one thread receives. The receiver
    never blocks: try_recv() either returns an item or raises.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._item: T | None = None
        self._has_item = False
        self._sender_closed = False
        self._receiver_closed = False

    @property
    def sender_closed(self) -> bool:
        return self._sender_closed

    @property
    def receiver_closed(self) -> bool:
        return self._receiver_closed

    def send(self, item: T) -> bool:
        """
        Put item in the slot, replacing any unconsumed one.

        Returns:
            False if the receiver has gone away (the item is dropped), True otherwise.
        """
        with self._lock:
            if self._receiver_closed:
                return False
            if self._sender_closed:
                raise RuntimeError("send() on a closed slot")
            self._item = item
            self._has_item = True
            return True

    def try_recv(self) -> T:
        """
        Take the waiting item without blocking.

        Raises:
            SlotEmpty: Nothing has been sent since the last receive.
            SlotClosed: The sender closed and no item is left.
        """
        with self._lock:
            if self._has_item:
                item = self._item
                self._item = None
                self._has_item = False
                return item  # type: ignore[return-value]
            if self._sender_closed:
                raise SlotClosed()
            raise SlotEmpty()

    def close_sender(self) -> None:
        """Mark the producing side as finished. A pending item can still be received."""
        with self._lock:
            self._sender_closed = True

    def close_receiver(self) -> None:
        """Mark the consuming side as gone and drop any pending item."""
        with self._lock:
            self._receiver_closed = True
            self._item = None
            self._has_item = False
