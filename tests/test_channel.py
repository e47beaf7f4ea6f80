"""Tests for the single-slot hand-off channel."""

import threading

import pytest

from pykilla.channel import SlotClosed, SlotEmpty, SnapshotSlot


def test_empty_slot_raises_empty():
    slot: SnapshotSlot[int] = SnapshotSlot()
    with pytest.raises(SlotEmpty):
        slot.try_recv()


def test_send_then_receive():
    slot: SnapshotSlot[int] = SnapshotSlot()
    assert slot.send(1) is True
    assert slot.try_recv() == 1
    with pytest.raises(SlotEmpty):
        slot.try_recv()


def test_latest_wins():
    slot: SnapshotSlot[int] = SnapshotSlot()
    for n in range(5):
        slot.send(n)
    assert slot.try_recv() == 4
    with pytest.raises(SlotEmpty):
        slot.try_recv()


def test_none_is_a_valid_item():
    slot: SnapshotSlot[None] = SnapshotSlot()
    slot.send(None)
    assert slot.try_recv() is None


def test_pending_item_survives_sender_close():
    slot: SnapshotSlot[int] = SnapshotSlot()
    slot.send(7)
    slot.close_sender()

    assert slot.try_recv() == 7
    with pytest.raises(SlotClosed):
        slot.try_recv()


def test_closed_stays_closed():
    slot: SnapshotSlot[int] = SnapshotSlot()
    slot.close_sender()
    for _ in range(3):
        with pytest.raises(SlotClosed):
            slot.try_recv()


def test_send_after_receiver_close_fails():
    slot: SnapshotSlot[int] = SnapshotSlot()
    slot.send(1)
    slot.close_receiver()

    assert slot.receiver_closed
    assert slot.send(2) is False


def test_send_after_sender_close_is_an_error():
    slot: SnapshotSlot[int] = SnapshotSlot()
    slot.close_sender()
    with pytest.raises(RuntimeError):
        slot.send(1)


def test_cross_thread_order():
    """Values observed by the receiver only ever increase."""
    slot: SnapshotSlot[int] = SnapshotSlot()

    def produce():
        for n in range(2000):
            slot.send(n)
        slot.close_sender()

    producer = threading.Thread(target=produce)
    producer.start()

    seen = []
    while True:
        try:
            seen.append(slot.try_recv())
        except SlotEmpty:
            continue
        except SlotClosed:
            break
    producer.join()

    assert seen == sorted(seen)
    assert len(seen) == len(set(seen))
    assert seen[-1] == 1999
