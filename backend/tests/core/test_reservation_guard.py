# backend/tests/core/test_reservation_guard.py
"""Tests for the per-resource reservation guard (local-lock mode on SQLite)."""

import threading
import time

from studio_booking.core import reservation_guard as guard_module
from studio_booking.core.reservation_guard import (
    engineer_key,
    reservation_guard,
    resource_keys,
    room_key,
)


def test_resource_keys_are_sorted():
    assert resource_keys("R1", "E1") == ["engineer:E1", "room:R1"]


def test_resource_keys_without_engineer():
    assert resource_keys("R1") == [room_key("R1")]
    assert resource_keys("R1", "") == ["room:R1"]


def test_guard_yields_sorted_unique_keys(db):
    with reservation_guard(db, ["room:B", "room:A", "room:B"]) as keys:
        assert keys == ["room:A", "room:B"]


def test_guard_serializes_same_key(db):
    events = []
    entered = threading.Event()

    def holder():
        with reservation_guard(db, [room_key("shared")]):
            events.append("holder-in")
            entered.set()
            time.sleep(0.2)
            events.append("holder-out")

    def waiter():
        entered.wait(timeout=5)
        with reservation_guard(db, [room_key("shared")]):
            events.append("waiter-in")

    threads = [threading.Thread(target=holder), threading.Thread(target=waiter)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    assert events == ["holder-in", "holder-out", "waiter-in"]


def test_different_keys_do_not_block(db):
    finished = threading.Event()

    def other():
        with reservation_guard(db, [engineer_key("solo")]):
            finished.set()

    with reservation_guard(db, [room_key("busy")]):
        thread = threading.Thread(target=other)
        thread.start()
        assert finished.wait(timeout=5)
    thread.join(timeout=5)


def test_guard_is_released_after_error(db):
    try:
        with reservation_guard(db, [room_key("boom")]):
            raise RuntimeError("fail inside guard")
    except RuntimeError:
        pass

    acquired = threading.Event()

    def again():
        with reservation_guard(db, [room_key("boom")]):
            acquired.set()

    thread = threading.Thread(target=again)
    thread.start()
    assert acquired.wait(timeout=5)
    thread.join(timeout=5)


def test_local_lock_is_dropped_once_released(db):
    key = room_key("transient")

    with reservation_guard(db, [key]):
        assert key in guard_module._LOCAL_LOCKS

    assert key not in guard_module._LOCAL_LOCKS


def test_local_lock_kept_while_another_caller_waits(db):
    key = room_key("contended")
    waiting = threading.Event()
    done = threading.Event()

    def waiter():
        waiting.set()
        with reservation_guard(db, [key]):
            done.set()

    with reservation_guard(db, [key]):
        thread = threading.Thread(target=waiter)
        thread.start()
        waiting.wait(timeout=5)
        time.sleep(0.1)
        assert guard_module._LOCAL_LOCKS[key].holders == 2

    assert done.wait(timeout=5)
    thread.join(timeout=5)
    assert key not in guard_module._LOCAL_LOCKS
