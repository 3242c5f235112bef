# backend/tests/services/test_slot_lock_service.py
"""
Tests for SlotLockService.

Covers exclusivity (including real concurrent callers), half-open windows,
expiry and release ownership.
"""

import threading
from datetime import timedelta

import pytest

from studio_booking.core.exceptions import (
    NotFoundException,
    SlotConflictException,
    StoreUnavailableException,
    ValidationException,
)
from studio_booking.core.time_utils import to_utc, utc_now
from studio_booking.models import SlotLock
from studio_booking.services.slot_lock_service import SlotLockService

from tests.utils.booking_fixtures import insert_booking, local_at, minutes, new_id, seed_catalog


@pytest.fixture
def slot_lock_service(db, policy):
    return SlotLockService(db, policy)


class TestAcquireLock:
    def test_acquires_lock_with_ttl(self, slot_lock_service, catalog, artist_id, window):
        now = utc_now()
        lock = slot_lock_service.acquire_lock(
            catalog.room.id, catalog.engineer_id, *window, artist_id, now=now
        )

        assert lock.id
        assert lock.locked_by == artist_id
        assert lock.engineer_id == catalog.engineer_id
        assert to_utc(lock.expires_at) == now + timedelta(minutes=10)

    def test_overlapping_lock_on_same_room_conflicts(
        self, slot_lock_service, catalog, artist_id, window
    ):
        slot_lock_service.acquire_lock(catalog.room.id, None, *window, artist_id)

        with pytest.raises(SlotConflictException) as exc_info:
            slot_lock_service.acquire_lock(
                catalog.room.id, None, local_at(15), local_at(17), new_id()
            )
        assert exc_info.value.code == "SLOT_CONFLICT"
        assert exc_info.value.details["resource"] == "room"

    def test_same_engineer_in_another_room_conflicts(self, db, slot_lock_service, catalog, window):
        other = seed_catalog(db)
        slot_lock_service.acquire_lock(catalog.room.id, catalog.engineer_id, *window, new_id())

        with pytest.raises(SlotConflictException) as exc_info:
            slot_lock_service.acquire_lock(other.room.id, catalog.engineer_id, *window, new_id())
        assert exc_info.value.details["resource"] == "engineer"

    def test_touching_windows_do_not_conflict(self, slot_lock_service, catalog, window):
        start, end = window
        slot_lock_service.acquire_lock(catalog.room.id, None, start, end, new_id())

        after = slot_lock_service.acquire_lock(
            catalog.room.id, None, end, end + timedelta(hours=1), new_id()
        )
        before = slot_lock_service.acquire_lock(
            catalog.room.id, None, start - timedelta(hours=1), start, new_id()
        )
        assert after.id != before.id

    def test_expired_lock_does_not_block(self, db, slot_lock_service, catalog, window):
        t0 = utc_now()
        first = slot_lock_service.acquire_lock(catalog.room.id, None, *window, new_id(), now=t0)

        later = t0 + minutes(11)
        second = slot_lock_service.acquire_lock(
            catalog.room.id, None, *window, new_id(), now=later
        )

        assert second.id != first.id
        # The expired lock was purged on the way in
        assert db.query(SlotLock).filter(SlotLock.id == first.id).first() is None

    def test_lock_still_blocks_just_before_expiry(self, slot_lock_service, catalog, window):
        t0 = utc_now()
        slot_lock_service.acquire_lock(catalog.room.id, None, *window, new_id(), now=t0)

        with pytest.raises(SlotConflictException):
            slot_lock_service.acquire_lock(
                catalog.room.id, None, *window, new_id(), now=t0 + minutes(9)
            )

    def test_existing_booking_blocks_lock(self, db, slot_lock_service, catalog, artist_id, window):
        insert_booking(db, catalog, artist_id, *window)

        with pytest.raises(SlotConflictException) as exc_info:
            slot_lock_service.acquire_lock(
                catalog.room.id, None, local_at(15), local_at(17), new_id()
            )
        assert exc_info.value.message == "Time slot already booked"

    def test_closed_room_blocks_lock(self, db, policy):
        closed = seed_catalog(db, open_hours=False)
        service = SlotLockService(db, policy)

        with pytest.raises(SlotConflictException) as exc_info:
            service.acquire_lock(closed.room.id, None, local_at(14), local_at(16), new_id())
        assert exc_info.value.message == "Room not available at this time"

    def test_rejects_inverted_window(self, slot_lock_service, catalog, window):
        start, end = window
        with pytest.raises(ValidationException):
            slot_lock_service.acquire_lock(catalog.room.id, None, end, start, new_id())

    def test_rejects_empty_window(self, slot_lock_service, catalog, window):
        start, _ = window
        with pytest.raises(ValidationException):
            slot_lock_service.acquire_lock(catalog.room.id, None, start, start, new_id())


class TestConcurrentAcquire:
    def test_only_one_of_two_concurrent_callers_wins(self, file_session_factory, policy):
        """Two threads with separate connections race for the same window."""
        setup = file_session_factory()
        catalog = seed_catalog(setup)
        room_id = catalog.room.id
        setup.close()

        barrier = threading.Barrier(2)
        outcomes = []
        outcomes_lock = threading.Lock()

        def attempt():
            session = file_session_factory()
            try:
                service = SlotLockService(session, policy)
                barrier.wait()
                try:
                    service.acquire_lock(room_id, None, local_at(14), local_at(16), new_id())
                    result = "acquired"
                except SlotConflictException:
                    result = "conflict"
            finally:
                session.close()
            with outcomes_lock:
                outcomes.append(result)

        threads = [threading.Thread(target=attempt) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert sorted(outcomes) == ["acquired", "conflict"]

        check = file_session_factory()
        try:
            assert check.query(SlotLock).filter(SlotLock.room_id == room_id).count() == 1
        finally:
            check.close()


class TestReleaseLock:
    def test_owner_can_release(self, db, slot_lock_service, catalog, artist_id, window):
        lock = slot_lock_service.acquire_lock(catalog.room.id, None, *window, artist_id)

        slot_lock_service.release_lock(lock.id, artist_id)

        assert db.query(SlotLock).count() == 0
        # The window is free again
        slot_lock_service.acquire_lock(catalog.room.id, None, *window, new_id())

    def test_other_user_cannot_release(self, db, slot_lock_service, catalog, artist_id, window):
        lock = slot_lock_service.acquire_lock(catalog.room.id, None, *window, artist_id)

        with pytest.raises(NotFoundException):
            slot_lock_service.release_lock(lock.id, new_id())
        assert db.query(SlotLock).count() == 1

    def test_unknown_lock(self, slot_lock_service, artist_id):
        with pytest.raises(NotFoundException):
            slot_lock_service.release_lock(new_id(), artist_id)


class TestExpireStaleLocks:
    def test_sweep_removes_only_expired(self, db, slot_lock_service, catalog):
        t0 = utc_now()
        slot_lock_service.acquire_lock(
            catalog.room.id, None, local_at(10), local_at(11), new_id(), now=t0
        )
        fresh = slot_lock_service.acquire_lock(
            catalog.room.id, None, local_at(12), local_at(13), new_id(), now=t0 + minutes(8)
        )

        removed = slot_lock_service.expire_stale_locks(now=t0 + minutes(10))

        assert removed == 1
        assert [lock.id for lock in db.query(SlotLock).all()] == [fresh.id]

    def test_sweep_with_nothing_to_do(self, slot_lock_service):
        assert slot_lock_service.expire_stale_locks() == 0


def test_active_locks_for_user(slot_lock_service, catalog, artist_id):
    t0 = utc_now()
    early = slot_lock_service.acquire_lock(
        catalog.room.id, None, local_at(9), local_at(10), artist_id, now=t0
    )
    late = slot_lock_service.acquire_lock(
        catalog.room.id, None, local_at(18), local_at(19), artist_id, now=t0
    )
    slot_lock_service.acquire_lock(catalog.room.id, None, local_at(11), local_at(12), new_id())

    active = slot_lock_service.get_active_locks_for_user(artist_id, now=t0 + minutes(1))
    assert [lock.id for lock in active] == [early.id, late.id]

    assert slot_lock_service.get_active_locks_for_user(artist_id, now=t0 + minutes(10)) == []


class TestStoreUnavailable:
    def test_unreachable_store_raises_store_unavailable(self, unreachable_db, policy, window):
        service = SlotLockService(unreachable_db, policy)

        with pytest.raises(StoreUnavailableException) as exc_info:
            service.acquire_lock(new_id(), new_id(), *window, new_id())

        assert exc_info.value.code == "STORE_UNAVAILABLE"
        assert exc_info.value.status_code == 503

    def test_release_on_unreachable_store(self, unreachable_db, policy):
        service = SlotLockService(unreachable_db, policy)

        with pytest.raises(StoreUnavailableException):
            service.release_lock(new_id(), new_id())
