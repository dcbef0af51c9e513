import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Hashable, Iterable
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select
from cinema_booking.core.exceptions import BookingValidationError, NotFoundError, SeatAlreadyBookedError
from cinema_booking.crud.catalog import crud_catalog
from cinema_booking.models import Booking, BookingSeat, INACTIVE_BOOKING_STATUSES, Seat, Showtime


class KeyedLockRegistry:
    """
    In-process mutual exclusion keyed by any sortable key.

    Locks are taken in sorted key order so overlapping requests queue up
    instead of deadlocking, and are dropped once nobody holds or waits on them.
    """

    def __init__(self):
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._holders: dict[Hashable, int] = {}

    def _enter(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._holders[key] = self._holders.get(key, 0) + 1
        return lock

    def _leave(self, key: Hashable) -> None:
        self._holders[key] -= 1
        if self._holders[key] == 0:
            del self._holders[key]
            del self._locks[key]

    def is_key_locked(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold_keys(self, keys: Iterable[Hashable]) -> AsyncIterator[None]:
        keys = sorted(set(keys))
        acquired = []
        try:
            for key in keys:
                lock = self._enter(key)
                try:
                    await lock.acquire()
                except BaseException:
                    self._leave(key)
                    raise
                acquired.append(key)
            yield
        finally:
            for key in reversed(acquired):
                self._locks[key].release()
                self._leave(key)


class SeatLockRegistry(KeyedLockRegistry):
    """Locks keyed by (showtime_id, seat_id)."""

    def is_locked(self, showtime_id: int, seat_id: int) -> bool:
        return self.is_key_locked((showtime_id, seat_id))

    def hold(self, showtime_id: int, seat_ids: Iterable[int]):
        return self.hold_keys((showtime_id, seat_id) for seat_id in seat_ids)


class SeatLockService:
    def __init__(self, registry: SeatLockRegistry | None = None):
        self.registry = registry or SeatLockRegistry()

    def hold(self, showtime_id: int, seat_ids: Iterable[int]):
        return self.registry.hold(showtime_id, seat_ids)

    async def find_conflicts(self, db: AsyncSession, showtime_id: int, seat_ids: list[int], lock: bool = False) -> list[tuple[int, str]]:
        stmt = (
            select(Seat.id, Seat.row_label, Seat.seat_number)
            .join(BookingSeat, BookingSeat.seat_id == Seat.id)
            .join(Booking, BookingSeat.booking_id == Booking.id)
            .where(BookingSeat.showtime_id == showtime_id)
            .where(BookingSeat.seat_id.in_(seat_ids))
            .where(Booking.status.not_in(INACTIVE_BOOKING_STATUSES))
            .order_by(Seat.id)
        )
        if lock:
            stmt = stmt.with_for_update(of=BookingSeat)
        result = await db.execute(stmt)
        conflicts = {}
        for row in result.all():
            conflicts[row.id] = f"{row.row_label}{row.seat_number}"
        return sorted(conflicts.items())

    # 1. lock the seat rows (must already be inside the booking transaction).
    # 2. every seat must exist, be active and sit in the showtime's room.
    # 3. while still holding the lock, look for active reservation lines on those seats.
    # 4. report every conflicting seat, not just the first one.
    async def lock_and_validate(self, db: AsyncSession, showtime: Showtime, seat_ids: list[int]) -> list[Seat]:
        logging.debug(f"locking {len(seat_ids)} seats for showtime {showtime.id}")
        seats = await crud_catalog.get_seats_by_ids(db, seat_ids, lock=True)

        if len(seats) != len(set(seat_ids)):
            found_ids = {seat.id for seat in seats}
            missing = sorted(set(seat_ids) - found_ids)
            logging.warning(f"seats not found: {missing}")
            raise NotFoundError("Seat", "ids", missing)

        for seat in seats:
            if seat.room_id != showtime.room_id:
                logging.warning(f"seat {seat.label} is not in room {showtime.room_id} of showtime {showtime.id}")
                raise BookingValidationError(
                    f"Seat {seat.label} does not belong to this showtime's room", field="seat_ids")
            if not seat.active:
                logging.warning(f"seat {seat.label} is inactive")
                raise BookingValidationError(f"Seat {seat.label} is not available", field="seat_ids")

        conflicts = await self.find_conflicts(db, showtime.id, seat_ids, lock=True)
        if conflicts:
            conflict_ids = [seat_id for seat_id, _ in conflicts]
            conflict_labels = [label for _, label in conflicts]
            logging.warning(f"CONFLICT: seats {conflict_labels} already booked for showtime {showtime.id}")
            raise SeatAlreadyBookedError(conflict_ids, conflict_labels)

        return seats

    async def get_reserved_seat_ids(self, db: AsyncSession, showtime_id: int) -> list[int]:
        """Non-locking read for seat maps."""
        result = await db.scalars(
            select(BookingSeat.seat_id)
            .join(Booking, BookingSeat.booking_id == Booking.id)
            .where(BookingSeat.showtime_id == showtime_id)
            .where(Booking.status.not_in(INACTIVE_BOOKING_STATUSES))
            .distinct()
            .order_by(BookingSeat.seat_id)
        )
        return list(result.all())


seat_lock_service = SeatLockService()
