import logging
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.sql import select
from cinema_booking.core.clock import as_utc, system_clock
from cinema_booking.core.config import settings
from cinema_booking.core.exceptions import (
    BookingExpiredError, InvalidStateTransitionError, NotFoundError, PermissionDeniedError, ShowtimeNotAvailableError)
from cinema_booking.models import Booking, BookingStatus, User
from cinema_booking.services.payment import PaymentService, payment_service
from cinema_booking.services.seat_lock import KeyedLockRegistry


ALLOWED_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingStatus.EXPIRED},
    BookingStatus.CONFIRMED: {BookingStatus.CANCELLED, BookingStatus.COMPLETED},
    BookingStatus.CANCELLED: set(),
    BookingStatus.EXPIRED: set(),
    BookingStatus.COMPLETED: set(),
}


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


async def guarded_transition(db: AsyncSession, booking_id: int, expected: BookingStatus, target: BookingStatus, **values) -> bool:
    """
    Single UPDATE keyed by the current status. Returns False when another
    actor (sweeper, a concurrent confirm) moved the booking first.
    """
    if not can_transition(expected, target):
        raise InvalidStateTransitionError(booking_id, expected.value, target.value.lower())
    result = await db.execute(
        update(Booking)
        .where(Booking.id == booking_id)
        .where(Booking.status == expected)
        .values(status=target, **values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


class BookingStateMachine:
    def __init__(self, clock=system_clock,
                 hold_duration: timedelta = timedelta(minutes=settings.HOLD_DURATION_MINUTES),
                 payments: PaymentService = payment_service):
        self.clock = clock
        self.hold_duration = hold_duration
        self.payments = payments
        self.booking_locks = KeyedLockRegistry()

    def hold_deadline(self, booking: Booking) -> datetime:
        return as_utc(booking.created_at) + self.hold_duration

    def is_hold_expired(self, booking: Booking, now: datetime) -> bool:
        return now >= self.hold_deadline(booking)

    async def _load(self, db: AsyncSession, booking_id: int, lock: bool = False) -> Booking:
        stmt = (select(Booking)
                .where(Booking.id == booking_id)
                .options(selectinload(Booking.showtime))
                .execution_options(populate_existing=True))
        if lock:
            stmt = stmt.with_for_update(of=Booking)  # pessimistic locking
        result = await db.execute(stmt)
        booking = result.scalar_one_or_none()
        if booking is None:
            raise NotFoundError("Booking", "id", booking_id)
        return booking

    async def _current_status(self, db: AsyncSession, booking_id: int) -> BookingStatus:
        return await db.scalar(select(Booking.status).where(Booking.id == booking_id))

    async def _apply(self, db: AsyncSession, booking: Booking, target: BookingStatus, operation: str, **values) -> None:
        # rollback expires the instance, keep what the error path needs
        booking_id, booking_code, expected = booking.id, booking.booking_code, booking.status
        moved = await guarded_transition(db, booking_id, expected, target, **values)
        if not moved:
            await db.rollback()
            current = await self._current_status(db, booking_id)
            logging.warning(f"booking {booking_code} moved to {current} before {operation} could apply")
            if operation == "confirm" and current == BookingStatus.EXPIRED:
                raise BookingExpiredError(booking_id, booking_code)
            raise InvalidStateTransitionError(booking_id, current.value, operation)
        await db.commit()

    async def confirm(self, db: AsyncSession, booking_id: int, payment_method: Optional[str] = None,
                      idempotency_key: Optional[str] = None) -> None:
        # one confirmation per booking at a time, so a payment is never taken twice
        async with self.booking_locks.hold_keys([booking_id]):
            try:
                booking = await self._load(db, booking_id, lock=True)
                if booking.status == BookingStatus.EXPIRED:
                    raise BookingExpiredError(booking.id, booking.booking_code)
                if booking.status != BookingStatus.PENDING:
                    raise InvalidStateTransitionError(booking.id, booking.status.value, "confirm")

                now = self.clock.now()
                if self.is_hold_expired(booking, now):
                    # a stale hold expires itself here, the sweeper would do the same
                    await guarded_transition(db, booking.id, BookingStatus.PENDING, BookingStatus.EXPIRED)
                    await db.commit()
                    logging.warning(f"booking {booking.booking_code} hold expired at {self.hold_deadline(booking)}")
                    raise BookingExpiredError(booking.id, booking.booking_code)

                if payment_method:
                    # raises PaymentFailedError, the booking stays PENDING
                    reference = await self.payments.charge(booking, payment_method, idempotency_key)
                    logging.info(f"payment {reference} accepted for booking {booking.booking_code}")

                await self._apply(db, booking, BookingStatus.CONFIRMED, "confirm",
                                  confirmed_at=now, payment_method=payment_method.upper() if payment_method else None)
                logging.info(f"booking {booking.booking_code} confirmed")
            except Exception:
                await db.rollback()
                raise

    async def cancel(self, db: AsyncSession, booking_id: int, user: User, reason: Optional[str] = None) -> None:
        async with self.booking_locks.hold_keys([booking_id]):
            try:
                booking = await self._load(db, booking_id, lock=True)
                if booking.user_id != user.id:
                    logging.warning(f"user {user.id} tried to cancel booking {booking.booking_code} owned by user {booking.user_id}")
                    raise PermissionDeniedError("You can only cancel your own bookings",
                                                details={"booking_id": booking.id})
                if not can_transition(booking.status, BookingStatus.CANCELLED):
                    raise InvalidStateTransitionError(booking.id, booking.status.value, "cancel")
                now = self.clock.now()
                if now >= as_utc(booking.showtime.start_time):
                    raise ShowtimeNotAvailableError.already_started(booking.showtime_id)

                await self._apply(db, booking, BookingStatus.CANCELLED, "cancel",
                                  cancelled_at=now, cancellation_reason=reason)
                logging.info(f"booking {booking.booking_code} cancelled by user {user.id}")
            except Exception:
                await db.rollback()
                raise

    async def complete(self, db: AsyncSession, booking_id: int) -> None:
        async with self.booking_locks.hold_keys([booking_id]):
            try:
                booking = await self._load(db, booking_id, lock=True)
                if booking.status != BookingStatus.CONFIRMED:
                    raise InvalidStateTransitionError(booking.id, booking.status.value, "complete")
                await self._apply(db, booking, BookingStatus.COMPLETED, "complete")
                logging.info(f"booking {booking.booking_code} completed")
            except Exception:
                await db.rollback()
                raise

    async def expire_stale_holds(self, db: AsyncSession) -> int:
        """Expire every PENDING booking whose hold elapsed. Safe to run concurrently."""
        cutoff = self.clock.now() - self.hold_duration
        try:
            result = await db.execute(
                select(Booking.id, Booking.booking_code)
                .where(Booking.status == BookingStatus.PENDING)
                .where(Booking.created_at <= cutoff)
                .order_by(Booking.id)
            )
            expired = 0
            for booking_id, booking_code in result.all():
                if await guarded_transition(db, booking_id, BookingStatus.PENDING, BookingStatus.EXPIRED):
                    expired += 1
                    logging.info(f"booking {booking_code} expired, hold elapsed")
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if expired:
            logging.info(f"expired {expired} pending bookings")
        return expired


booking_state_machine = BookingStateMachine()
