import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_DOWN, Decimal
from typing import Optional
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.sql import select
from cinema_booking.core.clock import as_utc, system_clock
from cinema_booking.core.config import settings
from cinema_booking.core.exceptions import (
    BookingValidationError, NotFoundError, SeatLockConflictError, ShowtimeNotAvailableError)
from cinema_booking.crud.catalog import crud_catalog
from cinema_booking.models import (
    AddOnItem, Booking, BookingAddOn, BookingSeat, BookingStatus, Discount, DiscountStatus, DiscountType,
    Room, Seat, Showtime, ShowtimeStatus, User)
from cinema_booking.schemas.booking import BookingCreate
from cinema_booking.services.pricing import PricingService, pricing_service
from cinema_booking.services.seat_lock import SeatLockService, seat_lock_service

# postgres serialization failure, deadlock, lock timeout
RETRYABLE_SQLSTATES = {"40001", "40P01", "55P03"}
RETRYABLE_MESSAGES = ("database is locked", "could not serialize", "deadlock detected")


def is_retryable_db_error(error: DBAPIError) -> bool:
    sqlstate = getattr(error.orig, "sqlstate", None) or getattr(error.orig, "pgcode", None)
    if sqlstate in RETRYABLE_SQLSTATES:
        return True
    message = str(error.orig).lower()
    return any(fragment in message for fragment in RETRYABLE_MESSAGES)


def is_booking_code_collision(error: IntegrityError) -> bool:
    # sqlite names the column, postgres the unique index on it
    return "booking_code" in str(error.orig).lower()


def generate_booking_code() -> str:
    return "BK" + uuid.uuid4().hex[:8].upper()


@dataclass
class AddOnLine:
    item: AddOnItem
    quantity: int

    @property
    def total(self) -> Decimal:
        return Decimal(self.item.price) * self.quantity


class CRUDBooking:
    def __init__(self, clock=system_clock,
                 pricing: PricingService = pricing_service,
                 seat_locks: SeatLockService = seat_lock_service,
                 min_lead_time: timedelta = timedelta(minutes=settings.MIN_LEAD_TIME_MINUTES),
                 max_retries: int = settings.BOOKING_MAX_RETRIES,
                 isolation_level: str = settings.BOOKING_ISOLATION_LEVEL,
                 strict_discount_codes: bool = settings.STRICT_DISCOUNT_CODES):
        self.clock = clock
        self.pricing = pricing
        self.seat_locks = seat_locks
        self.min_lead_time = min_lead_time
        self.max_retries = max(1, max_retries)
        self.isolation_level = isolation_level
        self.strict_discount_codes = strict_discount_codes

    # ------------------------------------------------------------------
    # create
    # ------------------------------------------------------------------

    def validate_request(self, data: BookingCreate) -> dict[int, int]:
        """Checks that need no database. Returns add-on quantities keyed by item id."""
        if not data.seat_ids:
            raise BookingValidationError("At least one seat is required", field="seat_ids")
        if len(set(data.seat_ids)) != len(data.seat_ids):
            raise BookingValidationError("Duplicate seat ids in request", field="seat_ids")
        quantities: dict[int, int] = {}
        for item in data.add_on_items:
            if item.quantity <= 0:
                raise BookingValidationError(f"Quantity for add-on {item.add_on_item_id} must be positive",
                                             field="add_on_items")
            quantities[item.add_on_item_id] = quantities.get(item.add_on_item_id, 0) + item.quantity
        if data.notes is not None and len(data.notes) > 500:
            raise BookingValidationError("Notes must be at most 500 characters", field="notes")
        return quantities

    def validate_showtime(self, showtime: Showtime, now: datetime) -> None:
        if showtime.status == ShowtimeStatus.CANCELLED:
            logging.warning(f"showtime {showtime.id} is cancelled")
            raise ShowtimeNotAvailableError.cancelled(showtime.id)
        if showtime.status == ShowtimeStatus.SOLD_OUT:
            logging.warning(f"showtime {showtime.id} is sold out")
            raise ShowtimeNotAvailableError.sold_out(showtime.id)

        starts_at = as_utc(showtime.start_time)
        if starts_at <= now:
            logging.warning(f"showtime {showtime.id} already started at {starts_at}")
            raise ShowtimeNotAvailableError.already_started(showtime.id)
        remaining = starts_at - now
        if remaining < self.min_lead_time:
            minutes_remaining = int(remaining.total_seconds() // 60)
            logging.warning(f"showtime {showtime.id} starts in {minutes_remaining} minutes, "
                            f"minimum lead time is {self.min_lead_time}")
            raise ShowtimeNotAvailableError.too_close_to_start(
                showtime.id, minutes_remaining, int(self.min_lead_time.total_seconds() // 60))

    async def resolve_add_ons(self, db: AsyncSession, quantities: dict[int, int]) -> list[AddOnLine]:
        if not quantities:
            return []
        items = await crud_catalog.get_add_on_items_by_ids(db, quantities.keys())
        missing = sorted(set(quantities) - set(items))
        if missing:
            raise NotFoundError("AddOnItem", "ids", missing)
        lines = []
        for item_id, quantity in quantities.items():
            item = items[item_id]
            if not item.is_available:
                logging.warning(f"add-on {item.name} is not available")
                raise BookingValidationError(f"{item.name} is currently not available", field="add_on_items")
            lines.append(AddOnLine(item=item, quantity=quantity))
        return lines

    def discount_for(self, discount: Optional[Discount], total: Decimal, now: datetime) -> tuple[Decimal, Optional[str]]:
        """Returns (amount, reason it does not apply)."""
        if discount is None:
            return Decimal(0), "unknown discount code"
        if discount.status != DiscountStatus.ACTIVE:
            return Decimal(0), "discount code is not active"
        if discount.starts_at is not None and as_utc(discount.starts_at) > now:
            return Decimal(0), "discount code is not valid yet"
        if discount.expires_at is not None and as_utc(discount.expires_at) < now:
            return Decimal(0), "discount code has expired"
        if discount.usage_limit is not None and discount.usage_count >= discount.usage_limit:
            return Decimal(0), "discount code usage limit reached"
        if discount.min_purchase_amount is not None and total < Decimal(discount.min_purchase_amount):
            return Decimal(0), f"order total is below the minimum purchase of {discount.min_purchase_amount}"

        if discount.discount_type == DiscountType.PERCENTAGE:
            amount = (total * Decimal(discount.value) / Decimal(100)).quantize(self.pricing.minor_unit, rounding=ROUND_DOWN)
            if discount.max_discount_amount is not None:
                amount = min(amount, Decimal(discount.max_discount_amount))
        else:
            amount = Decimal(discount.value)
        return max(Decimal(0), min(amount, total)), None

    async def resolve_discount(self, db: AsyncSession, code: Optional[str], total: Decimal, now: datetime) -> Decimal:
        if code is None or not code.strip():
            return Decimal(0)
        discount = await crud_catalog.find_active_discount(db, code)
        amount, reason = self.discount_for(discount, total, now)
        if reason is not None:
            if self.strict_discount_codes:
                raise BookingValidationError(f"Discount code {code} cannot be applied: {reason}", field="discount_code")
            logging.info(f"discount code {code} ignored: {reason}")
        return amount

    def build_booking(self, user: User, showtime: Showtime, seat_prices: list[tuple[Seat, Decimal]],
                      add_on_lines: list[AddOnLine], discount_amount: Decimal, data: BookingCreate, now: datetime) -> Booking:
        """Assemble the whole aggregate in memory, nothing is flushed here."""
        seat_amount = sum((price for _, price in seat_prices), Decimal(0))
        add_on_amount = sum((line.total for line in add_on_lines), Decimal(0))
        total_amount = seat_amount + add_on_amount
        booking = Booking(
            booking_code=generate_booking_code(),
            user_id=user.id,
            showtime_id=showtime.id,
            status=BookingStatus.PENDING,
            seat_amount=seat_amount,
            add_on_amount=add_on_amount,
            total_amount=total_amount,
            discount_amount=discount_amount,
            final_amount=total_amount - discount_amount,
            number_of_seats=len(seat_prices),
            discount_code=data.discount_code.strip() if discount_amount and data.discount_code else None,
            notes=data.notes,
            created_at=now,
            updated_at=now,
        )
        booking.seats = [
            BookingSeat(showtime_id=showtime.id, seat_id=seat.id, price=price, created_at=now, updated_at=now)
            for seat, price in seat_prices
        ]
        booking.add_ons = [
            BookingAddOn(add_on_item_id=line.item.id, quantity=line.quantity, unit_price=line.item.price,
                         total_price=line.total, created_at=now, updated_at=now)
            for line in add_on_lines
        ]
        return booking

    # .1 resolve user and showtime, reject unavailable showtimes.
    # .2 lock the seats and check nobody holds them.
    # .3 price every seat, add-ons and discount.
    # .4 build the booking with its lines and commit it in one go.
    # .5 any exception rolls the whole attempt back.
    async def _create_once(self, db: AsyncSession, user_id: int, data: BookingCreate, add_on_quantities: dict[int, int]) -> int:
        if db.in_transaction():
            # isolation can only be set on a fresh connection; end the caller's read transaction
            await db.commit()
        await db.connection(execution_options={"isolation_level": self.isolation_level})
        try:
            now = self.clock.now()
            user = await crud_catalog.get_user(db, user_id)
            showtime = await crud_catalog.get_showtime(db, data.showtime_id)
            self.validate_showtime(showtime, now)

            seats = await self.seat_locks.lock_and_validate(db, showtime, data.seat_ids)
            logging.info(f"locked and validated {len(seats)} seats for showtime {showtime.id}")

            snapshot = await self.pricing.load_snapshot(db)
            seat_prices = [(seat, self.pricing.price(showtime, seat, snapshot, user)) for seat in seats]

            add_on_lines = await self.resolve_add_ons(db, add_on_quantities)
            total = sum((price for _, price in seat_prices), Decimal(0)) + sum((line.total for line in add_on_lines), Decimal(0))
            discount_amount = await self.resolve_discount(db, data.discount_code, total, now)

            booking = self.build_booking(user, showtime, seat_prices, add_on_lines, discount_amount, data, now)
            db.add(booking)
            await db.commit()
            logging.info(f"booking {booking.booking_code} created: seats={booking.seat_amount} "
                         f"add_ons={booking.add_on_amount} discount={booking.discount_amount} final={booking.final_amount}")
            return booking.id
        except Exception:
            await db.rollback()
            raise

    async def create_booking(self, db: AsyncSession, user_id: int, data: BookingCreate) -> Booking:
        add_on_quantities = self.validate_request(data)
        logging.info(f"creating booking for user {user_id}, showtime {data.showtime_id}, {len(data.seat_ids)} seats")
        for attempt in range(1, self.max_retries + 1):
            try:
                async with self.seat_locks.hold(data.showtime_id, data.seat_ids):
                    booking_id = await self._create_once(db, user_id, data, add_on_quantities)
                return await self.get_booking(db, booking_id)
            except IntegrityError as e:
                if not is_booking_code_collision(e):
                    logging.error(f"failed to create booking: {e}", exc_info=True)
                    raise
                # another booking already owns the generated code, the next attempt draws a new one
                logging.warning(f"booking code collision, attempt {attempt}/{self.max_retries}")
            except DBAPIError as e:
                if not is_retryable_db_error(e):
                    logging.error(f"failed to create booking: {e}", exc_info=True)
                    raise
                logging.warning(f"lock contention on showtime {data.showtime_id}, attempt {attempt}/{self.max_retries}: {e.orig}")
                await asyncio.sleep(0.05 * attempt)
        raise SeatLockConflictError(data.showtime_id, self.max_retries)

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    def _projection_query(self):
        return (select(Booking)
                .options(
                    selectinload(Booking.user),
                    selectinload(Booking.seats).selectinload(BookingSeat.seat),
                    selectinload(Booking.add_ons).selectinload(BookingAddOn.add_on_item),
                    selectinload(Booking.showtime).selectinload(Showtime.movie),
                    selectinload(Booking.showtime).selectinload(Showtime.room).selectinload(Room.theatre))
                .execution_options(populate_existing=True))

    async def get_booking(self, db: AsyncSession, booking_id: int) -> Booking:
        result = await db.execute(self._projection_query().where(Booking.id == booking_id))
        booking = result.scalar_one_or_none()
        if booking is None:
            raise NotFoundError("Booking", "id", booking_id)
        return booking

    async def get_booking_by_code(self, db: AsyncSession, booking_code: str) -> Booking:
        result = await db.execute(self._projection_query().where(Booking.booking_code == booking_code.strip().upper()))
        booking = result.scalar_one_or_none()
        if booking is None:
            raise NotFoundError("Booking", "code", booking_code)
        return booking

    async def list_user_bookings(self, db: AsyncSession, user_id: int) -> list[Booking]:
        result = await db.execute(
            self._projection_query()
            .where(Booking.user_id == user_id)
            .order_by(Booking.created_at.desc(), Booking.id.desc()))
        return list(result.scalars().all())


crud_booking = CRUDBooking()
