from typing import Iterable, Optional
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.sql import select
from cinema_booking.core.exceptions import NotFoundError
from cinema_booking.models import AddOnItem, Discount, PricingRule, Room, Seat, SeatCategory, Showtime, User


class CRUDCatalog:
    """
    Read side of the catalog (showtimes, seats, users, add-ons, discounts, pricing).
    Catalog maintenance lives in another service; the booking core only reads it.
    """

    async def get_showtime(self, db: AsyncSession, showtime_id: int) -> Showtime:
        result = await db.execute(
            select(Showtime)
            .where(Showtime.id == showtime_id)
            .options(
                selectinload(Showtime.room).selectinload(Room.theatre),
                selectinload(Showtime.movie))
        )
        showtime = result.scalar_one_or_none()
        if showtime is None:
            raise NotFoundError("Showtime", "id", showtime_id)
        return showtime

    async def get_seats_by_ids(self, db: AsyncSession, seat_ids: Iterable[int], lock: bool = False) -> list[Seat]:
        stmt = select(Seat).where(Seat.id.in_(list(seat_ids))).order_by(Seat.id)
        if lock:
            # always lock in id order so two overlapping requests cannot deadlock
            stmt = stmt.with_for_update()
        result = await db.scalars(stmt)
        return list(result.all())

    async def get_room_seats(self, db: AsyncSession, room_id: int) -> list[Seat]:
        result = await db.scalars(
            select(Seat)
            .where(Seat.room_id == room_id)
            .order_by(Seat.row_label, Seat.seat_number))
        return list(result.all())

    async def get_add_on_items_by_ids(self, db: AsyncSession, item_ids: Iterable[int]) -> dict[int, AddOnItem]:
        result = await db.scalars(select(AddOnItem).where(AddOnItem.id.in_(list(item_ids))))
        return {item.id: item for item in result.all()}

    async def get_user(self, db: AsyncSession, user_id: int) -> User:
        user = await db.get(User, user_id)
        if user is None:
            raise NotFoundError("User", "id", user_id)
        return user

    async def get_user_by_identity(self, db: AsyncSession, identity: str) -> User:
        result = await db.execute(select(User).where(func.lower(User.email) == identity.strip().lower()))
        user = result.scalar_one_or_none()
        if user is None or not user.active:
            raise NotFoundError("User", "email", identity)
        return user

    async def find_active_discount(self, db: AsyncSession, code: str) -> Optional[Discount]:
        # status and validity window are checked by the caller against its own clock
        result = await db.execute(select(Discount).where(Discount.code == code.strip()))
        return result.scalar_one_or_none()

    async def get_active_pricing_rules(self, db: AsyncSession) -> list[PricingRule]:
        result = await db.scalars(
            select(PricingRule)
            .where(PricingRule.active.is_(True))
            .order_by(PricingRule.priority.desc(), PricingRule.id.asc()))
        return list(result.all())

    async def get_seat_categories(self, db: AsyncSession) -> dict:
        result = await db.scalars(select(SeatCategory).where(SeatCategory.active.is_(True)))
        return {category.seat_type: category for category in result.all()}


crud_catalog = CRUDCatalog()
