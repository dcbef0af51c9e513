import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import ROUND_DOWN, Decimal
from typing import Optional
from zoneinfo import ZoneInfo
from sqlalchemy.ext.asyncio import AsyncSession
from cinema_booking.core.clock import as_utc
from cinema_booking.core.config import settings
from cinema_booking.core.exceptions import BookingValidationError, NotFoundError
from cinema_booking.crud.catalog import crud_catalog
from cinema_booking.models import CustomerType, PricingRule, RoomType, Seat, SeatCategory, SeatType, Showtime, User

DAY_NAMES = ("MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY", "SATURDAY", "SUNDAY")
ALL_DAYS = "ALL"


@dataclass
class PricingSnapshot:
    """Active rules (priority desc) and seat categories, read once per booking attempt."""
    rules: list[PricingRule] = field(default_factory=list)
    categories: dict[SeatType, SeatCategory] = field(default_factory=dict)


def parse_days(days_of_week: Optional[str]) -> Optional[set[str]]:
    """None means every day."""
    if days_of_week is None or days_of_week.strip().upper() in ("", ALL_DAYS):
        return None
    return {day.strip().upper() for day in days_of_week.split(",") if day.strip()}


def in_time_window(value: time, start: Optional[time], end: Optional[time]) -> bool:
    if start is None and end is None:
        return True
    if start is None:
        return value < end
    if end is None:
        return value >= start
    if start <= end:
        return start <= value < end
    # window wraps past midnight, e.g. 22:00 - 02:00
    return value >= start or value < end


def age_on(date_of_birth: date, on: date) -> int:
    years = on.year - date_of_birth.year
    if (on.month, on.day) < (date_of_birth.month, date_of_birth.day):
        years -= 1
    return years


def derive_customer_type(user: Optional[User], on: date) -> CustomerType:
    if user is None:
        return CustomerType.ADULT
    if user.date_of_birth is not None:
        age = age_on(user.date_of_birth, on)
        if age <= 22:
            return CustomerType.U22
        if age >= 60:
            return CustomerType.SENIOR
    return CustomerType.MEMBER


class PricingService:
    def __init__(self, currency_decimals: int = settings.CURRENCY_DECIMALS, timezone_name: str = settings.CINEMA_TIMEZONE):
        self.minor_unit = Decimal(1).scaleb(-currency_decimals)
        self.timezone = ZoneInfo(timezone_name)

    async def load_snapshot(self, db: AsyncSession) -> PricingSnapshot:
        rules = await crud_catalog.get_active_pricing_rules(db)
        categories = await crud_catalog.get_seat_categories(db)
        return PricingSnapshot(rules=rules, categories=categories)

    def local_start(self, showtime: Showtime) -> datetime:
        return as_utc(showtime.start_time).astimezone(self.timezone)

    def rule_matches(self, rule: PricingRule, room_type: RoomType, starts_at: datetime, customer_type: CustomerType) -> bool:
        if rule.room_type is not None and rule.room_type != room_type:
            return False
        days = parse_days(rule.days_of_week)
        if days is not None and DAY_NAMES[starts_at.weekday()] not in days:
            return False
        if not in_time_window(starts_at.time().replace(tzinfo=None), rule.start_time, rule.end_time):
            return False
        if rule.customer_type is not None and rule.customer_type != customer_type:
            return False
        return True

    def find_rule(self, showtime: Showtime, rules: list[PricingRule], customer_type: CustomerType) -> Optional[PricingRule]:
        starts_at = self.local_start(showtime)
        room_type = showtime.room.room_type
        # rules arrive ordered by priority, first match wins
        for rule in rules:
            if rule.active and self.rule_matches(rule, room_type, starts_at, customer_type):
                return rule
        return None

    def price(self, showtime: Showtime, seat: Seat, snapshot: PricingSnapshot, customer: Optional[User] = None) -> Decimal:
        customer_type = derive_customer_type(customer, self.local_start(showtime).date())
        rule = self.find_rule(showtime, snapshot.rules, customer_type)
        base_price = Decimal(rule.base_price) if rule is not None else Decimal(showtime.base_price)

        category = snapshot.categories.get(seat.seat_type)
        if category is not None:
            multiplier = Decimal(category.price_multiplier)
            extra_fee = Decimal(category.extra_fee)
        else:
            multiplier = Decimal(seat.price_multiplier if seat.price_multiplier is not None else 1)
            extra_fee = Decimal(0)

        amount = (base_price * multiplier).quantize(self.minor_unit, rounding=ROUND_DOWN) + extra_fee
        logging.debug(f"seat {seat.label} showtime {showtime.id}: rule={rule.name if rule else None} "
                      f"base={base_price} multiplier={multiplier} fee={extra_fee} price={amount}")
        return amount.quantize(self.minor_unit, rounding=ROUND_DOWN)

    async def quote(self, db: AsyncSession, showtime_id: int, seat_ids: list[int], customer: Optional[User] = None) -> dict:
        """Price seats without reserving them."""
        if not seat_ids:
            raise BookingValidationError("At least one seat is required", field="seat_ids")
        showtime = await crud_catalog.get_showtime(db, showtime_id)
        seats = await crud_catalog.get_seats_by_ids(db, set(seat_ids))
        found = {seat.id for seat in seats}
        missing = sorted(set(seat_ids) - found)
        if missing:
            raise NotFoundError("Seat", "ids", missing)
        snapshot = await self.load_snapshot(db)
        lines = []
        total = Decimal(0)
        for seat in seats:
            if seat.room_id != showtime.room_id:
                raise BookingValidationError(f"Seat {seat.label} does not belong to this showtime's room", field="seat_ids")
            if not seat.active:
                raise BookingValidationError(f"Seat {seat.label} is not available", field="seat_ids")
            amount = self.price(showtime, seat, snapshot, customer)
            total += amount
            lines.append({"seat_id": seat.id, "seat_label": seat.label, "seat_type": seat.seat_type, "price": amount})
        return {"showtime_id": showtime.id, "seats": lines, "total_price": total}


pricing_service = PricingService()
