from datetime import date, datetime, time, timezone
from decimal import Decimal
import pytest
from cinema_booking.core.exceptions import BookingValidationError
from cinema_booking.models import (
    CustomerType, PricingRule, Room, RoomType, Seat, SeatCategory, SeatType, Showtime, User)
from cinema_booking.services.pricing import (
    PricingService, PricingSnapshot, derive_customer_type, in_time_window, parse_days)

# 2026-03-04 is a Wednesday
WEDNESDAY_EVENING = datetime(2026, 3, 4, 19, 30, tzinfo=timezone.utc)


def make_showtime(start_time=WEDNESDAY_EVENING, room_type=RoomType.STANDARD_2D, base_price="85000"):
    return Showtime(id=1, start_time=start_time, base_price=Decimal(base_price), room=Room(room_type=room_type))


def make_seat(seat_type=SeatType.STANDARD, multiplier="1.00"):
    return Seat(id=1, row_label="A", seat_number=1, seat_type=seat_type, price_multiplier=Decimal(multiplier))


def make_rule(name, base_price, priority=0, **kwargs):
    kwargs.setdefault("days_of_week", "ALL")
    return PricingRule(name=name, base_price=Decimal(base_price), priority=priority, active=True, **kwargs)


@pytest.fixture
def service():
    return PricingService(currency_decimals=2, timezone_name="UTC")


def test_falls_back_to_showtime_base_price(service):
    price = service.price(make_showtime(), make_seat(), PricingSnapshot())
    assert price == Decimal("85000.00")


def test_highest_priority_matching_rule_wins(service):
    rules = [
        make_rule("Evening", "95000", priority=10, start_time=time(17, 0), end_time=time(23, 0)),
        make_rule("Everyday", "70000", priority=1),
    ]
    assert service.price(make_showtime(), make_seat(), PricingSnapshot(rules=rules)) == Decimal("95000.00")


def test_non_matching_rules_are_skipped(service):
    rules = [
        make_rule("IMAX only", "160000", priority=30, room_type=RoomType.IMAX),
        make_rule("Weekend", "110000", priority=20, days_of_week="SATURDAY,SUNDAY"),
        make_rule("Morning", "60000", priority=10, start_time=time(9, 0), end_time=time(12, 0)),
        make_rule("Wildcard", "75000", priority=0),
    ]
    assert service.price(make_showtime(), make_seat(), PricingSnapshot(rules=rules)) == Decimal("75000.00")


def test_pricing_is_deterministic(service):
    rules = [make_rule("Evening", "95000", priority=5), make_rule("Also evening", "99000", priority=5)]
    snapshot = PricingSnapshot(rules=rules)
    showtime, seat = make_showtime(), make_seat(SeatType.VIP, "1.15")
    prices = {service.price(showtime, seat, snapshot) for _ in range(20)}
    assert prices == {Decimal("109250.00")}


def test_time_window_is_start_inclusive_end_exclusive(service):
    rules = [make_rule("Happy hour", "60000", priority=5, start_time=time(10, 0), end_time=time(12, 0))]
    snapshot = PricingSnapshot(rules=rules)
    at_start = make_showtime(datetime(2026, 3, 4, 10, 0, tzinfo=timezone.utc))
    at_end = make_showtime(datetime(2026, 3, 4, 12, 0, tzinfo=timezone.utc))
    assert service.price(at_start, make_seat(), snapshot) == Decimal("60000.00")
    assert service.price(at_end, make_seat(), snapshot) == Decimal("85000.00")


def test_time_window_wraps_past_midnight():
    assert in_time_window(time(1, 0), time(22, 0), time(2, 0))
    assert in_time_window(time(22, 0), time(22, 0), time(2, 0))
    assert not in_time_window(time(2, 0), time(22, 0), time(2, 0))
    assert not in_time_window(time(12, 0), time(22, 0), time(2, 0))
    assert in_time_window(time(12, 0), None, None)


def test_parse_days():
    assert parse_days("ALL") is None
    assert parse_days(None) is None
    assert parse_days("saturday, Sunday") == {"SATURDAY", "SUNDAY"}


def test_rule_days_use_cinema_timezone():
    # 2026-03-07 23:30 UTC is already Sunday in Ho Chi Minh City
    service = PricingService(currency_decimals=2, timezone_name="Asia/Ho_Chi_Minh")
    rules = [make_rule("Sunday", "50000", priority=1, days_of_week="SUNDAY")]
    showtime = make_showtime(datetime(2026, 3, 7, 23, 30, tzinfo=timezone.utc))
    assert service.price(showtime, make_seat(), PricingSnapshot(rules=rules)) == Decimal("50000.00")


def test_multiplier_result_is_truncated_to_minor_unit(service):
    showtime = make_showtime(base_price="99999.99")
    assert service.price(showtime, make_seat(multiplier="1.15"), PricingSnapshot()) == Decimal("114999.98")


def test_seat_category_overrides_seat_multiplier_and_adds_fee(service):
    categories = {
        SeatType.VIP: SeatCategory(seat_type=SeatType.VIP, name="VIP", price_multiplier=Decimal("1.20"),
                                   extra_fee=Decimal("10000")),
    }
    price = service.price(make_showtime(), make_seat(SeatType.VIP, "1.50"), PricingSnapshot(categories=categories))
    assert price == Decimal("112000.00")


def test_customer_type_rule_only_applies_to_that_customer(service):
    rules = [
        make_rule("Student", "55000", priority=20, customer_type=CustomerType.U22),
        make_rule("Everyone", "80000", priority=0),
    ]
    snapshot = PricingSnapshot(rules=rules)
    student = User(email="s@example.com", full_name="Student", date_of_birth=date(2005, 6, 1))
    adult = User(email="a@example.com", full_name="Adult", date_of_birth=date(1980, 6, 1))
    assert service.price(make_showtime(), make_seat(), snapshot, student) == Decimal("55000.00")
    assert service.price(make_showtime(), make_seat(), snapshot, adult) == Decimal("80000.00")
    assert service.price(make_showtime(), make_seat(), snapshot) == Decimal("80000.00")


def test_derive_customer_type():
    on = date(2026, 3, 4)
    assert derive_customer_type(None, on) == CustomerType.ADULT
    assert derive_customer_type(User(date_of_birth=None), on) == CustomerType.MEMBER
    assert derive_customer_type(User(date_of_birth=date(2004, 3, 4)), on) == CustomerType.U22
    assert derive_customer_type(User(date_of_birth=date(2003, 3, 4)), on) == CustomerType.MEMBER
    assert derive_customer_type(User(date_of_birth=date(1966, 3, 4)), on) == CustomerType.SENIOR


async def test_quote_uses_rules_from_database(db_session, seeded_test_data, pricing):
    db_session.add_all([
        make_rule("Late", "99000", priority=5),
        make_rule("Early", "95000", priority=5),
    ])
    await db_session.commit()

    seat_ids = [seeded_test_data["seat_ids"]["A1"], seeded_test_data["seat_ids"]["A2"]]
    quote = await pricing.quote(db_session, seeded_test_data["showtime_id"], seat_ids)

    # equal priority, the rule created first wins
    assert [line["price"] for line in quote["seats"]] == [Decimal("99000.00"), Decimal("99000.00")]
    assert quote["total_price"] == Decimal("198000.00")


async def test_quote_rejects_inactive_seat(db_session, seeded_test_data, pricing):
    seat_ids = [seeded_test_data["seat_ids"]["A1"], seeded_test_data["inactive_seat_id"]]
    with pytest.raises(BookingValidationError) as exc_info:
        await pricing.quote(db_session, seeded_test_data["showtime_id"], seat_ids)
    assert exc_info.value.details["field"] == "seat_ids"
    assert "C1" in exc_info.value.message
