import asyncio
import logging
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

from cinema_booking.db.session import async_session_factory, init_db
from cinema_booking.models import (
    AddOnItem,
    CustomerType,
    Discount,
    DiscountType,
    Movie,
    PricingRule,
    Room,
    RoomType,
    Seat,
    SeatCategory,
    SeatType,
    Showtime,
    Theatre,
    User,
)


async def seed():
    async with async_session_factory() as session:

        # ------------------------------------------------------------------------------------
        # 1. Create Theatre and Rooms
        # ------------------------------------------------------------------------------------
        theatre = Theatre(
            name="Galaxy Cinema - Nguyen Du",
            city="Ho Chi Minh City",
            address="116 Nguyen Du, District 1",
        )
        session.add(theatre)
        await session.flush()  # get theatre.id

        room1 = Room(theatre_id=theatre.id, name="Room 1", room_type=RoomType.STANDARD_2D)
        room2 = Room(theatre_id=theatre.id, name="IMAX", room_type=RoomType.IMAX)
        session.add_all([room1, room2])
        await session.flush()

        # ------------------------------------------------------------------------------------
        # 2. Seats (5 rows x 10 seats per room) and seat categories
        # ------------------------------------------------------------------------------------
        seats = []
        for room in (room1, room2):
            for row in ["A", "B", "C", "D", "E"]:
                for num in range(1, 11):
                    seat_type = (
                        SeatType.COUPLE if row == "E" else
                        SeatType.VIP if row in ["C", "D"] else
                        SeatType.STANDARD
                    )
                    seats.append(Seat(room_id=room.id, row_label=row, seat_number=num, seat_type=seat_type))
        session.add_all(seats)

        session.add_all([
            SeatCategory(seat_type=SeatType.STANDARD, name="Standard", price_multiplier=Decimal("1.00")),
            SeatCategory(seat_type=SeatType.VIP, name="VIP", price_multiplier=Decimal("1.20"),
                         extra_fee=Decimal("10000")),
            SeatCategory(seat_type=SeatType.COUPLE, name="Sweetbox", price_multiplier=Decimal("2.00")),
            SeatCategory(seat_type=SeatType.DISABLED, name="Accessible", price_multiplier=Decimal("0.80")),
        ])

        # ------------------------------------------------------------------------------------
        # 3. Movies and Showtimes
        # ------------------------------------------------------------------------------------
        movie1 = Movie(title="Interstellar", description="A group of explorers travel through a wormhole in space.",
                       duration_mins=169, language="English")
        movie2 = Movie(title="Dune: Part Two", description="Paul Atreides unites with the Fremen.",
                       duration_mins=166, language="English")
        session.add_all([movie1, movie2])
        await session.flush()

        now = datetime.now(timezone.utc)
        session.add_all([
            Showtime(movie_id=movie1.id, room_id=room1.id, start_time=now + timedelta(hours=2),
                     end_time=now + timedelta(hours=2, minutes=169), base_price=Decimal("85000")),
            Showtime(movie_id=movie1.id, room_id=room1.id, start_time=now + timedelta(hours=5),
                     end_time=now + timedelta(hours=5, minutes=169), base_price=Decimal("95000")),
            Showtime(movie_id=movie2.id, room_id=room2.id, start_time=now + timedelta(hours=3),
                     end_time=now + timedelta(hours=3, minutes=166), base_price=Decimal("150000")),
        ])

        # ------------------------------------------------------------------------------------
        # 4. Pricing rules
        # ------------------------------------------------------------------------------------
        session.add_all([
            PricingRule(name="Weekend evening", base_price=Decimal("110000"), priority=10,
                        days_of_week="SATURDAY,SUNDAY", start_time=time(17, 0), end_time=time(23, 59)),
            PricingRule(name="Happy hour", base_price=Decimal("60000"), priority=5,
                        start_time=time(10, 0), end_time=time(12, 0)),
            PricingRule(name="Student", base_price=Decimal("55000"), priority=20, customer_type=CustomerType.U22,
                        room_type=RoomType.STANDARD_2D),
            PricingRule(name="IMAX", base_price=Decimal("160000"), priority=1, room_type=RoomType.IMAX),
        ])

        # ------------------------------------------------------------------------------------
        # 5. Users, add-ons and discounts
        # ------------------------------------------------------------------------------------
        session.add_all([
            User(email="alice@example.com", full_name="Alice Nguyen", date_of_birth=date(1990, 5, 17)),
            User(email="bao@example.com", full_name="Bao Tran", date_of_birth=date(2006, 1, 3)),
        ])
        session.add_all([
            AddOnItem(name="Popcorn (L)", category="FOOD", price=Decimal("45000")),
            AddOnItem(name="Coke (M)", category="DRINK", price=Decimal("25000")),
            AddOnItem(name="Combo 1", category="COMBO", price=Decimal("79000")),
        ])
        session.add_all([
            Discount(code="WELCOME10", discount_type=DiscountType.PERCENTAGE, value=Decimal("10"),
                     max_discount_amount=Decimal("50000")),
            Discount(code="MINUS20K", discount_type=DiscountType.FIXED_AMOUNT, value=Decimal("20000"),
                     min_purchase_amount=Decimal("100000"), usage_limit=100),
        ])

        # ------------------------------------------------------------------------------------
        # 6. Commit everything
        # ------------------------------------------------------------------------------------
        await session.commit()
        logging.info("seed data created")


async def main():
    # ensure tables exist (dev only)
    await init_db()
    await seed()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
