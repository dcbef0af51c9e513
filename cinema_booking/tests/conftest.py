import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from cinema_booking.core.config import settings
from cinema_booking.crud.booking import CRUDBooking
from cinema_booking.db.base import Base
from cinema_booking.db.session import engine_options
from cinema_booking.models import (
    AddOnItem, Discount, DiscountStatus, DiscountType, Movie, Room, RoomType, Seat, Showtime, ShowtimeStatus,
    Theatre, User)
from cinema_booking.services.booking_state import BookingStateMachine
from cinema_booking.services.payment import PaymentService
from cinema_booking.services.pricing import PricingService
from cinema_booking.services.seat_lock import SeatLockService


class FrozenClock:
    """Clock that only moves when a test says so."""

    def __init__(self, current: datetime):
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


@pytest.fixture
async def db_engine(tmp_path):
    """
    File backed sqlite so concurrent sessions really use separate connections.
    Function-scoped to ensure it's created in the same event loop as the test.
    """
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'cinema_test.db'}"
    engine = create_async_engine(database_url, echo=False, **engine_options(database_url))

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def db_session_factory(db_engine):
    """Factory to create multiple sessions for concurrent tests."""
    return async_sessionmaker(
        bind=db_engine,
        expire_on_commit=False,
        autoflush=False
    )


@pytest.fixture
async def db_session(db_session_factory):
    async with db_session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def clock():
    # real time, so data seeded here also works for the HTTP layer which uses the system clock
    return FrozenClock(datetime.now(timezone.utc).replace(microsecond=0))


@pytest.fixture
def pricing():
    return PricingService(currency_decimals=2, timezone_name="UTC")


@pytest.fixture
def seat_locks():
    return SeatLockService()


@pytest.fixture
def booking_crud(clock, pricing, seat_locks):
    return CRUDBooking(
        clock=clock,
        pricing=pricing,
        seat_locks=seat_locks,
        min_lead_time=timedelta(minutes=30),
        max_retries=5,
        isolation_level="SERIALIZABLE",
        strict_discount_codes=False,
    )


@pytest.fixture
def state_machine(clock):
    return BookingStateMachine(
        clock=clock,
        hold_duration=timedelta(minutes=5),
        payments=PaymentService(["CARD", "E_WALLET", "CASH"]),
    )


@pytest.fixture
async def seeded_test_data(db_session_factory, clock):
    """Seed one showtime in a 2D room with seats A1-A5 and B1-B5, and return the ids tests need."""
    async with db_session_factory() as session:
        theatre = Theatre(name="Test Theatre", city="Test City", address="Test Address")
        session.add(theatre)
        await session.flush()

        room = Room(theatre_id=theatre.id, name="Room 1", room_type=RoomType.STANDARD_2D)
        other_room = Room(theatre_id=theatre.id, name="Room 2", room_type=RoomType.IMAX)
        session.add_all([room, other_room])
        await session.flush()

        seats = {}
        for row in ["A", "B"]:
            for num in range(1, 6):
                seat = Seat(room_id=room.id, row_label=row, seat_number=num)
                seats[seat.label] = seat
                session.add(seat)
        inactive_seat = Seat(room_id=room.id, row_label="C", seat_number=1, active=False)
        other_room_seat = Seat(room_id=other_room.id, row_label="A", seat_number=1)
        session.add_all([inactive_seat, other_room_seat])

        movie = Movie(title="Test Movie", description="A test movie for testing", duration_mins=120,
                      language="English")
        session.add(movie)
        await session.flush()

        now = clock.now()
        showtime = Showtime(
            movie_id=movie.id,
            room_id=room.id,
            start_time=now + timedelta(hours=2),
            end_time=now + timedelta(hours=4),
            base_price=Decimal("85000"),
        )
        session.add(showtime)

        alice = User(email="alice@example.com", full_name="Alice Nguyen", date_of_birth=date(1990, 5, 17))
        bob = User(email="bob@example.com", full_name="Bob Tran")
        session.add_all([alice, bob])

        popcorn = AddOnItem(name="Popcorn", category="FOOD", price=Decimal("45000"))
        cola = AddOnItem(name="Cola", category="DRINK", price=Decimal("25000"))
        nachos = AddOnItem(name="Nachos", category="FOOD", price=Decimal("50000"), is_available=False)
        session.add_all([popcorn, cola, nachos])

        session.add_all([
            Discount(code="PERCENT10", discount_type=DiscountType.PERCENTAGE, value=Decimal("10"),
                     max_discount_amount=Decimal("50000")),
            Discount(code="FIXED20K", discount_type=DiscountType.FIXED_AMOUNT, value=Decimal("20000"),
                     min_purchase_amount=Decimal("100000")),
            Discount(code="OLDCODE", discount_type=DiscountType.FIXED_AMOUNT, value=Decimal("20000"),
                     status=DiscountStatus.EXPIRED),
        ])
        await session.commit()

        yield {
            "theatre_id": theatre.id,
            "room_id": room.id,
            "movie_id": movie.id,
            "showtime_id": showtime.id,
            "seat_ids": {label: seat.id for label, seat in seats.items()},
            "inactive_seat_id": inactive_seat.id,
            "other_room_seat_id": other_room_seat.id,
            "user_id": alice.id,
            "other_user_id": bob.id,
            "popcorn_id": popcorn.id,
            "cola_id": cola.id,
            "nachos_id": nachos.id,
        }


@pytest.fixture
def make_showtime(db_session_factory, seeded_test_data):
    """Add another showtime in the seeded room."""

    async def _make(start_time: datetime, status: ShowtimeStatus = ShowtimeStatus.AVAILABLE) -> int:
        async with db_session_factory() as session:
            showtime = Showtime(
                movie_id=seeded_test_data["movie_id"],
                room_id=seeded_test_data["room_id"],
                start_time=start_time,
                end_time=start_time + timedelta(hours=2),
                base_price=Decimal("85000"),
                status=status,
            )
            session.add(showtime)
            await session.commit()
            return showtime.id

    return _make


@pytest.fixture
async def redis_client():
    """Real Redis for idempotency tests, skipped when none is reachable."""
    redis = Redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_connect_timeout=2
    )
    try:
        await redis.ping()
    except (RedisConnectionError, OSError):
        await redis.aclose()
        pytest.skip("redis is not available")
    try:
        yield redis
    finally:
        keys = await redis.keys("idempotency:*")
        if keys:
            await redis.delete(*keys)
        await redis.aclose()
