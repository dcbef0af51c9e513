import asyncio
from cinema_booking.models import BookingStatus
from cinema_booking.schemas.booking import BookingCreate
from cinema_booking.workers.expiration_sweeper import ExpirationSweeper


def booking_request(seeded_test_data, *labels):
    return BookingCreate(showtime_id=seeded_test_data["showtime_id"],
                         seat_ids=[seeded_test_data["seat_ids"][label] for label in labels])


async def test_sweep_expires_stale_holds_once(db_session, db_session_factory, seeded_test_data, booking_crud,
                                              state_machine, clock):
    first = await booking_crud.create_booking(db_session, seeded_test_data["user_id"],
                                              booking_request(seeded_test_data, "A1"))
    second = await booking_crud.create_booking(db_session, seeded_test_data["user_id"],
                                               booking_request(seeded_test_data, "A2"))
    sweeper = ExpirationSweeper(db_session_factory, state_machine, interval_seconds=1)

    clock.advance(minutes=4)
    assert await sweeper.sweep() == 0

    clock.advance(minutes=2)
    assert await sweeper.sweep() == 2
    assert await sweeper.sweep() == 0

    for booking_id in (first.id, second.id):
        booking = await booking_crud.get_booking(db_session, booking_id)
        assert booking.status == BookingStatus.EXPIRED


async def test_confirmed_booking_is_not_expired(db_session, seeded_test_data, booking_crud, state_machine, clock):
    kept = await booking_crud.create_booking(db_session, seeded_test_data["user_id"],
                                             booking_request(seeded_test_data, "A1"))
    dropped = await booking_crud.create_booking(db_session, seeded_test_data["user_id"],
                                                booking_request(seeded_test_data, "A2"))

    clock.advance(minutes=1)
    await state_machine.confirm(db_session, kept.id, "CARD")
    clock.advance(minutes=5)

    assert await state_machine.expire_stale_holds(db_session) == 1
    assert (await booking_crud.get_booking(db_session, kept.id)).status == BookingStatus.CONFIRMED
    assert (await booking_crud.get_booking(db_session, dropped.id)).status == BookingStatus.EXPIRED


async def test_expired_seats_can_be_booked_again(db_session, seeded_test_data, booking_crud, state_machine, clock,
                                                 seat_locks):
    await booking_crud.create_booking(db_session, seeded_test_data["user_id"],
                                      booking_request(seeded_test_data, "A1", "A2"))
    clock.advance(minutes=6)
    assert await state_machine.expire_stale_holds(db_session) == 1
    assert await seat_locks.get_reserved_seat_ids(db_session, seeded_test_data["showtime_id"]) == []

    rebooked = await booking_crud.create_booking(db_session, seeded_test_data["other_user_id"],
                                                 booking_request(seeded_test_data, "A2", "A3"))
    assert rebooked.status == BookingStatus.PENDING
    assert [line.seat.label for line in rebooked.seats] == ["A2", "A3"]


async def test_concurrent_sweeps_expire_each_hold_once(db_session, db_session_factory, seeded_test_data, booking_crud,
                                                       state_machine, clock):
    for label in ("A1", "A2", "A3"):
        await booking_crud.create_booking(db_session, seeded_test_data["user_id"], booking_request(seeded_test_data, label))
    sweepers = [ExpirationSweeper(db_session_factory, state_machine, interval_seconds=1) for _ in range(4)]

    clock.advance(minutes=6)
    results = await asyncio.gather(*(sweeper.sweep() for sweeper in sweepers))

    assert sum(results) == 3
    assert await state_machine.expire_stale_holds(db_session) == 0


async def test_sweep_racing_confirm_inside_hold(db_session, db_session_factory, seeded_test_data, booking_crud,
                                                state_machine, clock):
    booking = await booking_crud.create_booking(db_session, seeded_test_data["user_id"],
                                                booking_request(seeded_test_data, "A1"))
    booking_id = booking.id
    sweeper = ExpirationSweeper(db_session_factory, state_machine, interval_seconds=1)

    async def confirm():
        async with db_session_factory() as session:
            await state_machine.confirm(session, booking_id, "CARD")

    clock.advance(minutes=2)
    swept, _ = await asyncio.gather(sweeper.sweep(), confirm())

    assert swept == 0
    confirmed = await booking_crud.get_booking(db_session, booking_id)
    assert confirmed.status == BookingStatus.CONFIRMED
