import asyncio
import logging
from sqlalchemy.ext.asyncio import async_sessionmaker
from cinema_booking.core.config import settings
from cinema_booking.db.session import async_session_factory
from cinema_booking.services.booking_state import BookingStateMachine, booking_state_machine


class ExpirationSweeper:
    """
    Periodically expires PENDING bookings whose hold elapsed, which is what
    gives their seats back: availability only counts active bookings.
    """

    def __init__(self, session_factory: async_sessionmaker = async_session_factory,
                 state_machine: BookingStateMachine = booking_state_machine,
                 interval_seconds: float = settings.SWEEP_INTERVAL_SECONDS):
        self.session_factory = session_factory
        self.state_machine = state_machine
        self.interval_seconds = interval_seconds

    async def sweep(self) -> int:
        async with self.session_factory() as db:
            return await self.state_machine.expire_stale_holds(db)

    async def run(self):
        logging.info(f"expiration sweeper started, interval {self.interval_seconds}s")
        while True:
            try:
                await self.sweep()
            except Exception as e:
                # keep sweeping, the next run picks up whatever this one missed
                logging.error(f"failed to expire pending bookings: {e}", exc_info=True)
            await asyncio.sleep(self.interval_seconds)


expiration_sweeper = ExpirationSweeper()
