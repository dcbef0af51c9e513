from collections import defaultdict
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from cinema_booking.crud.catalog import crud_catalog
from cinema_booking.models import User
from cinema_booking.services.pricing import PricingService, pricing_service
from cinema_booking.services.seat_lock import SeatLockService, seat_lock_service


class CRUDShowtime:
    def __init__(self, pricing: PricingService = pricing_service, seat_locks: SeatLockService = seat_lock_service):
        self.pricing = pricing
        self.seat_locks = seat_locks

    async def get_reserved_seat_ids(self, db: AsyncSession, showtime_id: int) -> list[int]:
        # raises NotFoundError for unknown showtimes
        await crud_catalog.get_showtime(db, showtime_id)
        return await self.seat_locks.get_reserved_seat_ids(db, showtime_id)

    async def get_seat_map(self, db: AsyncSession, showtime_id: int, customer: Optional[User] = None):
        showtime = await crud_catalog.get_showtime(db, showtime_id)
        seats = await crud_catalog.get_room_seats(db, showtime.room_id)
        # availability is derived from active reservation lines, never stored
        reserved_ids = set(await self.seat_locks.get_reserved_seat_ids(db, showtime_id))
        snapshot = await self.pricing.load_snapshot(db)

        layout = defaultdict(lambda: {
            "row": None,
            "seats": []
        })
        for seat in seats:
            if not seat.active:
                status = "INACTIVE"
            elif seat.id in reserved_ids:
                status = "RESERVED"
            else:
                status = "AVAILABLE"
            layout[seat.row_label]["row"] = seat.row_label
            layout[seat.row_label]["seats"].append({
                "id": seat.id,
                "seat_number": seat.seat_number,
                "label": seat.label,
                "seat_type": seat.seat_type,
                "status": status,
                "price": self.pricing.price(showtime, seat, snapshot, customer) if seat.active else None,
            })

        return {
            "showtime_id": showtime_id,
            "layout": list(layout.values())
        }


crud_showtime = CRUDShowtime()
