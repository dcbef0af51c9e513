from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from cinema_booking.api.deps import get_optional_user
from cinema_booking.crud.showtime import crud_showtime
from cinema_booking.db.session import get_db_session
from cinema_booking.models import User
from cinema_booking.schemas.showtime import PriceQuoteRequest, PriceQuoteResponse, ReservedSeatsResponse, SeatMapResponse
from cinema_booking.services.pricing import pricing_service


router = APIRouter(
    prefix="/showtimes",
    tags=["showtimes"]
)


@router.get("/{showtime_id}/reserved-seats", response_model=ReservedSeatsResponse)
async def get_reserved_seats(showtime_id: int, db: AsyncSession = Depends(get_db_session)):
    seat_ids = await crud_showtime.get_reserved_seat_ids(db, showtime_id)
    return ReservedSeatsResponse(showtime_id=showtime_id, seat_ids=seat_ids)


@router.get("/{showtime_id}/seat-map", response_model=SeatMapResponse)
async def get_seat_map(
        showtime_id: int,
        user: Optional[User] = Depends(get_optional_user),
        db: AsyncSession = Depends(get_db_session)):
    return await crud_showtime.get_seat_map(db, showtime_id, user)


@router.post("/{showtime_id}/price-quote", response_model=PriceQuoteResponse)
async def get_price_quote(
        showtime_id: int,
        data: PriceQuoteRequest,
        user: Optional[User] = Depends(get_optional_user),
        db: AsyncSession = Depends(get_db_session)):
    return await pricing_service.quote(db, showtime_id, data.seat_ids, user)
