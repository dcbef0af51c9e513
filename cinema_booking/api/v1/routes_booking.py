import logging
from typing import Optional
from fastapi import APIRouter, Body, Depends, Header
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession
from cinema_booking.api.deps import get_current_user
from cinema_booking.core.idempotency import check_idempotency, save_idempotency
from cinema_booking.crud.booking import crud_booking
from cinema_booking.db.session import get_db_session
from cinema_booking.models import User
from cinema_booking.redis import get_redis
from cinema_booking.schemas.booking import (
    BookingCancelRequest, BookingConfirmRequest, BookingCreate, BookingResponse, ExpireHoldsResponse)
from cinema_booking.services.booking_state import booking_state_machine

router = APIRouter(
    prefix="/bookings",
    tags=["bookings"]
)


@router.post("", response_model=BookingResponse, status_code=201)
async def create_booking(
        data: BookingCreate,
        user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_session)):
    booking = await crud_booking.create_booking(db, user.id, data)
    return BookingResponse.from_booking(booking)


@router.get("/me", response_model=list[BookingResponse])
async def list_my_bookings(
        user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_session)):
    bookings = await crud_booking.list_user_bookings(db, user.id)
    return [BookingResponse.from_booking(booking) for booking in bookings]


@router.post("/expire-holds", response_model=ExpireHoldsResponse)
async def expire_holds(db: AsyncSession = Depends(get_db_session)):
    expired = await booking_state_machine.expire_stale_holds(db)
    return ExpireHoldsResponse(expired=expired)


@router.get("/code/{booking_code}", response_model=BookingResponse)
async def get_booking_by_code(booking_code: str, db: AsyncSession = Depends(get_db_session)):
    return BookingResponse.from_booking(await crud_booking.get_booking_by_code(db, booking_code))


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(booking_id: int, db: AsyncSession = Depends(get_db_session)):
    return BookingResponse.from_booking(await crud_booking.get_booking(db, booking_id))


@router.post("/{booking_id}/confirm", response_model=BookingResponse)
async def confirm_booking(
        booking_id: int,
        data: Optional[BookingConfirmRequest] = Body(None),
        idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
        db: AsyncSession = Depends(get_db_session),
        redis: Redis = Depends(get_redis)):
    scope = f"confirm:{booking_id}"
    if idempotency_key:
        cached = await check_idempotency(redis, scope, idempotency_key)
        if cached is not None:
            return cached

    payment_method = data.payment_method if data else None
    await booking_state_machine.confirm(db, booking_id, payment_method, idempotency_key)
    response = BookingResponse.from_booking(await crud_booking.get_booking(db, booking_id))

    if idempotency_key:
        await save_idempotency(redis, scope, idempotency_key, response.model_dump(mode="json"))
        logging.info(f"stored confirm response for booking {booking_id} under key {idempotency_key}")
    return response


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
        booking_id: int,
        data: Optional[BookingCancelRequest] = Body(None),
        user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_session)):
    await booking_state_machine.cancel(db, booking_id, user, data.reason if data else None)
    return BookingResponse.from_booking(await crud_booking.get_booking(db, booking_id))


@router.post("/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking(booking_id: int, db: AsyncSession = Depends(get_db_session)):
    await booking_state_machine.complete(db, booking_id)
    return BookingResponse.from_booking(await crud_booking.get_booking(db, booking_id))
