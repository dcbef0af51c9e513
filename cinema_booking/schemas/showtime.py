from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field
from cinema_booking.models.seat import SeatType


class ReservedSeatsResponse(BaseModel):
    showtime_id: int
    seat_ids: list[int]


class SeatMapSeat(BaseModel):
    id: int
    seat_number: int
    label: str
    seat_type: SeatType
    status: str
    price: Optional[Decimal] = None


class SeatMapRow(BaseModel):
    row: str
    seats: list[SeatMapSeat]


class SeatMapResponse(BaseModel):
    showtime_id: int
    layout: list[SeatMapRow]


class PriceQuoteRequest(BaseModel):
    seat_ids: list[int] = Field(min_length=1)


class PriceQuoteLine(BaseModel):
    seat_id: int
    seat_label: str
    seat_type: SeatType
    price: Decimal


class PriceQuoteResponse(BaseModel):
    showtime_id: int
    seats: list[PriceQuoteLine]
    total_price: Decimal
