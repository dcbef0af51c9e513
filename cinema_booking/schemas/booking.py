from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field
from cinema_booking.models import Booking
from cinema_booking.models.booking import BookingStatus


class AddOnItemRequest(BaseModel):
    add_on_item_id: int
    quantity: int = Field(gt=0)


class BookingCreate(BaseModel):
    showtime_id: int
    seat_ids: list[int] = Field(min_length=1)
    add_on_items: list[AddOnItemRequest] = Field(default_factory=list)
    discount_code: Optional[str] = Field(default=None, max_length=50)
    notes: Optional[str] = Field(default=None, max_length=500)


class BookingConfirmRequest(BaseModel):
    payment_method: Optional[str] = Field(default=None, max_length=30)


class BookingCancelRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=255)


class BookingSeatResponse(BaseModel):
    seat_id: int
    seat_label: str
    seat_type: str
    price: Decimal


class BookingAddOnResponse(BaseModel):
    add_on_item_id: int
    name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal


class BookingResponse(BaseModel):
    id: int
    booking_code: str
    status: BookingStatus
    seat_amount: Decimal
    add_on_amount: Decimal
    total_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    number_of_seats: int
    seat_labels: list[str]
    seats: list[BookingSeatResponse]
    add_ons: list[BookingAddOnResponse]
    notes: Optional[str] = None
    payment_method: Optional[str] = None
    created_at: datetime
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    user_id: int
    user_full_name: str
    user_email: str
    showtime_id: int
    show_starts_at: datetime
    movie_id: int
    movie_title: str
    theatre_name: str
    room_name: str

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingResponse":
        showtime = booking.showtime
        room = showtime.room
        seats = [
            BookingSeatResponse(seat_id=line.seat_id, seat_label=line.seat.label,
                                seat_type=line.seat.seat_type.value, price=line.price)
            for line in booking.seats
        ]
        add_ons = [
            BookingAddOnResponse(add_on_item_id=line.add_on_item_id, name=line.add_on_item.name, quantity=line.quantity,
                                 unit_price=line.unit_price, total_price=line.total_price)
            for line in booking.add_ons
        ]
        return cls(
            id=booking.id,
            booking_code=booking.booking_code,
            status=booking.status,
            seat_amount=booking.seat_amount,
            add_on_amount=booking.add_on_amount,
            total_amount=booking.total_amount,
            discount_amount=booking.discount_amount,
            final_amount=booking.final_amount,
            number_of_seats=booking.number_of_seats,
            seat_labels=[seat.seat_label for seat in seats],
            seats=seats,
            add_ons=add_ons,
            notes=booking.notes,
            payment_method=booking.payment_method,
            created_at=booking.created_at,
            confirmed_at=booking.confirmed_at,
            cancelled_at=booking.cancelled_at,
            cancellation_reason=booking.cancellation_reason,
            user_id=booking.user_id,
            user_full_name=booking.user.full_name,
            user_email=booking.user.email,
            showtime_id=showtime.id,
            show_starts_at=showtime.start_time,
            movie_id=showtime.movie_id,
            movie_title=showtime.movie.title,
            theatre_name=room.theatre.name,
            room_name=room.name,
        )


class ExpireHoldsResponse(BaseModel):
    expired: int
