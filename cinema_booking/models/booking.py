from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from cinema_booking.db.base import Base, BigIntPK
from cinema_booking.models import TimestampMixin


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"
    COMPLETED = "COMPLETED"


# bookings in these states no longer hold their seats
INACTIVE_BOOKING_STATUSES = (BookingStatus.CANCELLED, BookingStatus.EXPIRED)


class Booking(Base, TimestampMixin):
    __table_args__ = (
        CheckConstraint("final_amount >= 0", name="ck_booking_final_amount_non_negative"),
        CheckConstraint("discount_amount <= total_amount", name="ck_booking_discount_within_total"),
        Index("ix_booking_status_created_at", "status", "created_at"),
    )
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, index=True)
    booking_code: Mapped[str] = mapped_column(String(20), unique=True, index=True, nullable=False)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), index=True, nullable=False)
    showtime_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("showtime.id"), index=True, nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        SAEnum(BookingStatus, name="booking_status_enum"), nullable=False, default=BookingStatus.PENDING)
    seat_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    add_on_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    # before discount
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    final_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    number_of_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    discount_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    payment_method: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    user: Mapped["User"] = relationship()
    showtime: Mapped["Showtime"] = relationship()
    seats: Mapped[List["BookingSeat"]] = relationship(
        back_populates="booking", cascade="all, delete-orphan", order_by="BookingSeat.id")
    add_ons: Mapped[List["BookingAddOn"]] = relationship(
        back_populates="booking", cascade="all, delete-orphan", order_by="BookingAddOn.id")
