from decimal import Decimal
from sqlalchemy import BigInteger, ForeignKey, Index, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship
from cinema_booking.db.base import Base, BigIntPK
from cinema_booking.models import TimestampMixin


class BookingSeat(Base, TimestampMixin):
    """One seat of one showtime held by a booking, at the price charged when it was booked."""
    __table_args__ = (
        Index("ix_bookingseat_showtime_seat", "showtime_id", "seat_id"),
    )
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    booking_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("booking.id", ondelete="CASCADE"), index=True, nullable=False)
    showtime_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("showtime.id"), nullable=False)
    seat_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("seat.id"), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    booking: Mapped["Booking"] = relationship(back_populates="seats")
    seat: Mapped["Seat"] = relationship()
