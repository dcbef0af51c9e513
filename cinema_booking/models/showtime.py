from datetime import datetime
from decimal import Decimal
from enum import Enum
from sqlalchemy import BigInteger, DateTime, ForeignKey, Numeric, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from cinema_booking.db.base import Base, BigIntPK
from cinema_booking.models import TimestampMixin


class ShowtimeStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    SOLD_OUT = "SOLD_OUT"
    CANCELLED = "CANCELLED"


class Showtime(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, index=True)
    movie_id: Mapped[int] = mapped_column(BigInteger, ForeignKey(
        "movie.id", ondelete="CASCADE"), nullable=False)
    room_id: Mapped[int] = mapped_column(BigInteger, ForeignKey(
        "room.id", ondelete="CASCADE"), index=True, nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    base_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[ShowtimeStatus] = mapped_column(
        SAEnum(ShowtimeStatus, name="showtime_status_enum"), nullable=False, default=ShowtimeStatus.AVAILABLE)
    movie: Mapped["Movie"] = relationship(back_populates="showtimes")
    room: Mapped["Room"] = relationship(back_populates="showtimes")
