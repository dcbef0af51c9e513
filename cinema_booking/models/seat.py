from decimal import Decimal
from enum import Enum
from sqlalchemy import BigInteger, Boolean, ForeignKey, Integer, Numeric, String, Enum as SAEnum, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from cinema_booking.db.base import Base, BigIntPK
from cinema_booking.models import TimestampMixin


class SeatType(str, Enum):
    STANDARD = "STANDARD"
    VIP = "VIP"
    COUPLE = "COUPLE"
    DISABLED = "DISABLED"


class Seat(Base, TimestampMixin):
    __table_args__ = (
        UniqueConstraint("room_id", "row_label", "seat_number", name="uix_room_seat_position"),
    )
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, index=True)
    room_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("room.id", ondelete="CASCADE"), index=True, nullable=False)
    row_label: Mapped[str] = mapped_column(String(5), nullable=False)
    seat_number: Mapped[int] = mapped_column(Integer, nullable=False)
    seat_type: Mapped[SeatType] = mapped_column(SAEnum(
        SeatType, name="seat_type_enum"), nullable=False, default=SeatType.STANDARD)
    price_multiplier: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("1.00"))
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    room: Mapped["Room"] = relationship(back_populates="seats")

    @property
    def label(self) -> str:
        return f"{self.row_label}{self.seat_number}"


class SeatCategory(Base, TimestampMixin):
    """Pricing attributes shared by every seat of one type."""
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, index=True)
    seat_type: Mapped[SeatType] = mapped_column(SAEnum(
        SeatType, name="seat_type_enum"), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    price_multiplier: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("1.00"))
    extra_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
