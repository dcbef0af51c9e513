from decimal import Decimal
from sqlalchemy import BigInteger, ForeignKey, Integer, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship
from cinema_booking.db.base import Base, BigIntPK
from cinema_booking.models import TimestampMixin


class BookingAddOn(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    booking_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("booking.id", ondelete="CASCADE"), index=True, nullable=False)
    add_on_item_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("addonitem.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    booking: Mapped["Booking"] = relationship(back_populates="add_ons")
    add_on_item: Mapped["AddOnItem"] = relationship()
