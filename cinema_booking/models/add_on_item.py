from decimal import Decimal
from typing import Optional
from sqlalchemy import Boolean, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column
from cinema_booking.db.base import Base, BigIntPK
from cinema_booking.models import TimestampMixin


class AddOnItem(Base, TimestampMixin):
    """Concession sold alongside tickets (popcorn, drinks, combos)."""
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
