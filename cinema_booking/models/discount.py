from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from sqlalchemy import DateTime, Integer, Numeric, String, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column
from cinema_booking.db.base import Base, BigIntPK
from cinema_booking.models import TimestampMixin


class DiscountType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"


class DiscountStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    EXPIRED = "EXPIRED"


class Discount(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, index=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    discount_type: Mapped[DiscountType] = mapped_column(SAEnum(DiscountType, name="discount_type_enum"), nullable=False)
    # percent for PERCENTAGE, money for FIXED_AMOUNT
    value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    max_discount_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    min_purchase_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    status: Mapped[DiscountStatus] = mapped_column(
        SAEnum(DiscountStatus, name="discount_status_enum"), nullable=False, default=DiscountStatus.ACTIVE)
    starts_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    usage_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
