from datetime import time
from decimal import Decimal
from enum import Enum
from typing import Optional
from sqlalchemy import Boolean, Integer, Numeric, String, Time, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column
from cinema_booking.db.base import Base, BigIntPK
from cinema_booking.models import TimestampMixin
from cinema_booking.models.theatre import RoomType


class CustomerType(str, Enum):
    ADULT = "ADULT"
    MEMBER = "MEMBER"
    U22 = "U22"
    SENIOR = "SENIOR"


class PricingRule(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    base_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    # higher number wins
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # "ALL" or e.g. "SATURDAY,SUNDAY"
    days_of_week: Mapped[str] = mapped_column(String(100), nullable=False, default="ALL")
    start_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    end_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    room_type: Mapped[Optional[RoomType]] = mapped_column(SAEnum(RoomType, name="room_type_enum"), nullable=True)
    customer_type: Mapped[Optional[CustomerType]] = mapped_column(SAEnum(CustomerType, name="customer_type_enum"), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
