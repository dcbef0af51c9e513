from datetime import date
from typing import Optional
from sqlalchemy import Boolean, Date, String
from sqlalchemy.orm import Mapped, mapped_column
from cinema_booking.db.base import Base, BigIntPK
from cinema_booking.models import TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    date_of_birth: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
