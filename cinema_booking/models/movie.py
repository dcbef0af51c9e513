from typing import Optional
from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from cinema_booking.db.base import Base, BigIntPK
from cinema_booking.models import TimestampMixin


class Movie(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    duration_mins: Mapped[int] = mapped_column(Integer, nullable=False)
    language: Mapped[str] = mapped_column(String(50), nullable=False)
    poster_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    showtimes: Mapped[list["Showtime"]] = relationship(
        back_populates="movie", cascade="all, delete-orphan")
