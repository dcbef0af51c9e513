from enum import Enum
from sqlalchemy import BigInteger, Boolean, ForeignKey, String, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from cinema_booking.db.base import Base, BigIntPK
from cinema_booking.models import TimestampMixin


class RoomType(str, Enum):
    STANDARD_2D = "STANDARD_2D"
    STANDARD_3D = "STANDARD_3D"
    IMAX = "IMAX"
    IMAX_3D = "IMAX_3D"
    VIP_4DX = "VIP_4DX"


class Theatre(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str] = mapped_column(String(255), nullable=False)
    rooms: Mapped[list["Room"]] = relationship(back_populates="theatre", cascade="all, delete-orphan")


class Room(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, index=True)
    theatre_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("theatre.id", ondelete="CASCADE"), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    room_type: Mapped[RoomType] = mapped_column(SAEnum(RoomType, name="room_type_enum"), nullable=False, default=RoomType.STANDARD_2D)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    theatre: Mapped["Theatre"] = relationship(back_populates="rooms")
    seats: Mapped[list["Seat"]] = relationship(back_populates="room", cascade="all, delete-orphan")
    showtimes: Mapped[list["Showtime"]] = relationship(back_populates="room", cascade="all, delete-orphan")
