from datetime import datetime, timezone
from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, mapped_column


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )


from .movie import Movie
from .theatre import Theatre, Room, RoomType
from .seat import Seat, SeatType, SeatCategory
from .showtime import Showtime, ShowtimeStatus
from .user import User
from .add_on_item import AddOnItem
from .discount import Discount, DiscountType, DiscountStatus
from .pricing_rule import PricingRule, CustomerType
from .booking import Booking, BookingStatus, INACTIVE_BOOKING_STATUSES
from .booking_seat import BookingSeat
from .booking_add_on import BookingAddOn
