from datetime import date as date_type
from datetime import datetime
from datetime import time as time_type
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from ..core.database_manager import Base
from ..services.pricing import compute_ticket_price

if TYPE_CHECKING:
    from .booking import Booking
    from .user import User


class Event(Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(200), index=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    date: Mapped[date_type] = mapped_column(Date, nullable=False, index=True)
    time: Mapped[time_type] = mapped_column(Time, nullable=False)
    venue: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    total_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    ticket_price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    dynamic_pricing_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    # Ordered list of {"threshold", "percentage", "description"}
    pricing_rules: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list)
    sold_tickets: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    revenue: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    created_by: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    organizer: Mapped["User"] = relationship("User", back_populates="events")
    bookings: Mapped[List["Booking"]] = relationship(
        "Booking",
        back_populates="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("total_seats >= 0", name="ck_event_total_seats"),
        CheckConstraint("ticket_price >= 0", name="ck_event_ticket_price"),
        CheckConstraint(
            "sold_tickets >= 0 AND sold_tickets <= total_seats",
            name="ck_event_sold_within_capacity",
        ),
        Index("idx_event_date_time", "date", "time"),
        Index("idx_event_organizer_date", "created_by", "date"),
    )

    @property
    def available_seats(self) -> int:
        return self.total_seats - self.sold_tickets

    @property
    def current_ticket_price(self) -> Decimal:
        return compute_ticket_price(
            self.ticket_price,
            bool(self.dynamic_pricing_enabled),
            self.pricing_rules or [],
            self.available_seats,
        )
