"""
Booking model shared by occasions and the tickets sold against them.

Key design decisions:
- An occasion is an organiser booking (is_occasion_organiser=True) with a
  capacity and two public tokens; ticket purchases are child bookings that
  point at it through parent_booking_id
- Remaining capacity is derived from child bookings, never stored
- `version` is bumped by every capacity-affecting write on the organiser row;
  that UPDATE is the lock concurrent purchases serialize on
- Tokens and reference codes are unique at the DB level; a collision is a
  retryable insert error
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from venue_booking.db.base import Base, TimestampMixin

VENUES = ("manor", "hippie")
OCCASION_STATUSES = ("pending", "confirmed", "cancelled", "completed")


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    booking_type = Column(String(20), nullable=False, default="occasion")
    is_occasion_organiser = Column(Boolean, nullable=False, default=False)
    parent_booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=True, index=True)

    venue = Column(String(20), nullable=False)
    occasion_name = Column(String(255), nullable=True)
    booking_date = Column(Date, nullable=False)

    # Organiser bookings only
    capacity = Column(Integer, nullable=True)
    organiser_token = Column(String(32), nullable=True, unique=True)
    share_token = Column(String(32), nullable=True, unique=True)

    # Ticket bookings only
    reference_code = Column(String(20), nullable=True, unique=True)
    guest_list_token = Column(String(64), nullable=True, unique=True)

    ticket_quantity = Column(Integer, nullable=False, default=0)
    ticket_price_cents = Column(Integer, nullable=False, default=0)
    total_amount_cents = Column(Integer, nullable=False, default=0)

    customer_name = Column(String(255), nullable=True)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)

    status = Column(String(20), nullable=False, default="confirmed")
    payment_status = Column(String(20), nullable=False, default="pending")
    payment_reference = Column(String(100), nullable=True)
    # Caller-supplied key of the purchase that created this booking
    idempotency_key = Column(String(45), nullable=True)
    payment_completed_at = Column(DateTime(timezone=True), nullable=True)
    booking_source = Column(String(30), nullable=True)
    staff_notes = Column(Text, nullable=True)

    version = Column(Integer, nullable=False, default=1)

    guests = relationship(
        "BookingGuest",
        back_populates="booking",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("venue IN ('manor', 'hippie')", name="check_booking_venue"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="check_booking_status",
        ),
        CheckConstraint("ticket_quantity >= 0", name="check_ticket_quantity_non_negative"),
        CheckConstraint("ticket_price_cents >= 0", name="check_ticket_price_non_negative"),
        CheckConstraint(
            "NOT is_occasion_organiser OR capacity > 0",
            name="check_occasion_capacity_positive",
        ),
        CheckConstraint(
            "is_occasion_organiser OR parent_booking_id IS NULL OR ticket_quantity > 0",
            name="check_child_ticket_quantity_positive",
        ),
        # Capacity sums scan child bookings of one occasion by status
        Index("ix_bookings_parent_status", "parent_booking_id", "status"),
        Index("ix_bookings_booking_date", "booking_date"),
        # One booking per purchase retry key within an occasion
        Index(
            "uq_bookings_parent_idempotency_key",
            "parent_booking_id",
            "idempotency_key",
            unique=True,
        ),
    )

    @property
    def occasion_date(self):
        return self.booking_date

    def __repr__(self) -> str:
        kind = "occasion" if self.is_occasion_organiser else "ticket"
        return f"<Booking(id={self.id}, {kind}, parent={self.parent_booking_id}, status={self.status})>"
