"""
Named guest entries for a booking.

Exactly one organiser entry exists per occasion, on the organiser booking.
Entries are renamed in place and only disappear with their booking.
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship

from venue_booking.db.base import Base


class BookingGuest(Base):
    __tablename__ = "booking_guests"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(
        Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    guest_name = Column(String(255), nullable=False)
    is_organiser = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    booking = relationship("Booking", back_populates="guests")

    def __repr__(self) -> str:
        return f"<BookingGuest(id={self.id}, booking={self.booking_id}, organiser={self.is_organiser})>"
