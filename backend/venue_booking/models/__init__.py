from venue_booking.models.booking import Booking
from venue_booking.models.guest import BookingGuest

__all__ = ["Booking", "BookingGuest"]
