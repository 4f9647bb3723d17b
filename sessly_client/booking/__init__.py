"""Booking flow - date, slot and confirmation sequencing."""

from .flow import BookingError, BookingFlow

__all__ = ["BookingError", "BookingFlow"]
