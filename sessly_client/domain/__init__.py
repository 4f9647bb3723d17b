"""Domain models - core client entities."""

from .appointment import Appointment, AppointmentDraft, AppointmentStatus, Availability
from .business import Business, BusinessCategory, Service
from .favorite import FavoriteEntry, ToggleResult
from .user import Session, User

__all__ = [
    "Appointment",
    "AppointmentDraft",
    "AppointmentStatus",
    "Availability",
    "Business",
    "BusinessCategory",
    "Service",
    "FavoriteEntry",
    "ToggleResult",
    "Session",
    "User",
]
