"""
Booking flow: pick a date, fetch its free slots, pick a slot, confirm.

Holds the in-progress selection for one business/service pair. The backend
computes availability and detects conflicts; this class only sequences the
calls and validates the selection before sending it.
"""

from datetime import date as date_type
from typing import List, Optional

import requests

from sessly_client.api.appointments import AppointmentsAPIClient
from sessly_client.api.client import ApiError
from sessly_client.domain.appointment import DATE_PATTERN, Appointment, AppointmentDraft
from sessly_client.utils.logger import get_logger

logger = get_logger(__name__)


class BookingError(RuntimeError):
    """Raised when the flow is driven out of order or with invalid input."""

    pass


class BookingFlow:
    """Date selection -> slot lookup -> confirmation for one service."""

    def __init__(
        self,
        appointments_api: AppointmentsAPIClient,
        business_slug: str,
        service_id: str,
        today: Optional[date_type] = None,
    ):
        self.appointments_api = appointments_api
        self.business_slug = business_slug
        self.service_id = str(service_id)
        self.today = today
        self.selected_date: Optional[str] = None
        self.selected_time: Optional[str] = None
        self.slots: List[str] = []
        self.last_error: Optional[Exception] = None

    def select_date(self, date: str) -> List[str]:
        """
        Choose a date and load its slots.

        A failed lookup leaves the flow with no slots and the error in
        ``last_error``; the caller can retry by selecting the date again.

        Raises:
            BookingError: If the date is malformed or in the past
        """
        if not DATE_PATTERN.match(date or ""):
            raise BookingError(f"Date must be YYYY-MM-DD, got {date!r}")
        try:
            chosen = date_type.fromisoformat(date)
        except ValueError as e:
            raise BookingError(f"Invalid date {date!r}") from e
        today = self.today or date_type.today()
        if chosen < today:
            raise BookingError("Cannot book a date in the past")

        self.selected_date = date
        self.selected_time = None
        self.slots = []
        self.last_error = None

        try:
            availability = self.appointments_api.get_availability(
                self.business_slug, self.service_id, date
            )
        except (ApiError, requests.RequestException) as e:
            logger.warning(
                "Could not load availability",
                operation="select_date",
                context={"business": self.business_slug, "date": date},
                error=str(e),
            )
            self.last_error = e
            return []

        self.slots = list(availability.slots)
        return list(self.slots)

    def select_time(self, label: str) -> None:
        """
        Raises:
            BookingError: If no date is selected or the slot is not offered
        """
        if self.selected_date is None:
            raise BookingError("Select a date first")
        if label not in self.slots:
            raise BookingError(f"{label} is not available on {self.selected_date}")
        self.selected_time = label

    def confirm(self, notes: Optional[str] = None) -> Appointment:
        """
        Book the selected slot.

        Raises:
            BookingError: If date or time has not been selected
            ApiError: If the backend rejects the booking (e.g. slot taken)
        """
        if self.selected_date is None or self.selected_time is None:
            raise BookingError("Select a date and a time before confirming")

        draft = AppointmentDraft(
            service_id=self.service_id,
            date=self.selected_date,
            start_time=self.selected_time,
            notes=notes,
        )
        appointment = self.appointments_api.create_appointment(self.business_slug, draft)
        logger.info(
            "Appointment booked",
            operation="confirm_booking",
            context={
                "business": self.business_slug,
                "date": self.selected_date,
                "time": self.selected_time,
                "appointment_id": str(appointment.id),
            },
        )
        return appointment
