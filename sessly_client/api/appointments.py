"""
Appointments API Client

Availability lookup, booking, listing, detail and cancellation of
appointments. The list endpoint is tolerant of the response envelope
and of not being deployed yet (404 yields an empty list).
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Union

from sessly_client.api.client import ApiClient, ApiError
from sessly_client.api.envelope import extract_list
from sessly_client.domain.appointment import (
    Appointment,
    AppointmentDraft,
    AppointmentStatus,
    Availability,
)
from sessly_client.utils.logger import get_logger, log_operation
from sessly_client.utils.timezone import ensure_aware, now_utc

logger = get_logger(__name__)

VIEW_ALL = "all"
VIEW_UPCOMING = "upcoming"
VIEW_PAST = "past"
VIEW_CANCELLED = "cancelled"
LIST_VIEWS = (VIEW_ALL, VIEW_UPCOMING, VIEW_PAST, VIEW_CANCELLED)


class AppointmentsAPIClient:
    """Typed wrapper over the appointment and availability endpoints."""

    USER_APPOINTMENTS_PATH = "/users/me/appointments/"

    def __init__(self, api: ApiClient):
        self.api = api

    def get_availability(self, business_slug: str, service_id: str, date: str) -> Availability:
        """
        Fetch bookable time labels for a service on a date.

        Args:
            business_slug: Business slug
            service_id: Service identifier
            date: "YYYY-MM-DD"

        Raises:
            ApiError: On non-2xx response
        """
        payload = self.api.get(
            f"/businesses/{business_slug}/availability/",
            params={"service_id": str(service_id), "date": date},
        )
        availability = Availability.from_dict(
            payload if isinstance(payload, dict) else {},
            date=date,
            service_id=str(service_id),
        )
        logger.debug(
            "Availability fetched",
            operation="get_availability",
            context={"business": business_slug, "date": date, "slots": len(availability.slots)},
        )
        return availability

    @log_operation("create_appointment")
    def create_appointment(self, business_slug: str, draft: AppointmentDraft) -> Appointment:
        """
        Book an appointment.

        Raises:
            ValueError: If the draft is malformed
            ApiError: On non-2xx response (e.g. slot already taken)
        """
        draft.validate()
        payload = self.api.post(
            f"/businesses/{business_slug}/appointments/", json=draft.to_payload()
        )
        if not isinstance(payload, dict):
            raise ValueError("Unexpected create_appointment response")
        return Appointment.from_dict(payload)

    def list_appointments(
        self,
        status: Optional[Union[AppointmentStatus, str]] = None,
        start_after: Optional[datetime] = None,
        start_before: Optional[datetime] = None,
    ) -> List[Appointment]:
        """
        List the current user's appointments.

        Filters are sent as query parameters and applied again locally, so
        results are correct whether or not the backend honours them.

        Returns:
            Appointments; [] if the endpoint is not available (404) or the
            response shape is not recognised

        Raises:
            ApiError: On non-2xx response other than 404
        """
        status_value = AppointmentStatus(status).value if status else None
        start_after = ensure_aware(start_after) if start_after else None
        start_before = ensure_aware(start_before) if start_before else None
        params: Dict[str, Any] = {}
        if status_value:
            params["status"] = status_value
        if start_after:
            params["start_after"] = start_after.isoformat()
        if start_before:
            params["start_before"] = start_before.isoformat()

        try:
            payload = self.api.get(self.USER_APPOINTMENTS_PATH, params=params or None)
        except ApiError as e:
            if e.is_not_found:
                logger.warning(
                    "Appointments endpoint not available; returning empty list",
                    operation="list_appointments",
                )
                return []
            raise

        appointments = self._parse_appointments(
            extract_list(payload, source="list_appointments")
        )

        result = []
        for appointment in appointments:
            if status_value and appointment.status.value != status_value:
                continue
            starts_at = appointment.starts_at
            if start_after and (starts_at is None or starts_at < start_after):
                continue
            if start_before and (starts_at is None or starts_at > start_before):
                continue
            result.append(appointment)
        return result

    def get_appointment(self, appointment_id: Union[int, str]) -> Optional[Appointment]:
        """
        Fetch one appointment.

        Falls back to scanning the user's list when the detail endpoint
        answers 404.

        Returns:
            Appointment, or None if it cannot be found
        """
        try:
            payload = self.api.get(f"/appointments/{appointment_id}/")
        except ApiError as e:
            if not e.is_not_found:
                raise
            for appointment in self.list_appointments():
                if str(appointment.id) == str(appointment_id):
                    return appointment
            return None

        if not isinstance(payload, dict):
            return None
        return Appointment.from_dict(payload)

    @log_operation("cancel_appointment")
    def cancel_appointment(self, appointment_id: Union[int, str]) -> None:
        """
        Cancel an appointment.

        Raises:
            ApiError: On non-2xx response
        """
        try:
            self.api.delete(f"/appointments/{appointment_id}/")
        except ApiError as e:
            if e.is_not_found:
                logger.warning(
                    "Cancel endpoint returned 404",
                    operation="cancel_appointment",
                    context={"appointment_id": str(appointment_id)},
                )
            raise

    def get_specialist_schedule(self) -> List[Appointment]:
        """Appointments booked with the logged-in specialist."""
        payload = self.api.get("/appointments/specialist/")
        return self._parse_appointments(extract_list(payload, source="specialist_schedule"))

    @staticmethod
    def _parse_appointments(records: Iterable[Any]) -> List[Appointment]:
        appointments = []
        for record in records:
            if not isinstance(record, dict):
                continue
            try:
                appointments.append(Appointment.from_dict(record))
            except ValueError as e:
                logger.warning("Skipping malformed appointment", operation="parse_appointments", error=str(e))
        return appointments


def filter_appointments(
    appointments: Iterable[Appointment],
    view: str = VIEW_ALL,
    now: Optional[datetime] = None,
) -> List[Appointment]:
    """
    Select appointments for a list view.

    Views:
        all: everything
        upcoming: starts after ``now`` and not cancelled
        past: starts at or before ``now`` and not cancelled
        cancelled: cancelled only

    Appointments without a known start are left out of upcoming/past.

    Raises:
        ValueError: For an unknown view
    """
    if view not in LIST_VIEWS:
        raise ValueError(f"Unknown appointment view {view!r}; expected one of {LIST_VIEWS}")

    appointments = list(appointments)
    if view == VIEW_ALL:
        return appointments
    if view == VIEW_CANCELLED:
        return [a for a in appointments if a.status == AppointmentStatus.CANCELLED]

    now = ensure_aware(now) if now else now_utc()
    selected = []
    for appointment in appointments:
        if appointment.status == AppointmentStatus.CANCELLED:
            continue
        starts_at = appointment.starts_at
        if starts_at is None:
            continue
        if view == VIEW_UPCOMING and starts_at > now:
            selected.append(appointment)
        elif view == VIEW_PAST and starts_at <= now:
            selected.append(appointment)
    return selected
