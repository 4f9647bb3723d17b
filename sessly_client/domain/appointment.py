"""
Appointment domain models.

Appointments are passed through to and from the backend largely as-is.
The client only needs the identifier, the time window and the status to
drive list views and the cancel action.
"""

import re
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from sessly_client.utils.timezone import parse_timestamp

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class AppointmentStatus(str, Enum):
    """Appointment lifecycle status as reported by the backend."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    @classmethod
    def parse(cls, value: Optional[str]) -> "AppointmentStatus":
        """Parse a status string; missing or unknown values count as pending."""
        if not value:
            return cls.PENDING
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.PENDING


@dataclass
class Appointment:
    """
    Booked appointment.

    Attributes:
        id: Appointment identifier
        status: Lifecycle status
        business: Business name or embedded business record
        service: Embedded service record
        date: Appointment date "YYYY-MM-DD"
        start, end: ISO datetimes of the time window
        start_time, end_time: "HH:MM" labels
        notes: Customer notes
        created_at, updated_at: Backend timestamps
        extra_fields: Any other keys sent by the backend
    """

    id: Union[int, str]
    status: AppointmentStatus = AppointmentStatus.PENDING
    business: Optional[Union[str, Dict[str, Any]]] = None
    service: Optional[Dict[str, Any]] = None
    date: Optional[str] = None
    start: Optional[str] = None
    end: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    extra_fields: Dict[str, Any] = field(default_factory=dict)

    CORE_FIELDS = (
        "id",
        "status",
        "business",
        "service",
        "date",
        "start",
        "end",
        "start_time",
        "end_time",
        "notes",
        "created_at",
        "updated_at",
    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Appointment":
        """
        Create Appointment from a backend record.

        Raises:
            ValueError: If the record has no id
        """
        if data.get("id") is None:
            raise ValueError("Appointment record is missing 'id'")

        core_data = {k: v for k, v in data.items() if k in cls.CORE_FIELDS}
        core_data["status"] = AppointmentStatus.parse(data.get("status"))
        extra_data = {k: v for k, v in data.items() if k not in cls.CORE_FIELDS}
        return cls(**core_data, extra_fields=extra_data)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        extra = data.pop("extra_fields", {})
        data.update(extra)
        return data

    @property
    def starts_at(self) -> Optional[datetime]:
        """Start of the time window, when the backend sent one."""
        if self.start:
            return parse_timestamp(self.start)
        if self.date and self.start_time:
            return parse_timestamp(f"{self.date}T{self.start_time}")
        return None

    @property
    def business_name(self) -> str:
        if isinstance(self.business, dict):
            return str(self.business.get("name", ""))
        return self.business or ""

    @property
    def service_name(self) -> str:
        if isinstance(self.service, dict):
            return str(self.service.get("name", ""))
        return ""

    def can_cancel(self) -> bool:
        """Only pending and confirmed appointments can be cancelled."""
        return self.status in (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)


@dataclass
class AppointmentDraft:
    """
    Booking request sent when the customer confirms a slot.

    Attributes:
        service_id: Service being booked
        date: "YYYY-MM-DD"
        start_time: "HH:MM"
        notes: Optional customer notes
    """

    service_id: str
    date: str
    start_time: str
    notes: Optional[str] = None

    def validate(self) -> None:
        """
        Raises:
            ValueError: If any field has the wrong shape
        """
        if not self.service_id:
            raise ValueError("service_id is required")
        if not DATE_PATTERN.match(self.date or ""):
            raise ValueError(f"date must be YYYY-MM-DD, got {self.date!r}")
        if not TIME_PATTERN.match(self.start_time or ""):
            raise ValueError(f"start_time must be HH:MM, got {self.start_time!r}")

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "service_id": str(self.service_id),
            "date": self.date,
            "start_time": self.start_time,
        }
        if self.notes and self.notes.strip():
            payload["notes"] = self.notes.strip()
        return payload


@dataclass
class Availability:
    """Bookable time labels for one service on one date."""

    date: str
    service_id: str
    slots: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], date: str = "", service_id: str = ""
    ) -> "Availability":
        """
        Build from the availability payload.

        Slots may arrive as plain labels (["09:00", ...]) or as objects
        ([{"time": "09:00"}, ...]). Any other element is skipped.
        """
        raw_slots = data.get("slots") if isinstance(data, dict) else None
        slots: List[str] = []
        if isinstance(raw_slots, list):
            for slot in raw_slots:
                if isinstance(slot, str):
                    slots.append(slot)
                elif isinstance(slot, dict) and slot.get("time"):
                    slots.append(str(slot["time"]))

        return cls(
            date=str(data.get("date") or date) if isinstance(data, dict) else date,
            service_id=(
                str(data.get("service_id") or service_id)
                if isinstance(data, dict)
                else service_id
            ),
            slots=slots,
        )
