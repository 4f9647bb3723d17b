"""Business and service domain models."""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Optional, Union


@dataclass
class Business:
    """
    Business listing.

    The backend shape is loose; only id and name are guaranteed, everything
    else the client does not model lands in extra_fields.
    """

    id: Union[int, str]
    name: str = ""
    slug: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    city: Optional[str] = None
    address_line1: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    extra_fields: Dict[str, Any] = field(default_factory=dict)

    CORE_FIELDS = (
        "id",
        "name",
        "slug",
        "category",
        "description",
        "city",
        "address_line1",
        "phone_number",
        "email",
    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Business":
        if data.get("id") is None:
            raise ValueError("Business record is missing 'id'")
        core_data = {k: v for k, v in data.items() if k in cls.CORE_FIELDS}
        if core_data.get("name") is None:
            core_data["name"] = ""
        extra_data = {k: v for k, v in data.items() if k not in cls.CORE_FIELDS}
        return cls(**core_data, extra_fields=extra_data)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        extra = data.pop("extra_fields", {})
        data.update(extra)
        return data

    @property
    def key(self) -> str:
        """Identifier used in business URLs: slug when known, else id."""
        return self.slug or str(self.id)


@dataclass
class Service:
    """Bookable service offered by a business."""

    id: Union[int, str]
    name: str = ""
    price_amount: Optional[str] = None
    duration_minutes: Optional[int] = None
    description: Optional[str] = None
    extra_fields: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Service":
        """
        Build from a service record.

        Older payloads use ``price``/``duration`` instead of
        ``price_amount``/``duration_minutes``; both are accepted.
        """
        if data.get("id") is None:
            raise ValueError("Service record is missing 'id'")

        price = data.get("price_amount", data.get("price"))
        duration = data.get("duration_minutes", data.get("duration"))
        try:
            duration_minutes = int(duration) if duration is not None else None
        except (TypeError, ValueError):
            duration_minutes = None

        known = {"id", "name", "price_amount", "price", "duration_minutes", "duration", "description"}
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            price_amount=str(price) if price is not None else None,
            duration_minutes=duration_minutes,
            description=data.get("description"),
            extra_fields={k: v for k, v in data.items() if k not in known},
        )


@dataclass
class BusinessCategory:
    slug: str
    name: str
    count: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BusinessCategory":
        return cls(
            slug=str(data.get("slug", "")),
            name=str(data.get("name", "")),
            count=int(data.get("count") or 0),
        )
