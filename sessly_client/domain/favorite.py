"""
Favorite domain models.

A FavoriteEntry is a denormalized business summary returned by the
favorites list endpoint, complete enough to render a list row without a
follow-up request.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Optional


@dataclass
class FavoriteEntry:
    """
    Favorited business summary.

    Attributes:
        id: Business identifier (UUID string); unique within a favorites set
        name: Business name
        slug: URL slug
        category: Business category key
        city: City
        address_line1: Street address
        postal_code: Postal code
        country: Country
        services_count: Number of published services
        description, address_line2, phone_number, website_url: Optional details
        created_at: When the business was favorited, if reported
        extra_fields: Any other keys sent by the backend
    """

    id: str
    name: str = ""
    slug: str = ""
    category: str = ""
    city: str = ""
    address_line1: str = ""
    postal_code: str = ""
    country: str = ""
    services_count: int = 0
    description: Optional[str] = None
    address_line2: Optional[str] = None
    phone_number: Optional[str] = None
    website_url: Optional[str] = None
    created_at: Optional[str] = None
    extra_fields: Dict[str, Any] = field(default_factory=dict)

    CORE_FIELDS = (
        "id",
        "name",
        "slug",
        "category",
        "city",
        "address_line1",
        "postal_code",
        "country",
        "services_count",
        "description",
        "address_line2",
        "phone_number",
        "website_url",
        "created_at",
    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FavoriteEntry":
        """
        Create FavoriteEntry from a backend record.

        The id is normalised to a string so membership checks are stable
        whether the backend sends integers or UUIDs.

        Raises:
            ValueError: If the record has no id
        """
        if data.get("id") is None:
            raise ValueError("Favorite record is missing 'id'")

        core_data = {
            k: v for k, v in data.items() if k in cls.CORE_FIELDS and v is not None
        }
        core_data["id"] = str(data["id"])
        if "services_count" in core_data:
            try:
                core_data["services_count"] = int(core_data["services_count"])
            except (TypeError, ValueError):
                core_data["services_count"] = 0

        extra_data = {k: v for k, v in data.items() if k not in cls.CORE_FIELDS}
        return cls(**core_data, extra_fields=extra_data)

    def to_dict(self) -> Dict[str, Any]:
        """Flatten back into the backend shape."""
        data = asdict(self)
        extra = data.pop("extra_fields", {})
        data.update(extra)
        return data

    @property
    def address(self) -> str:
        """One-line address for list rows."""
        street = ", ".join(p for p in (self.address_line1, self.address_line2) if p)
        locality = " ".join(p for p in (self.postal_code, self.city) if p)
        return ", ".join(p for p in (street, locality) if p)


@dataclass
class ToggleResult:
    """Outcome of the server-side favorite toggle."""

    is_favorite: bool
    message: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToggleResult":
        return cls(
            is_favorite=bool(data.get("is_favorite", False)),
            message=data.get("detail") or data.get("message"),
        )
