"""
Businesses API Client

Browsing and searching businesses, plus the specialist-side endpoints for
managing one's own business profile and services.
"""

from typing import Any, Dict, List, Optional, Union

from sessly_client.api.client import ApiClient
from sessly_client.api.envelope import extract_list
from sessly_client.domain.business import Business, BusinessCategory, Service
from sessly_client.utils.logger import get_logger, log_operation

logger = get_logger(__name__)

BUSINESS_CATEGORIES = ("hairdresser", "doctor", "beauty", "spa", "fitness", "other")
REQUIRED_BUSINESS_FIELDS = (
    "name",
    "slug",
    "category",
    "phone_number",
    "address_line1",
    "city",
    "postal_code",
)


class BusinessesAPIClient:
    """Typed wrapper over the business and service endpoints."""

    def __init__(self, api: ApiClient):
        self.api = api

    def list_businesses(self) -> List[Business]:
        """All published businesses."""
        return self.search_businesses()

    def search_businesses(
        self, search: Optional[str] = None, category: Optional[str] = None
    ) -> List[Business]:
        """
        Search businesses by free text and/or category.

        A blank search and the pseudo-category "all" mean no filter.
        """
        params: Dict[str, str] = {}
        if search and search.strip():
            params["search"] = search.strip()
        if category and category != "all":
            params["category"] = category

        payload = self.api.get("/businesses/", params=params or None)
        return self._parse_many(extract_list(payload, source="search_businesses"), Business)

    def get_business(self, slug_or_id: Union[int, str]) -> Business:
        """
        Business detail by slug or id.

        Raises:
            ApiError: On non-2xx response (404 when unknown)
            ValueError: If the response is not a business record
        """
        payload = self.api.get(f"/businesses/{slug_or_id}/")
        if not isinstance(payload, dict):
            raise ValueError("Unexpected business detail response")
        return Business.from_dict(payload)

    def get_categories(self) -> List[BusinessCategory]:
        payload = self.api.get("/businesses/categories/")
        return [
            BusinessCategory.from_dict(record)
            for record in extract_list(payload, source="business_categories")
            if isinstance(record, dict)
        ]

    def get_my_services(self) -> List[Service]:
        """Services of the logged-in specialist's business."""
        payload = self.api.get("/businesses/services/")
        return self._parse_many(extract_list(payload, source="my_services"), Service)

    @log_operation("add_service")
    def add_service(
        self,
        name: str,
        price_amount: str,
        duration_minutes: int,
        description: Optional[str] = None,
    ) -> Service:
        """
        Create a service.

        Raises:
            ValueError: On empty name or non-positive duration
            ApiError: On non-2xx response
        """
        if not name or not name.strip():
            raise ValueError("Service name is required")
        if duration_minutes <= 0:
            raise ValueError("duration_minutes must be positive")

        body: Dict[str, Any] = {
            "name": name.strip(),
            "price_amount": str(price_amount),
            "duration_minutes": int(duration_minutes),
        }
        if description:
            body["description"] = description
        payload = self.api.post("/businesses/services/", json=body)
        if not isinstance(payload, dict):
            raise ValueError("Unexpected service create response")
        return Service.from_dict(payload)

    @log_operation("delete_service")
    def delete_service(self, service_id: Union[int, str]) -> None:
        self.api.delete(f"/businesses/services/{service_id}/")

    def update_business_profile(self, fields: Dict[str, Any]) -> Business:
        """Partially update the logged-in specialist's business."""
        payload = self.api.patch("/businesses/me/", json=fields)
        if not isinstance(payload, dict):
            raise ValueError("Unexpected business update response")
        return Business.from_dict(payload)

    @log_operation("create_business")
    def create_business(self, fields: Dict[str, Any]) -> Business:
        """
        Register a new business.

        Raises:
            ValueError: If a required field is missing or the category is unknown
            ApiError: On non-2xx response
        """
        missing = [k for k in REQUIRED_BUSINESS_FIELDS if not fields.get(k)]
        if missing:
            raise ValueError(f"Missing required business fields: {', '.join(missing)}")
        if fields["category"] not in BUSINESS_CATEGORIES:
            raise ValueError(
                f"Unknown category {fields['category']!r}; expected one of {BUSINESS_CATEGORIES}"
            )

        payload = self.api.post("/businesses/", json=fields)
        if not isinstance(payload, dict):
            raise ValueError("Unexpected business create response")
        return Business.from_dict(payload)

    @staticmethod
    def _parse_many(records: List[Any], model) -> List[Any]:
        items = []
        for record in records:
            if not isinstance(record, dict):
                continue
            try:
                items.append(model.from_dict(record))
            except ValueError as e:
                logger.warning(
                    f"Skipping malformed {model.__name__} record",
                    operation="parse_records",
                    error=str(e),
                )
        return items
