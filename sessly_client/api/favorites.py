"""
Favorites API Client

Wraps the user favorites endpoints:
    GET  /users/favorites/           full favorites list
    POST /users/favorites/{id}/      flip favorite status for a business
"""

from typing import List

from sessly_client.api.client import ApiClient
from sessly_client.api.envelope import extract_list
from sessly_client.domain.favorite import FavoriteEntry, ToggleResult
from sessly_client.utils.logger import get_logger

logger = get_logger(__name__)


class FavoritesAPIClient:
    """Typed wrapper over the favorites endpoints."""

    LIST_PATH = "/users/favorites/"

    def __init__(self, api: ApiClient):
        self.api = api

    def list_favorites(self) -> List[FavoriteEntry]:
        """
        Fetch the complete favorites list for the current session.

        Records without an id are skipped; a repeated id keeps its first
        occurrence so the list stays unique by business.

        Raises:
            ApiError: On non-2xx response
            requests.RequestException: On transport failure
        """
        payload = self.api.get(self.LIST_PATH)

        entries: List[FavoriteEntry] = []
        seen = set()
        for record in extract_list(payload, source="list_favorites"):
            if not isinstance(record, dict):
                continue
            try:
                entry = FavoriteEntry.from_dict(record)
            except ValueError as e:
                logger.warning("Skipping malformed favorite", operation="list_favorites", error=str(e))
                continue
            if entry.id in seen:
                continue
            seen.add(entry.id)
            entries.append(entry)

        logger.debug(
            "Favorites fetched",
            operation="list_favorites",
            context={"count": len(entries)},
        )
        return entries

    def toggle_favorite(self, business_id: str) -> ToggleResult:
        """
        Flip the favorite status of a business on the server.

        Returns:
            ToggleResult with the resulting server-side state

        Raises:
            ApiError: On non-2xx response
            requests.RequestException: On transport failure
        """
        payload = self.api.post(f"{self.LIST_PATH}{business_id}/")
        result = ToggleResult.from_dict(payload if isinstance(payload, dict) else {})

        logger.info(
            "Favorite toggled",
            operation="toggle_favorite",
            context={"business_id": business_id, "is_favorite": result.is_favorite},
        )
        return result
