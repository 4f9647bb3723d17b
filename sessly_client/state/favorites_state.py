"""
Favorites State - client-side favorites set kept in step with the backend.

Toggling applies an optimistic local change first, then calls the backend,
then always resyncs the whole set from the favorites list endpoint. On a
failed toggle the optimistic change is rolled back before the resync, since
the failure may have happened after the server already applied the flip.

Concurrent reloads are not coalesced: whichever response is applied last
wins.
"""

from enum import Enum
from typing import Callable, Dict, List, Optional, Set

import requests

from sessly_client.api.client import ApiError
from sessly_client.api.favorites import FavoritesAPIClient
from sessly_client.domain.favorite import FavoriteEntry
from sessly_client.utils.logger import get_logger

logger = get_logger(__name__)

SYNC_ERRORS = (ApiError, requests.RequestException)

Listener = Callable[["FavoritesState"], None]


class ToggleStatus(str, Enum):
    """Where a business stands in its latest toggle."""

    IDLE = "idle"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


class FavoritesState:
    """
    Process-wide favorites container.

    State:
        ids: business ids currently shown as favorite
        entries: favorite records in backend order

    After every completed load, ``ids`` equals the set of entry ids.
    """

    def __init__(self, auth_state, favorites_api: FavoritesAPIClient):
        """
        Args:
            auth_state: AuthState consulted for an active session
            favorites_api: FavoritesAPIClient used for list/toggle calls
        """
        self.auth_state = auth_state
        self.favorites_api = favorites_api
        self._ids: Set[str] = set()
        self._entries: List[FavoriteEntry] = []
        self._status: Dict[str, ToggleStatus] = {}
        self._listeners: List[Listener] = []
        self.last_error: Optional[Exception] = None
        self.is_loading = False

    @property
    def ids(self) -> frozenset:
        return frozenset(self._ids)

    @property
    def entries(self) -> List[FavoriteEntry]:
        return list(self._entries)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def is_favorite(self, business_id: str) -> bool:
        return str(business_id) in self._ids

    def status_of(self, business_id: str) -> ToggleStatus:
        return self._status.get(str(business_id), ToggleStatus.IDLE)

    def load_favorites(self) -> List[FavoriteEntry]:
        """
        Replace ids and entries with the backend's current list.

        Without an active session both collections are emptied and no
        request is made.

        Returns:
            The loaded entries

        Raises:
            ApiError: On non-2xx response (state is left unchanged)
            requests.RequestException: On transport failure (state unchanged)
        """
        if not self.auth_state.is_logged_in:
            self._replace([])
            return []

        self.is_loading = True
        try:
            entries = self.favorites_api.list_favorites()
        except SYNC_ERRORS as e:
            self.last_error = e
            logger.error("Failed to load favorites", operation="load_favorites", error=str(e))
            raise
        finally:
            self.is_loading = False

        self.last_error = None
        self._replace(entries)
        logger.info(
            "Favorites loaded",
            operation="load_favorites",
            context={"count": len(entries)},
        )
        return self.entries

    def toggle_favorite(self, business_id: str) -> bool:
        """
        Flip a business's favorite status.

        The local state changes immediately; the final state is whatever the
        resync after the backend call reports. Failures are recorded in
        ``last_error`` rather than raised.

        Returns:
            Whether the business is a favorite after the resync
        """
        business_id = str(business_id)

        if not self.auth_state.is_logged_in:
            logger.warning(
                "Ignoring favorite toggle without an active session",
                operation="toggle_favorite",
                context={"business_id": business_id},
            )
            return self.is_favorite(business_id)

        was_favorite = business_id in self._ids
        removed = self._apply_optimistic(business_id, was_favorite)
        self._status[business_id] = ToggleStatus.PENDING
        self._notify()

        try:
            self.favorites_api.toggle_favorite(business_id)
        except SYNC_ERRORS as e:
            logger.warning(
                "Favorite toggle failed; rolling back",
                operation="toggle_favorite",
                context={"business_id": business_id, "was_favorite": was_favorite},
                error=str(e),
            )
            self._rollback(business_id, was_favorite, removed)
            self._status[business_id] = ToggleStatus.ROLLED_BACK
            self._notify()
            self._resync()
            self.last_error = e
            return self.is_favorite(business_id)

        self._status[business_id] = ToggleStatus.CONFIRMED
        self._resync()
        return self.is_favorite(business_id)

    def clear(self) -> None:
        """Forget everything (used on logout)."""
        self._status.clear()
        self.last_error = None
        self._replace([])

    def on_auth_changed(self, auth_state) -> None:
        """AuthState listener: reload on login, clear on logout."""
        if auth_state.is_logged_in:
            self._resync()
        else:
            self.clear()

    def _apply_optimistic(self, business_id: str, was_favorite: bool):
        """
        Returns:
            (index, entry) of a removed entry so it can be restored, else None
        """
        if not was_favorite:
            # The full record only arrives with the resync
            self._ids.add(business_id)
            return None

        self._ids.discard(business_id)
        for index, entry in enumerate(self._entries):
            if entry.id == business_id:
                del self._entries[index]
                return index, entry
        return None

    def _rollback(self, business_id: str, was_favorite: bool, removed) -> None:
        if was_favorite:
            self._ids.add(business_id)
            if removed is not None:
                index, entry = removed
                self._entries.insert(min(index, len(self._entries)), entry)
        else:
            self._ids.discard(business_id)

    def _resync(self) -> None:
        """Reload from the backend; a failure is recorded, not raised."""
        try:
            self.load_favorites()
        except SYNC_ERRORS:
            # load_favorites already logged and stored the error
            return

    def _replace(self, entries: List[FavoriteEntry]) -> None:
        self._entries = list(entries)
        self._ids = {entry.id for entry in self._entries}
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)
