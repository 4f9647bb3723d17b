"""
Application context - builds and owns the client's long-lived objects.

Consumers receive an AppContext and read the state containers and resource
clients from it; nothing in the package reaches for module-level globals.
"""

from typing import Any, Optional

import boto3
import requests

from sessly_client.api.appointments import AppointmentsAPIClient
from sessly_client.api.auth import AuthAPIClient
from sessly_client.api.businesses import BusinessesAPIClient
from sessly_client.api.client import ApiClient
from sessly_client.api.favorites import FavoritesAPIClient
from sessly_client.auth.token_store import TokenStore
from sessly_client.booking.flow import BookingFlow
from sessly_client.config.settings import Settings, get_redaction_filter
from sessly_client.database.dynamodb_client import KeyValueRepository
from sessly_client.database.local_store import LocalStorage
from sessly_client.state.auth_state import AuthState
from sessly_client.state.favorites_state import FavoritesState
from sessly_client.utils.logger import get_logger

logger = get_logger(__name__)


class AppContext:
    """
    Wiring for one running client.

    Lifecycle: construct, ``start()`` to restore the persisted session,
    ``close()`` on shutdown.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        dynamodb_resource: Optional[Any] = None,
        http_session: Optional[requests.Session] = None,
    ):
        self.settings = settings or Settings()

        primary = KeyValueRepository(
            table_name=self.settings.token_table,
            dynamodb_resource=dynamodb_resource
            or boto3.resource("dynamodb", region_name=self.settings.aws_region),
        )
        fallback = LocalStorage(self.settings.local_storage_path) if self.settings.is_web() else None

        self.token_store = TokenStore(
            primary=primary,
            fallback=fallback,
            web=self.settings.is_web(),
            redaction_filter=get_redaction_filter(),
        )
        self.api = ApiClient(
            base_url=self.settings.api_base_url,
            token_store=self.token_store,
            session=http_session,
            timeout=self.settings.timeout,
        )

        self.auth_api = AuthAPIClient(self.api)
        self.appointments_api = AppointmentsAPIClient(self.api)
        self.businesses_api = BusinessesAPIClient(self.api)
        self.favorites_api = FavoritesAPIClient(self.api)

        self.auth = AuthState(self.auth_api, self.token_store)
        self.favorites = FavoritesState(self.auth, self.favorites_api)

        self.auth.subscribe(self.favorites.on_auth_changed)
        self.api.add_session_expired_listener(self.auth.handle_session_expired)

    def start(self) -> bool:
        """
        Restore the persisted session (favorites load follows via the auth listener).

        Returns:
            True when a session was restored
        """
        restored = self.auth.restore_session()
        logger.info(
            "Client started",
            operation="app_start",
            context={"platform": self.settings.platform, "logged_in": restored},
        )
        return restored

    def booking_flow(self, business_slug: str, service_id: str) -> BookingFlow:
        return BookingFlow(self.appointments_api, business_slug, service_id)

    def close(self) -> None:
        self.api.session.close()
