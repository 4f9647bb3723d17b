"""
Auth State - session state shared by everything that needs to know who is
logged in.

One instance per AppContext. Mutation only happens through its own
operations; consumers read ``user``/``is_logged_in`` and subscribe for
change notifications.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional

import requests

from sessly_client.api.auth import AuthAPIClient, AuthError, RegistrationData
from sessly_client.api.client import ApiError
from sessly_client.auth.token_store import TokenStore
from sessly_client.domain.user import Session, User
from sessly_client.utils.logger import get_logger

logger = get_logger(__name__)

Listener = Callable[["AuthState"], None]


@dataclass
class RegistrationOutcome:
    success: bool
    error: Optional[str] = None


class AuthState:
    """Process-wide session container."""

    def __init__(self, auth_api: AuthAPIClient, token_store: TokenStore):
        self.auth_api = auth_api
        self.token_store = token_store
        self._session: Optional[Session] = None
        self._listeners: List[Listener] = []

    @property
    def session(self) -> Optional[Session]:
        """
        Current session, or None when logged out.

        Tokens are read from the token store, which the HTTP client updates
        when it refreshes them.
        """
        if self._session is None:
            return None
        return Session(
            access_token=self.token_store.get_access_token(),
            refresh_token=self.token_store.get_refresh_token(),
            user=self._session.user,
        )

    @property
    def user(self) -> Optional[User]:
        return self._session.user if self._session else None

    @property
    def is_logged_in(self) -> bool:
        return self._session is not None and self._session.is_valid()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a change listener.

        Returns:
            Function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def restore_session(self) -> bool:
        """
        Load the persisted session at startup.

        Uses the cached user record when present, otherwise asks the backend.
        A 401 from that lookup (after the client's own refresh attempt)
        leaves the app logged out.

        Returns:
            True when a session was restored

        Raises:
            requests.RequestException: If the user lookup cannot reach the backend
        """
        session = self.token_store.load_session()
        if session is None:
            self._set_session(None)
            return False

        if session.user is None:
            try:
                session.user = self.auth_api.get_current_user()
                self.token_store.save_user(session.user.to_dict())
            except ApiError as e:
                if e.is_unauthorized:
                    logger.warning("Stored session rejected by backend", operation="restore_session")
                    self.token_store.clear_tokens()
                    self._set_session(None)
                    return False
                raise

        logger.info(
            "Session restored",
            operation="restore_session",
            context={"user_id": str(session.user.id) if session.user else None},
        )
        self._set_session(session)
        return True

    def login(self, username: str, password: str) -> Optional[User]:
        """
        Log in with credentials.

        Returns:
            The logged-in user (None if the backend did not return one and
            ``/users/me/`` could not be read)

        Raises:
            AuthError: With a display message when credentials are rejected
        """
        result = self.auth_api.login(username, password)

        user = result.user
        if user is None:
            user = self._fetch_user_quietly()

        self._set_session(
            Session(access_token=result.access_token, refresh_token=result.refresh_token, user=user)
        )
        return user

    def register(self, data: RegistrationData) -> RegistrationOutcome:
        """
        Register an account; logs in immediately when tokens come back.

        Never raises for backend rejections: the outcome carries the message.
        """
        try:
            result = self.auth_api.register(data)
        except AuthError as e:
            return RegistrationOutcome(success=False, error=e.message)
        except requests.RequestException as e:
            logger.error("Registration request failed", operation="register", error=str(e))
            return RegistrationOutcome(success=False, error="Could not reach the server.")

        if result is not None:
            user = result.user or self._fetch_user_quietly()
            self._set_session(
                Session(
                    access_token=result.access_token,
                    refresh_token=result.refresh_token,
                    user=user,
                )
            )
        return RegistrationOutcome(success=True)

    def logout(self) -> None:
        """
        Log out locally and, best effort, on the backend.

        The in-memory session is dropped even when clearing storage fails;
        the storage error is re-raised afterwards.
        """
        try:
            self.auth_api.logout()
        finally:
            self._set_session(None)

    def refresh_user(self) -> Optional[User]:
        """Re-read the profile from the backend."""
        if not self.is_logged_in:
            return None
        user = self.auth_api.get_current_user()
        self.token_store.save_user(user.to_dict())
        self._session.user = user
        self._notify()
        return user

    def handle_session_expired(self) -> None:
        """Called when the HTTP client gave up on refreshing the token."""
        if self._session is None:
            return
        logger.warning("Session expired; logging out", operation="session_expired")
        self._set_session(None)

    def _fetch_user_quietly(self) -> Optional[User]:
        try:
            user = self.auth_api.get_current_user()
        except (ApiError, requests.RequestException, ValueError) as e:
            logger.warning("Could not load user profile", operation="fetch_user", error=str(e))
            return None
        self.token_store.save_user(user.to_dict())
        return user

    def _set_session(self, session: Optional[Session]) -> None:
        changed = self._session is not session
        self._session = session
        if changed:
            self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)
