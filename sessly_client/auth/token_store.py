"""
Token Store - persists the access/refresh token pair and the cached user.

Primary storage is the durable per-device store (DynamoDB). On the web
platform every write is mirrored into the local fallback store, and reads
that miss the primary store consult the fallback.
"""

import json
from typing import Any, Dict, Optional

from sessly_client.config.settings import SecretRedactionFilter
from sessly_client.database.exceptions import StorageException
from sessly_client.domain.user import Session, User
from sessly_client.utils.logger import get_logger, mask_token

logger = get_logger(__name__)

ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"
USER_KEY = "user"


class TokenStore:
    """
    Durable storage for session credentials.

    Design Note:
        Primary and fallback writes are not transactional. A crash between
        them can leave the fallback one token behind the primary store; reads
        always prefer the primary value so the stale mirror is only used when
        the primary store has nothing.
    """

    def __init__(
        self,
        primary,
        fallback=None,
        web: bool = False,
        redaction_filter: Optional[SecretRedactionFilter] = None,
    ):
        """
        Initialize TokenStore.

        Args:
            primary: KeyValueRepository (get_value/put_value/delete_values)
            fallback: LocalStorage (get_item/set_item/remove_items); used on web only
            web: True when running on the web platform
            redaction_filter: Optional log filter kept in sync with live tokens
        """
        self.primary = primary
        self.fallback = fallback
        self.web = web and fallback is not None
        self.redaction_filter = redaction_filter

    def save_tokens(self, access_token: str, refresh_token: str) -> None:
        """
        Persist both tokens.

        Raises:
            StorageException: If the primary or fallback write fails. The
                caller must treat the session as not persisted.
        """
        try:
            self.primary.put_value(ACCESS_TOKEN_KEY, access_token)
            self.primary.put_value(REFRESH_TOKEN_KEY, refresh_token)

            if self.web:
                self.fallback.set_item(ACCESS_TOKEN_KEY, access_token)
                self.fallback.set_item(REFRESH_TOKEN_KEY, refresh_token)
        except StorageException as e:
            logger.error("Error saving tokens", operation="save_tokens", error=str(e))
            raise

        self._track_secret(access_token)
        self._track_secret(refresh_token)
        logger.info(
            "Tokens saved",
            operation="save_tokens",
            context={"access": mask_token(access_token), "web_mirror": self.web},
        )

    def save_access_token(self, access_token: str) -> None:
        """
        Persist a refreshed access token, leaving the refresh token as is.

        Raises:
            StorageException: If the write fails
        """
        try:
            self.primary.put_value(ACCESS_TOKEN_KEY, access_token)
            if self.web:
                self.fallback.set_item(ACCESS_TOKEN_KEY, access_token)
        except StorageException as e:
            logger.error(
                "Error saving access token", operation="save_access_token", error=str(e)
            )
            raise

        self._track_secret(access_token)
        logger.info(
            "Access token updated",
            operation="save_access_token",
            context={"access": mask_token(access_token)},
        )

    def get_access_token(self) -> Optional[str]:
        """Return the stored access token, or None if absent or unreadable."""
        return self._read(ACCESS_TOKEN_KEY)

    def get_refresh_token(self) -> Optional[str]:
        """Return the stored refresh token, or None if absent or unreadable."""
        return self._read(REFRESH_TOKEN_KEY)

    def clear_tokens(self) -> None:
        """
        Remove both tokens and the cached user. Idempotent.

        Raises:
            StorageException: If the underlying delete fails
        """
        previous = (self._read(ACCESS_TOKEN_KEY), self._read(REFRESH_TOKEN_KEY))
        keys = (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, USER_KEY)
        try:
            self.primary.delete_values(keys)
            if self.web:
                self.fallback.remove_items(keys)
        except StorageException as e:
            logger.error("Error clearing tokens", operation="clear_tokens", error=str(e))
            raise

        if self.redaction_filter is not None:
            for token in previous:
                self.redaction_filter.discard_secret(token)
        logger.info("Tokens cleared", operation="clear_tokens")

    def save_user(self, user: Dict[str, Any]) -> None:
        """
        Cache the serialized user record next to the tokens.

        Raises:
            StorageException: If the write fails
        """
        payload = json.dumps(user, ensure_ascii=False, default=str)
        self.primary.put_value(USER_KEY, payload)
        if self.web:
            self.fallback.set_item(USER_KEY, payload)

    def get_user(self) -> Optional[Dict[str, Any]]:
        """Return the cached user record, or None if absent or malformed."""
        raw = self._read(USER_KEY)
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Cached user record is malformed", operation="get_user", error=str(e))
            return None
        return data if isinstance(data, dict) else None

    def load_session(self) -> Optional[Session]:
        """
        Load the persisted session.

        A partial pair (one token without the other) is invalid: storage is
        cleared and None is returned.
        """
        session = Session(
            access_token=self.get_access_token(),
            refresh_token=self.get_refresh_token(),
        )

        if session.is_partial():
            logger.warning(
                "Partial token pair found; clearing session",
                operation="load_session",
                context={
                    "has_access": bool(session.access_token),
                    "has_refresh": bool(session.refresh_token),
                },
            )
            try:
                self.clear_tokens()
            except StorageException:
                # Already logged; the session stays logged out either way
                pass
            return None

        if not session.is_valid():
            return None

        cached_user = self.get_user()
        if cached_user:
            try:
                session.user = User.from_dict(cached_user)
            except ValueError as e:
                logger.warning("Ignoring cached user", operation="load_session", error=str(e))
        return session

    def _read(self, key: str) -> Optional[str]:
        try:
            value = self.primary.get_value(key)
            if not value and self.web:
                value = self.fallback.get_item(key)
        except StorageException as e:
            logger.error(
                "Error reading from token store",
                operation="token_store_read",
                context={"key": key},
                error=str(e),
            )
            return None

        if value and key != USER_KEY:
            self._track_secret(value)
        return value or None

    def _track_secret(self, token: Optional[str]) -> None:
        if self.redaction_filter is not None:
            self.redaction_filter.add_secret(token)
