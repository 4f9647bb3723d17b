"""
Unit tests for TokenStore.

Primary storage is the moto-backed DynamoDB repository; the web fallback is
a LocalStorage file under tmp_path.
"""

import json
import logging
import pytest
from unittest.mock import Mock

from moto import mock_aws
import boto3

from sessly_client.auth.token_store import TokenStore
from sessly_client.config.settings import SecretRedactionFilter
from sessly_client.database.dynamodb_client import KeyValueRepository
from sessly_client.database.exceptions import NetworkError, StorageException
from sessly_client.database.local_store import LocalStorage


def _filtered(redaction, message):
    record = logging.LogRecord("t", logging.INFO, __file__, 1, message, None, None)
    redaction.filter(record)
    return record.msg


@pytest.fixture
def primary():
    """KeyValueRepository over a moto DynamoDB table."""
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="eu-central-1")
        dynamodb.create_table(
            TableName="sessly_session",
            KeySchema=[{"AttributeName": "key", "KeyType": "HASH"}],
            AttributeDefinitions=[{"AttributeName": "key", "AttributeType": "S"}],
            BillingMode="PAY_PER_REQUEST",
        )
        yield KeyValueRepository(dynamodb_resource=dynamodb, backoff_base=0)


@pytest.fixture
def fallback(tmp_path):
    """LocalStorage file under tmp_path."""
    return LocalStorage(str(tmp_path / "local_storage.json"))


@pytest.fixture
def store(primary):
    """Native-platform TokenStore."""
    return TokenStore(primary=primary)


@pytest.fixture
def web_store(primary, fallback):
    """Web-platform TokenStore mirroring into the fallback file."""
    return TokenStore(primary=primary, fallback=fallback, web=True)


class TestSaveAndRead:
    """Tests for save_tokens(), save_access_token() and the getters."""

    def test_round_trip_on_native(self, store, primary):
        """Should persist both tokens in the primary store."""
        # Act
        store.save_tokens("access-1", "refresh-1")

        # Assert
        assert store.get_access_token() == "access-1"
        assert store.get_refresh_token() == "refresh-1"
        assert primary.get_value("access_token") == "access-1"

    def test_native_does_not_touch_fallback(self, primary, fallback):
        """Should not mirror writes on the native platform."""
        # Arrange
        store = TokenStore(primary=primary, fallback=fallback, web=False)

        # Act
        store.save_tokens("access-1", "refresh-1")

        # Assert
        assert fallback.get_item("access_token") is None

    def test_web_mirrors_writes_into_fallback(self, web_store, fallback):
        """Should mirror both tokens into the fallback on web."""
        # Act
        web_store.save_tokens("access-1", "refresh-1")

        # Assert
        assert fallback.get_item("access_token") == "access-1"
        assert fallback.get_item("refresh_token") == "refresh-1"

    def test_web_reads_fallback_when_primary_empty(self, web_store, fallback):
        """Should read the fallback when the primary has no value."""
        # Arrange
        fallback.set_item("access_token", "only-in-fallback")

        # Act & Assert
        assert web_store.get_access_token() == "only-in-fallback"

    def test_primary_value_wins_over_fallback(self, web_store, primary, fallback):
        """Should prefer the primary value when both exist."""
        # Arrange
        primary.put_value("access_token", "fresh")
        fallback.set_item("access_token", "stale")

        # Act & Assert
        assert web_store.get_access_token() == "fresh"

    def test_save_access_token_keeps_refresh_token(self, web_store, fallback):
        """Should replace only the access token."""
        # Arrange
        web_store.save_tokens("access-1", "refresh-1")

        # Act
        web_store.save_access_token("access-2")

        # Assert
        assert web_store.get_access_token() == "access-2"
        assert web_store.get_refresh_token() == "refresh-1"
        assert fallback.get_item("access_token") == "access-2"

    def test_absent_tokens_read_as_none(self, store):
        """Should return None for tokens never saved."""
        assert store.get_access_token() is None
        assert store.get_refresh_token() is None


class TestStorageFailures:
    """Tests for error propagation from the underlying stores."""

    def test_read_failure_returns_none(self):
        """Should read an unreachable store as absent."""
        # Arrange
        primary = Mock()
        primary.get_value.side_effect = NetworkError("unreachable")

        # Act & Assert
        assert TokenStore(primary=primary).get_access_token() is None

    def test_write_failure_propagates(self):
        """Should raise StorageException when a write fails."""
        # Arrange
        primary = Mock()
        primary.put_value.side_effect = NetworkError("unreachable")

        # Act & Assert
        with pytest.raises(StorageException):
            TokenStore(primary=primary).save_tokens("a", "r")

    def test_fallback_write_failure_propagates_on_web(self, primary):
        """Should raise when the web mirror write fails."""
        # Arrange
        fallback = Mock()
        fallback.set_item.side_effect = StorageException("disk full")
        store = TokenStore(primary=primary, fallback=fallback, web=True)

        # Act & Assert
        with pytest.raises(StorageException):
            store.save_tokens("a", "r")


class TestClearTokens:
    """Tests for clear_tokens() method."""

    def test_clear_removes_tokens_and_user(self, web_store, fallback):
        """Should remove tokens and the cached user from both stores."""
        # Arrange
        web_store.save_tokens("access-1", "refresh-1")
        web_store.save_user({"id": 1, "email": "ola@example.com"})

        # Act
        web_store.clear_tokens()

        # Assert
        assert web_store.get_access_token() is None
        assert web_store.get_refresh_token() is None
        assert web_store.get_user() is None
        assert fallback.get_item("user") is None

    def test_clear_is_idempotent(self, store):
        """Should succeed when nothing is stored."""
        # Act
        store.clear_tokens()
        store.clear_tokens()

        # Assert
        assert store.get_access_token() is None

    def test_clear_forgets_redacted_secrets(self, primary):
        """Should stop redacting tokens once they are cleared."""
        # Arrange
        redaction = SecretRedactionFilter()
        store = TokenStore(primary=primary, redaction_filter=redaction)
        store.save_tokens("access-secret-1", "refresh-secret-1")
        assert _filtered(redaction, "Bearer access-secret-1") == "Bearer ***REDACTED***"

        # Act
        store.clear_tokens()

        # Assert
        assert _filtered(redaction, "Bearer access-secret-1") == "Bearer access-secret-1"


class TestUserCache:
    """Tests for save_user() and get_user()."""

    def test_user_round_trip(self, store):
        """Should return the saved user record."""
        # Act
        store.save_user({"id": 3, "email": "ola@example.com", "first_name": "Ola"})

        # Assert
        assert store.get_user() == {"id": 3, "email": "ola@example.com", "first_name": "Ola"}

    def test_malformed_user_blob_reads_as_none(self, store, primary):
        """Should ignore a cached record that is not valid JSON."""
        # Arrange
        primary.put_value("user", "{broken")

        # Act & Assert
        assert store.get_user() is None


class TestLoadSession:
    """Tests for load_session() method."""

    def test_no_tokens_means_no_session(self, store):
        """Should return None when nothing is stored."""
        assert store.load_session() is None

    def test_full_pair_with_cached_user(self, store):
        """Should build a session with tokens and user."""
        # Arrange
        store.save_tokens("access-1", "refresh-1")
        store.save_user({"id": 3, "email": "ola@example.com"})

        # Act
        session = store.load_session()

        # Assert
        assert session.access_token == "access-1"
        assert session.refresh_token == "refresh-1"
        assert session.user.email == "ola@example.com"

    def test_full_pair_without_user(self, store):
        """Should build a session without a user when none is cached."""
        # Arrange
        store.save_tokens("access-1", "refresh-1")

        # Act
        session = store.load_session()

        # Assert
        assert session is not None
        assert session.user is None

    @pytest.mark.parametrize("present_key", ["access_token", "refresh_token"])
    def test_partial_pair_is_cleared(self, store, primary, present_key):
        """Should clear storage and return None for a lone token."""
        # Arrange
        primary.put_value(present_key, "lonely")

        # Act
        session = store.load_session()

        # Assert
        assert session is None
        assert primary.get_value(present_key) is None

    def test_cached_user_without_id_is_ignored(self, store, primary):
        """Should drop a cached user record that has no id."""
        # Arrange
        store.save_tokens("access-1", "refresh-1")
        primary.put_value("user", json.dumps({"email": "no-id@example.com"}))

        # Act
        session = store.load_session()

        # Assert
        assert session is not None
        assert session.user is None
