"""
Unit tests for ApiClient.

Covers request decoration (bearer header, trailing slash), error surfacing
and the one-shot token refresh protocol.
"""

from unittest.mock import Mock

import pytest
import requests

from sessly_client.api.client import ApiClient, ApiError, normalize_path
from tests.unit.helpers import make_response

BASE = "https://api.sessly.test/api"


def _called_urls(http_session):
    return [call.args[1] for call in http_session.request.call_args_list]


class TestNormalizePath:
    """Trailing-slash convention for mutating methods."""

    def test_post_without_slash_gets_one(self):
        """Should append a slash to a POST path."""
        assert normalize_path("POST", "/businesses/services") == "/businesses/services/"

    def test_post_with_query_keeps_query_after_slash(self):
        """Should insert the slash before the query string."""
        assert normalize_path("POST", "/businesses/services?x=1") == "/businesses/services/?x=1"

    @pytest.mark.parametrize("method", ["put", "PATCH", "delete"])
    def test_other_mutating_methods(self, method):
        """Should apply to PUT, PATCH and DELETE in any case."""
        assert normalize_path(method, "/businesses/me") == "/businesses/me/"

    def test_existing_slash_untouched(self):
        """Should not double an existing trailing slash."""
        assert normalize_path("POST", "/users/login/") == "/users/login/"

    def test_get_is_never_rewritten(self):
        """Should leave GET paths as given."""
        assert normalize_path("GET", "/businesses/services") == "/businesses/services"


class TestRequestDecoration:
    """Tests for URL, header and timeout handling on outgoing requests."""

    def test_post_is_sent_with_trailing_slash(self, api_client, http_session):
        """Should send POST to the slash-terminated URL."""
        # Arrange
        http_session.request.return_value = make_response(201, {"id": 1})

        # Act
        api_client.post("/businesses/services", json={"name": "Cut"})

        # Assert
        method, url = http_session.request.call_args.args
        assert method == "POST"
        assert url == f"{BASE}/businesses/services/"

    def test_post_with_query_is_sent_with_slash_before_query(self, api_client, http_session):
        """Should keep the query string after the inserted slash."""
        # Arrange
        http_session.request.return_value = make_response(201, {"id": 1})

        # Act
        api_client.post("/businesses/services?x=1")

        # Assert
        assert http_session.request.call_args.args[1] == f"{BASE}/businesses/services/?x=1"

    def test_bearer_header_attached_when_token_stored(self, api_client, http_session):
        """Should send the stored access token and configured timeout."""
        # Arrange
        http_session.request.return_value = make_response(200, [])

        # Act
        api_client.get("/users/favorites/")

        # Assert
        headers = http_session.request.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer access-old-1234"
        assert http_session.request.call_args.kwargs["timeout"] == 5

    def test_no_bearer_header_without_token(self, http_session, token_store):
        """Should omit Authorization when no token is stored."""
        # Arrange
        client = ApiClient(BASE, token_store, session=http_session)
        http_session.request.return_value = make_response(200, [])

        # Act
        client.get("/businesses/")

        # Assert
        assert "Authorization" not in http_session.request.call_args.kwargs["headers"]

    def test_unauthenticated_request_skips_header(self, api_client, http_session):
        """Should omit Authorization for authenticated=False calls."""
        # Arrange
        http_session.request.return_value = make_response(200, {"access": "a", "refresh": "r"})

        # Act
        api_client.post("/users/login/", json={}, authenticated=False)

        # Assert
        assert "Authorization" not in http_session.request.call_args.kwargs["headers"]

    def test_empty_body_returns_none(self, api_client, http_session):
        """Should return None for a 204 response."""
        http_session.request.return_value = make_response(204)

        assert api_client.delete("/appointments/5") is None


class TestErrorSurfacing:
    """Tests for ApiError construction and messages."""

    def test_non_2xx_raises_api_error_with_payload(self, api_client, http_session):
        """Should raise ApiError carrying the parsed error body."""
        # Arrange
        http_session.request.return_value = make_response(
            400, {"start_time": ["This slot is already taken."]}
        )

        # Act
        with pytest.raises(ApiError) as exc_info:
            api_client.post("/businesses/salon/appointments/", json={})

        # Assert
        error = exc_info.value
        assert error.status_code == 400
        assert error.payload == {"start_time": ["This slot is already taken."]}
        assert error.user_message() == "This slot is already taken."

    def test_detail_preferred_for_user_message(self):
        """Should prefer the detail field over field errors."""
        error = ApiError(403, "GET", "/x/", {"detail": "Forbidden", "other": ["no"]})

        assert error.user_message() == "Forbidden"

    def test_user_message_falls_back_to_default(self):
        """Should return the given default when the body has no message."""
        assert ApiError(500, "GET", "/x/", None).user_message("Try again") == "Try again"

    def test_non_json_error_body_kept_as_text(self, api_client, http_session):
        """Should keep a non-JSON error body as raw text."""
        # Arrange
        http_session.request.return_value = make_response(502, text="Bad Gateway")

        # Act
        with pytest.raises(ApiError) as exc_info:
            api_client.get("/businesses/")

        # Assert
        assert exc_info.value.payload == "Bad Gateway"

    def test_transport_error_propagates_without_touching_session(
        self, api_client, http_session, kv_store
    ):
        """Should re-raise transport errors and keep the stored tokens."""
        # Arrange
        http_session.request.side_effect = requests.ConnectionError("unreachable")

        # Act
        with pytest.raises(requests.ConnectionError):
            api_client.get("/users/favorites/")

        # Assert
        assert kv_store.data["access_token"] == "access-old-1234"
        assert http_session.request.call_count == 1


class TestTokenRefresh:
    """401 -> refresh -> retry once."""

    def test_refresh_then_retry_returns_retried_response(self, api_client, http_session, kv_store):
        """Should refresh once, retry with the new token and return its body."""
        # Arrange
        http_session.request.side_effect = [
            make_response(401, {"detail": "Token expired"}),
            make_response(200, {"access": "access-new-9999"}),
            make_response(200, [{"id": "b1"}]),
        ]

        # Act
        result = api_client.get("/users/favorites/")

        # Assert
        assert result == [{"id": "b1"}]
        assert _called_urls(http_session) == [
            f"{BASE}/users/favorites/",
            f"{BASE}/users/token/refresh/",
            f"{BASE}/users/favorites/",
        ]
        refresh_call = http_session.request.call_args_list[1]
        assert refresh_call.kwargs["json"] == {"refresh": "refresh-5678"}
        retry_headers = http_session.request.call_args_list[2].kwargs["headers"]
        assert retry_headers["Authorization"] == "Bearer access-new-9999"
        assert kv_store.data["access_token"] == "access-new-9999"
        assert kv_store.data["refresh_token"] == "refresh-5678"

    def test_rotated_refresh_token_is_persisted(self, api_client, http_session, kv_store):
        """Should store a rotated refresh token from the refresh response."""
        # Arrange
        http_session.request.side_effect = [
            make_response(401, {"detail": "Token expired"}),
            make_response(200, {"access": "access-new-9999", "refresh": "refresh-new-0000"}),
            make_response(200, {"ok": True}),
        ]

        # Act
        api_client.get("/users/me/")

        # Assert
        assert kv_store.data["refresh_token"] == "refresh-new-0000"

    def test_second_401_is_not_refreshed_again(self, api_client, http_session):
        """Should surface a 401 on the retried request without a second refresh."""
        # Arrange
        http_session.request.side_effect = [
            make_response(401, {"detail": "expired"}),
            make_response(200, {"access": "access-new-9999"}),
            make_response(401, {"detail": "still no"}),
        ]

        # Act
        with pytest.raises(ApiError) as exc_info:
            api_client.get("/users/favorites/")

        # Assert
        assert exc_info.value.status_code == 401
        assert _called_urls(http_session).count(f"{BASE}/users/token/refresh/") == 1
        assert http_session.request.call_count == 3

    def test_refresh_failure_clears_session_and_raises_original(
        self, api_client, http_session, kv_store
    ):
        """Should clear storage, notify listeners and raise the original 401."""
        # Arrange
        kv_store.data["user"] = '{"id": 1, "email": "a@b.pl"}'
        expired = Mock()
        api_client.add_session_expired_listener(expired)
        http_session.request.side_effect = [
            make_response(401, {"detail": "Token expired"}),
            make_response(401, {"detail": "Token is invalid or expired"}),
        ]

        # Act
        with pytest.raises(ApiError) as exc_info:
            api_client.get("/users/favorites/")

        # Assert
        assert exc_info.value.status_code == 401
        assert exc_info.value.path == "/users/favorites/"
        assert kv_store.data == {}
        expired.assert_called_once_with()

    def test_refresh_network_error_clears_session(self, api_client, http_session, kv_store):
        """Should treat a transport failure during refresh as a failed refresh."""
        # Arrange
        http_session.request.side_effect = [
            make_response(401, {"detail": "Token expired"}),
            requests.Timeout("refresh timed out"),
        ]

        # Act
        with pytest.raises(ApiError):
            api_client.get("/users/favorites/")

        # Assert
        assert "access_token" not in kv_store.data
        assert "refresh_token" not in kv_store.data

    def test_missing_refresh_token_propagates_401_without_refresh(
        self, http_session, kv_store, token_store
    ):
        """Should not call the refresh endpoint without a refresh token."""
        # Arrange
        kv_store.data["access_token"] = "access-only-1111"
        client = ApiClient(BASE, token_store, session=http_session)
        http_session.request.return_value = make_response(401, {"detail": "expired"})

        # Act
        with pytest.raises(ApiError):
            client.get("/users/favorites/")

        # Assert
        assert http_session.request.call_count == 1

    def test_login_401_is_not_refreshed(self, api_client, http_session):
        """Should pass a login 401 straight through."""
        # Arrange
        http_session.request.return_value = make_response(
            401, {"detail": "No active account found with the given credentials"}
        )

        # Act
        with pytest.raises(ApiError):
            api_client.post("/users/login/", json={"username": "u", "password": "p"})

        # Assert
        assert http_session.request.call_count == 1

    def test_403_does_not_trigger_refresh(self, api_client, http_session):
        """Should only refresh on 401."""
        # Arrange
        http_session.request.return_value = make_response(403, {"detail": "Forbidden"})

        # Act
        with pytest.raises(ApiError):
            api_client.get("/businesses/me/")

        # Assert
        assert http_session.request.call_count == 1

    def test_retry_marker_does_not_leak_between_requests(self, api_client, http_session):
        """Should allow one refresh per logical request."""
        # Arrange
        http_session.request.side_effect = [
            make_response(401, {}),
            make_response(200, {"access": "access-a-1111"}),
            make_response(200, {"n": 1}),
            make_response(401, {}),
            make_response(200, {"access": "access-b-2222"}),
            make_response(200, {"n": 2}),
        ]

        # Act
        first = api_client.get("/users/me/")
        second = api_client.get("/users/me/")

        # Assert
        assert first == {"n": 1}
        assert second == {"n": 2}
        assert _called_urls(http_session).count(f"{BASE}/users/token/refresh/") == 2
