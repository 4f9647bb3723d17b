"""
Authenticated HTTP client for the Sessly REST backend.

Single choke point for backend calls. Every request gets the bearer token
from the token store, mutating requests get the trailing slash the backend
requires, and a 401 triggers at most one transparent token refresh followed
by one retry of the original request.
"""

from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlsplit, urlunsplit

import requests

from sessly_client.database.exceptions import StorageException
from sessly_client.utils.logger import get_logger

logger = get_logger(__name__)

MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


class ApiError(RuntimeError):
    """Raised when the backend answers with a non-2xx status."""

    def __init__(
        self,
        status_code: int,
        method: str,
        path: str,
        payload: Any = None,
    ) -> None:
        self.status_code = status_code
        self.method = method
        self.path = path
        self.payload = payload

        detail = self.user_message(default="")
        detail_fragment = f" - {detail}" if detail else ""
        super().__init__(f"{method} {path} failed (HTTP {status_code}){detail_fragment}")

    @property
    def is_unauthorized(self) -> bool:
        return self.status_code == 401

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    def user_message(self, default: str = "Request failed") -> str:
        """
        Derive a human-readable reason from the backend error body.

        Looks at ``detail``, ``message`` and ``non_field_errors`` first, then
        the first field error. Falls back to ``default``.
        """
        payload = self.payload
        if isinstance(payload, str):
            return payload.strip() or default
        if not isinstance(payload, dict):
            return default

        for key in ("detail", "message", "non_field_errors", "error"):
            text = first_error_text(payload.get(key))
            if text:
                return text

        for value in payload.values():
            text = first_error_text(value)
            if text:
                return text

        return default


def first_error_text(value: Any) -> Optional[str]:
    """Return the first message string found in a DRF-style error value."""
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, list):
        for item in value:
            text = first_error_text(item)
            if text:
                return text
    return None


def normalize_path(method: str, path: str) -> str:
    """
    Append the trailing slash the backend expects on mutating requests.

    The query string, if any, is preserved after the slash:
    ``/businesses/services?x=1`` becomes ``/businesses/services/?x=1``.
    """
    if method.upper() not in MUTATING_METHODS:
        return path

    parts = urlsplit(path)
    if parts.path.endswith("/"):
        return path

    return urlunsplit(parts._replace(path=parts.path + "/"))


@dataclass(frozen=True)
class RequestContext:
    """
    One logical request.

    ``retried`` marks the single replay after a token refresh. A new
    context is created per call, so the marker never leaks between
    concurrent requests.
    """

    method: str
    path: str
    params: Optional[Dict[str, Any]] = None
    json: Any = None
    authenticated: bool = True
    retried: bool = False


class ApiClient:
    """
    Client for the Sessly REST API.

    Requires a TokenStore for reading the bearer token and for the refresh
    path's writes.
    """

    LOGIN_PATH = "/users/login/"
    REFRESH_PATH = "/users/token/refresh/"

    def __init__(
        self,
        base_url: str,
        token_store,
        session: Optional[requests.Session] = None,
        timeout: float = 60.0,
    ):
        """
        Initialize API client.

        Args:
            base_url: API root, e.g. "https://api.example.com/api"
            token_store: TokenStore providing and persisting tokens
            session: Optional requests.Session (default: new session)
            timeout: Per-request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.token_store = token_store
        self.session = session or requests.Session()
        self.timeout = timeout
        self._session_expired_listeners: List[Callable[[], None]] = []

    def add_session_expired_listener(self, callback: Callable[[], None]) -> None:
        """Register a callback run after a failed refresh has cleared the session."""
        self._session_expired_listeners.append(callback)

    def get(self, path: str, params: Optional[Dict[str, Any]] = None, **kwargs) -> Any:
        return self.request("GET", path, params=params, **kwargs)

    def post(self, path: str, json: Any = None, **kwargs) -> Any:
        return self.request("POST", path, json=json, **kwargs)

    def put(self, path: str, json: Any = None, **kwargs) -> Any:
        return self.request("PUT", path, json=json, **kwargs)

    def patch(self, path: str, json: Any = None, **kwargs) -> Any:
        return self.request("PATCH", path, json=json, **kwargs)

    def delete(self, path: str, **kwargs) -> Any:
        return self.request("DELETE", path, **kwargs)

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        authenticated: bool = True,
    ) -> Any:
        """
        Send a request and return the parsed response body.

        Args:
            method: HTTP method
            path: Path under the API root (e.g. "/users/favorites/")
            params: Optional query parameters
            json: Optional JSON body
            authenticated: Attach the bearer token when one is stored

        Returns:
            Parsed JSON body, raw text for non-JSON bodies, or None when empty

        Raises:
            ApiError: On a non-2xx response (after the refresh attempt, if any)
            requests.RequestException: On transport failure
        """
        context = RequestContext(
            method=method.upper(),
            path=normalize_path(method, path),
            params=params,
            json=json,
            authenticated=authenticated,
        )
        return self._execute(context)

    def _execute(self, context: RequestContext) -> Any:
        response = self._send(context)

        if 200 <= response.status_code < 300:
            return self._parse_body(response)

        error = ApiError(
            status_code=response.status_code,
            method=context.method,
            path=context.path,
            payload=self._parse_error_payload(response),
        )

        if self._should_refresh(context, response.status_code):
            if self._refresh_access_token():
                logger.info(
                    "Retrying request with refreshed token",
                    operation="retry_after_refresh",
                    context={"method": context.method, "path": context.path},
                )
                return self._execute(replace(context, retried=True))

        logger.warning(
            "Request failed",
            operation="api_request",
            context={
                "method": context.method,
                "path": context.path,
                "status": response.status_code,
                "retried": context.retried,
            },
            error=str(error),
        )
        raise error

    def _send(self, context: RequestContext) -> requests.Response:
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if context.authenticated:
            token = self.token_store.get_access_token()
            if token:
                headers["Authorization"] = f"Bearer {token}"

        url = self._build_url(context.path)
        logger.debug(
            "Sending request",
            operation="api_request",
            context={
                "method": context.method,
                "path": context.path,
                "authenticated": "Authorization" in headers,
                "retried": context.retried,
            },
        )

        try:
            return self.session.request(
                context.method,
                url,
                params=context.params,
                json=context.json,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(
                "Transport error",
                operation="api_request",
                context={"method": context.method, "path": context.path},
                error=str(e),
            )
            raise

    def _should_refresh(self, context: RequestContext, status_code: int) -> bool:
        if status_code != 401 or context.retried:
            return False
        path = urlsplit(context.path).path
        return path not in (self.LOGIN_PATH, self.REFRESH_PATH)

    def _refresh_access_token(self) -> bool:
        """
        Exchange the refresh token for a new access token.

        Returns:
            True when a new access token was obtained and stored. False when
            no refresh token exists or the refresh failed; in the latter case
            the stored session is cleared.
        """
        refresh_token = self.token_store.get_refresh_token()
        if not refresh_token:
            logger.warning("No refresh token stored; cannot refresh", operation="refresh_token")
            return False

        try:
            response = self.session.request(
                "POST",
                self._build_url(self.REFRESH_PATH),
                json={"refresh": refresh_token},
                headers={"Accept": "application/json", "Content-Type": "application/json"},
                timeout=self.timeout,
            )
            if not 200 <= response.status_code < 300:
                raise ApiError(
                    status_code=response.status_code,
                    method="POST",
                    path=self.REFRESH_PATH,
                    payload=self._parse_error_payload(response),
                )

            body = self._parse_body(response)
            access_token = body.get("access") if isinstance(body, dict) else None
            if not access_token:
                raise ValueError("Refresh response did not contain an access token")

            rotated_refresh = body.get("refresh")
            if rotated_refresh:
                self.token_store.save_tokens(access_token, rotated_refresh)
            else:
                self.token_store.save_access_token(access_token)

        except (requests.RequestException, ApiError, ValueError, StorageException) as e:
            logger.error("Token refresh failed; clearing session", operation="refresh_token", error=str(e))
            self._expire_session()
            return False

        logger.info("Access token refreshed", operation="refresh_token")
        return True

    def _expire_session(self) -> None:
        try:
            self.token_store.clear_tokens()
        except StorageException as e:
            logger.error("Could not clear expired session", operation="refresh_token", error=str(e))

        for callback in list(self._session_expired_listeners):
            callback()

    def _build_url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self.base_url}{path}"

    @staticmethod
    def _parse_body(response: requests.Response) -> Any:
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    @staticmethod
    def _parse_error_payload(response: requests.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return (response.text or "")[:200]
