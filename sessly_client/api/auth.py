"""
Auth API Client

Login, registration, logout and account endpoints. Successful login and
registration persist the token pair through the TokenStore.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from sessly_client.api.client import ApiClient, ApiError, first_error_text
from sessly_client.domain.user import User
from sessly_client.utils.logger import get_logger, log_operation, mask_email

logger = get_logger(__name__)

GENERIC_LOGIN_ERROR = "Login failed. Check your username and password."
GENERIC_REGISTER_ERROR = "Registration failed. Please try again."


class AuthError(RuntimeError):
    """Login or registration failure carrying a message fit for display."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class LoginResult:
    access_token: str
    refresh_token: str
    user: Optional[User] = None


@dataclass
class RegistrationData:
    username: str
    email: str
    password: str
    password2: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        """Required fields plus only the optional fields that are filled in."""
        payload: Dict[str, Any] = {
            "username": self.username.strip(),
            "email": self.email.strip(),
            "password": self.password,
            "password2": self.password2,
        }
        for key in ("first_name", "last_name", "phone"):
            value = getattr(self, key)
            if value and value.strip():
                payload[key] = value.strip()
        return payload


def registration_error_message(payload: Any) -> str:
    """
    Turn a registration error body into one display message.

    Field errors win over ``detail``; duplicate username/email errors get a
    friendlier wording.
    """
    if not isinstance(payload, dict):
        return GENERIC_REGISTER_ERROR

    username_error = first_error_text(payload.get("username"))
    if username_error:
        if "already exists" in username_error:
            return "This username is already taken."
        return username_error

    email_error = first_error_text(payload.get("email"))
    if email_error:
        if "already exists" in email_error:
            return "This email address is already registered."
        return email_error

    password_error = first_error_text(payload.get("password")) or first_error_text(payload.get("password2"))
    if password_error:
        return password_error

    return first_error_text(payload.get("detail")) or GENERIC_REGISTER_ERROR


class AuthAPIClient:
    """Typed wrapper over the user/auth endpoints."""

    def __init__(self, api: ApiClient):
        self.api = api
        self.token_store = api.token_store

    @log_operation("login")
    def login(self, username: str, password: str) -> LoginResult:
        """
        Authenticate and persist the token pair.

        Raises:
            AuthError: If the backend rejects the credentials or the response
                carries no token pair
            requests.RequestException: On transport failure
            StorageException: If the tokens cannot be persisted
        """
        try:
            payload = self.api.post(
                ApiClient.LOGIN_PATH,
                json={"username": username, "password": password},
                authenticated=False,
            )
        except ApiError as e:
            logger.warning(
                "Login rejected",
                operation="login",
                context={"status": e.status_code},
            )
            raise AuthError(e.user_message(GENERIC_LOGIN_ERROR), e.status_code) from e

        result = self._store_login_payload(payload)
        if result is None:
            raise AuthError(GENERIC_LOGIN_ERROR)
        return result

    @log_operation("register")
    def register(self, data: RegistrationData) -> Optional[LoginResult]:
        """
        Create an account.

        Returns:
            LoginResult when the backend also issued tokens, else None

        Raises:
            AuthError: With a display message built from the field errors
            requests.RequestException: On transport failure
        """
        logger.info(
            "Registering account",
            operation="register",
            context={"username": data.username.strip(), "email": mask_email(data.email.strip())},
        )
        try:
            payload = self.api.post("/users/register/", json=data.to_payload(), authenticated=False)
        except ApiError as e:
            raise AuthError(registration_error_message(e.payload), e.status_code) from e

        return self._store_login_payload(payload)

    def logout(self) -> None:
        """
        End the session.

        The backend call is best effort; local tokens are always cleared.
        """
        try:
            if self.token_store.get_access_token():
                self.api.post("/users/logout/")
        except (ApiError, requests.RequestException) as e:
            logger.warning(
                "Backend logout failed; continuing with local logout",
                operation="logout",
                error=str(e),
            )
        finally:
            self.token_store.clear_tokens()
        logger.info("Logged out", operation="logout")

    def get_current_user(self) -> User:
        payload = self.api.get("/users/me/")
        if not isinstance(payload, dict):
            raise ValueError("Unexpected /users/me/ response")
        return User.from_dict(payload)

    @log_operation("change_password")
    def change_password(self, old_password: str, new_password: str) -> None:
        self.api.post(
            "/users/change-password/",
            json={"old_password": old_password, "new_password": new_password},
        )

    def update_profile(self, fields: Dict[str, Any]) -> User:
        payload = self.api.patch("/users/me/", json=fields)
        if not isinstance(payload, dict):
            raise ValueError("Unexpected /users/me/ update response")
        user = User.from_dict(payload)
        self.token_store.save_user(user.to_dict())
        return user

    def _store_login_payload(self, payload: Any) -> Optional[LoginResult]:
        if not isinstance(payload, dict):
            return None

        access = payload.get("access")
        refresh = payload.get("refresh")
        if not access or not refresh:
            logger.warning("Response carried no token pair", operation="store_tokens")
            return None

        self.token_store.save_tokens(access, refresh)

        user = None
        user_data = payload.get("user")
        if isinstance(user_data, dict):
            try:
                user = User.from_dict(user_data)
                self.token_store.save_user(user.to_dict())
            except ValueError as e:
                logger.warning("Ignoring malformed user in login response", operation="store_tokens", error=str(e))

        return LoginResult(access_token=access, refresh_token=refresh, user=user)
