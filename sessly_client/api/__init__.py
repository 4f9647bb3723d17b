"""API module - authenticated HTTP client and resource clients."""

from .client import ApiClient, ApiError, RequestContext, normalize_path
from .auth import AuthAPIClient, AuthError, LoginResult, RegistrationData
from .appointments import AppointmentsAPIClient, filter_appointments
from .businesses import BusinessesAPIClient
from .envelope import extract_list
from .favorites import FavoritesAPIClient

__all__ = [
    "ApiClient",
    "ApiError",
    "RequestContext",
    "normalize_path",
    "AuthAPIClient",
    "AuthError",
    "LoginResult",
    "RegistrationData",
    "AppointmentsAPIClient",
    "filter_appointments",
    "BusinessesAPIClient",
    "extract_list",
    "FavoritesAPIClient",
]
