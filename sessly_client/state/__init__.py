"""State containers - session and favorites shared across consumers."""

from .auth_state import AuthState, RegistrationOutcome
from .favorites_state import FavoritesState, ToggleStatus

__all__ = ["AuthState", "RegistrationOutcome", "FavoritesState", "ToggleStatus"]
