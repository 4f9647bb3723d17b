"""
User and Session domain models.

A Session couples the authenticated user with the token pair. Both tokens
must be present for a session to count as logged in.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Optional, Union


@dataclass
class User:
    """
    Authenticated account as returned by ``/users/me/``.

    Attributes:
        id: Backend user identifier (int or UUID string)
        email: Account email
        username: Login name
        first_name: Optional first name
        last_name: Optional last name
        phone: Optional phone number
        avatar: Optional avatar URL
        extra_fields: Any other keys sent by the backend
    """

    id: Union[int, str]
    email: str = ""
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    avatar: Optional[str] = None
    extra_fields: Dict[str, Any] = field(default_factory=dict)

    CORE_FIELDS = (
        "id",
        "email",
        "username",
        "first_name",
        "last_name",
        "phone",
        "avatar",
    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        """
        Create User from a backend payload.

        Unknown keys land in extra_fields.

        Raises:
            ValueError: If the payload has no id
        """
        if "id" not in data or data["id"] is None:
            raise ValueError("User payload is missing 'id'")

        core_data = {k: v for k, v in data.items() if k in cls.CORE_FIELDS}
        extra_data = {k: v for k, v in data.items() if k not in cls.CORE_FIELDS}
        if core_data.get("email") is None:
            core_data["email"] = ""
        return cls(**core_data, extra_fields=extra_data)

    def to_dict(self) -> Dict[str, Any]:
        """Flatten back into the backend shape (extra fields at top level)."""
        data = asdict(self)
        extra = data.pop("extra_fields", {})
        data.update(extra)
        return data

    @property
    def display_name(self) -> str:
        """Best human-readable name available."""
        full_name = " ".join(p for p in (self.first_name, self.last_name) if p).strip()
        if full_name:
            return full_name
        name = self.extra_fields.get("name")
        if name:
            return str(name)
        return self.username or self.email or str(self.id)


@dataclass
class Session:
    """
    Authenticated session: user plus token pair.

    Design Note:
        A session with only one of the two tokens is not a valid session.
        Callers must treat it as logged out and clear storage.
    """

    access_token: Optional[str]
    refresh_token: Optional[str]
    user: Optional[User] = None

    def is_valid(self) -> bool:
        """True only when both tokens are present."""
        return bool(self.access_token) and bool(self.refresh_token)

    def is_partial(self) -> bool:
        """True when exactly one of the tokens is present."""
        return bool(self.access_token) != bool(self.refresh_token)
