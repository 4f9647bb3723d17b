"""Database module - durable key-value storage for session data."""

from .dynamodb_client import KeyValueRepository
from .local_store import LocalStorage
from .exceptions import (
    StorageException,
    ThrottlingError,
    NetworkError,
    PermissionError,
)

__all__ = [
    "KeyValueRepository",
    "LocalStorage",
    "StorageException",
    "ThrottlingError",
    "NetworkError",
    "PermissionError",
]
