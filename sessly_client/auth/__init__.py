"""Auth module - token persistence."""

from .token_store import TokenStore

__all__ = ["TokenStore"]
