"""Configuration - environment/YAML settings and log redaction."""

from .settings import (
    ConfigurationError,
    SecretRedactionFilter,
    Settings,
    PLATFORM_NATIVE,
    PLATFORM_WEB,
)

__all__ = [
    "ConfigurationError",
    "SecretRedactionFilter",
    "Settings",
    "PLATFORM_NATIVE",
    "PLATFORM_WEB",
]
