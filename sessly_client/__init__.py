"""Sessly client - service-booking API client, session and favorites sync."""

__version__ = "0.1.0"
