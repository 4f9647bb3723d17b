"""Utility helpers - structured logging and time handling."""
