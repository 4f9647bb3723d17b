"""
Structured logging for the Sessly client.

Every entry is a single JSON object with ``timestamp``, ``level`` and
``message``, plus the optional ``operation``, ``context``, ``duration_ms``
and ``error`` fields. Bearer tokens and emails must go through
``mask_token``/``mask_email`` before they reach a context dict.
"""

import json
import logging
import time
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Dict, Optional


def mask_token(token: Optional[str]) -> str:
    """
    Shorten a token to its last 4 characters.

    Example:
        >>> mask_token("eyJhbGciOiJIUzI1NiJ9.abcd")
        "****abcd"
    """
    if not token:
        return "missing"
    # Short values would be revealed almost entirely by a 4-char tail
    if len(token) <= 8:
        return "****"
    return "****" + token[-4:]


def mask_email(email: Optional[str]) -> str:
    """
    Hide the local part of an email address.

    Example:
        >>> mask_email("jan.kowalski@example.com")
        "j***@example.com"
    """
    if not email:
        return "unknown"
    local, at, domain = email.partition("@")
    if not at:
        return "invalid"
    return f"{local[:1]}***@{domain}"


class StructuredLogger:
    """
    Thin wrapper over a stdlib logger that writes one JSON object per line.

    The underlying ``logging.Logger`` is exposed as ``.logger`` so tests and
    the redaction filter can reach its handlers.
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG)

        # getLogger returns the same instance per name; install one handler only
        if not self.logger.handlers:
            stream_handler = logging.StreamHandler()
            stream_handler.setLevel(logging.DEBUG)
            stream_handler.setFormatter(logging.Formatter("%(message)s"))
            self.logger.addHandler(stream_handler)

    def _format_log(
        self,
        level: str,
        message: str,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        duration_ms: Optional[float] = None,
        error: Optional[str] = None,
    ) -> str:
        """
        Serialize one entry. Empty optional fields are left out.

        Non-JSON values in ``context`` (datetimes, enums) are stringified.
        """
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": level,
            "message": message,
        }
        optional = {
            "operation": operation,
            "context": context or None,
            "duration_ms": None if duration_ms is None else round(duration_ms, 2),
            "error": error or None,
        }
        entry.update({key: value for key, value in optional.items() if value is not None})
        return json.dumps(entry, ensure_ascii=False, default=str)

    def _emit(self, level: int, message: str, **fields: Any) -> None:
        if self.logger.isEnabledFor(level):
            self.logger.log(level, self._format_log(logging.getLevelName(level), message, **fields))

    def debug(
        self,
        message: str,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        **fields: Any,
    ):
        self._emit(logging.DEBUG, message, operation=operation, context=context, **fields)

    def info(
        self,
        message: str,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        duration_ms: Optional[float] = None,
        **fields: Any,
    ):
        self._emit(
            logging.INFO,
            message,
            operation=operation,
            context=context,
            duration_ms=duration_ms,
            **fields,
        )

    def warning(
        self,
        message: str,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
        **fields: Any,
    ):
        self._emit(logging.WARNING, message, operation=operation, context=context, error=error, **fields)

    def error(
        self,
        message: str,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
        duration_ms: Optional[float] = None,
    ):
        self._emit(
            logging.ERROR,
            message,
            operation=operation,
            context=context,
            error=error,
            duration_ms=duration_ms,
        )


def log_operation(operation_name: str):
    """
    Decorator that logs start, completion (with duration) and failure of a call.

    An ``email`` keyword argument is recorded masked. Exceptions are
    re-raised after logging.

    Usage:
        @log_operation("create_appointment")
        def create_appointment(self, business_slug, draft):
            ...
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            op_logger = get_logger(func.__module__)
            context: Dict[str, Any] = {"function": func.__name__}
            if args:
                context["arg_count"] = len(args)
            if "email" in kwargs:
                context["email_masked"] = mask_email(kwargs["email"])

            op_logger.debug(f"Starting {operation_name}", operation=operation_name, context=context)
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                op_logger.error(
                    f"Failed {operation_name}",
                    operation=operation_name,
                    context=context,
                    error=str(e),
                    duration_ms=(time.perf_counter() - started) * 1000,
                )
                raise

            op_logger.info(
                f"Completed {operation_name}",
                operation=operation_name,
                context=context,
                duration_ms=(time.perf_counter() - started) * 1000,
            )
            return result

        return wrapper

    return decorator


def get_logger(name: str) -> StructuredLogger:
    """Return a StructuredLogger for ``name`` (usually the caller's ``__name__``)."""
    return StructuredLogger(name)
