"""
Configuration loader for the Sessly client.

Reads settings from environment variables, optionally overlaid by a YAML
configuration file validated against a JSON schema, and provides a logging
filter that keeps tokens out of log output.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Set

import jsonschema
import yaml

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when settings cannot be loaded or fail validation."""

    pass


DEFAULT_BASE_URL = "http://localhost:8000/api"
DEFAULT_TIMEOUT = 60.0
DEFAULT_TOKEN_TABLE = "sessly_session"
DEFAULT_AWS_REGION = "eu-central-1"
DEFAULT_LOCAL_STORAGE_PATH = str(Path.home() / ".sessly" / "local_storage.json")

PLATFORM_NATIVE = "native"
PLATFORM_WEB = "web"
SUPPORTED_PLATFORMS = (PLATFORM_NATIVE, PLATFORM_WEB)

CONFIG_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "api_base_url": {"type": "string", "minLength": 1},
        "platform": {"type": "string", "enum": list(SUPPORTED_PLATFORMS)},
        "timeout": {"type": "number", "exclusiveMinimum": 0},
        "token_table": {"type": "string", "minLength": 1},
        "aws_region": {"type": "string", "minLength": 1},
        "local_storage_path": {"type": "string", "minLength": 1},
    },
    "additionalProperties": False,
}


REDACTED = "***REDACTED***"


class SecretRedactionFilter(logging.Filter):
    """
    Replaces every registered token value in a log record with ``***REDACTED***``.

    The token store registers values as they are issued and discards them on
    logout; the filter itself never inspects record content for token shapes.
    """

    def __init__(self, secrets: Optional[Iterable[str]] = None):
        super().__init__()
        self.redacted_values: Set[str] = set()
        for value in secrets or ():
            self.add_secret(value)

    def add_secret(self, secret: Optional[str]) -> None:
        # Values of 3 characters or fewer would mangle ordinary words
        if isinstance(secret, str) and len(secret) > 3:
            self.redacted_values.add(secret)

    def discard_secret(self, secret: Optional[str]) -> None:
        if secret:
            self.redacted_values.discard(secret)

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.redacted_values:
            return True

        record.msg = self.redact(str(record.msg))
        if isinstance(record.args, Mapping):
            record.args = {key: self.redact(str(value)) for key, value in record.args.items()}
        elif record.args:
            record.args = tuple(self.redact(str(value)) for value in record.args)
        return True

    def redact(self, text: str) -> str:
        # Longest first so a token containing another token is masked whole
        for value in sorted(self.redacted_values, key=len, reverse=True):
            text = text.replace(value, REDACTED)
        return text


class Settings:
    """
    Client configuration.

    Precedence (highest first): explicit keyword overrides, environment
    variables, YAML config file, built-in defaults.
    """

    def __init__(
        self,
        config_file: Optional[str] = None,
        environ: Optional[Dict[str, str]] = None,
        **overrides: Any,
    ):
        """
        Initialize Settings.

        Args:
            config_file: Optional path to a YAML config file. Defaults to
                SESSLY_CONFIG_FILE when set.
            environ: Environment mapping (defaults to os.environ)
            **overrides: Explicit values that win over every other source

        Raises:
            ConfigurationError: If any source holds an invalid value
        """
        env = os.environ if environ is None else environ

        values: Dict[str, Any] = {
            "api_base_url": DEFAULT_BASE_URL,
            "platform": PLATFORM_NATIVE,
            "timeout": DEFAULT_TIMEOUT,
            "token_table": DEFAULT_TOKEN_TABLE,
            "aws_region": DEFAULT_AWS_REGION,
            "local_storage_path": DEFAULT_LOCAL_STORAGE_PATH,
        }

        config_path = config_file or env.get("SESSLY_CONFIG_FILE")
        if config_path:
            values.update(self.load_config_file(config_path))

        values.update(self._read_environment(env))
        values.update({k: v for k, v in overrides.items() if v is not None})

        self._validate(values)

        self.api_base_url: str = str(values["api_base_url"]).rstrip("/")
        self.platform: str = values["platform"]
        self.timeout: float = float(values["timeout"])
        self.token_table: str = values["token_table"]
        self.aws_region: str = values["aws_region"]
        self.local_storage_path: str = os.path.expanduser(values["local_storage_path"])

    def is_web(self) -> bool:
        """Check if the client runs with web-platform storage mirroring."""
        return self.platform == PLATFORM_WEB

    @staticmethod
    def _read_environment(env: Dict[str, str]) -> Dict[str, Any]:
        """Collect recognised SESSLY_* variables."""
        mapping = {
            "SESSLY_API_BASE_URL": "api_base_url",
            "SESSLY_PLATFORM": "platform",
            "SESSLY_TIMEOUT": "timeout",
            "SESSLY_TOKEN_TABLE": "token_table",
            "SESSLY_AWS_REGION": "aws_region",
            "SESSLY_LOCAL_STORAGE_PATH": "local_storage_path",
        }
        values: Dict[str, Any] = {}
        for env_key, setting in mapping.items():
            raw = env.get(env_key)
            if raw is None or raw == "":
                continue
            if setting == "timeout":
                try:
                    values[setting] = float(raw)
                except ValueError as e:
                    raise ConfigurationError(
                        f"{env_key} must be a number, got {raw!r}"
                    ) from e
            elif setting == "platform":
                values[setting] = raw.strip().lower()
            else:
                values[setting] = raw
        return values

    @staticmethod
    def load_config_file(filepath: str) -> Dict[str, Any]:
        """
        Load and validate a YAML configuration file.

        Args:
            filepath: Path to YAML file

        Returns:
            Dictionary of settings found in the file

        Raises:
            ConfigurationError: If file is missing, malformed or fails validation
        """
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                content = yaml.safe_load(f)
        except FileNotFoundError as e:
            raise ConfigurationError(f"Config file not found: {filepath}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {filepath}: {e}") from e

        if not content:
            logger.warning(f"Empty configuration file: {filepath}")
            return {}

        try:
            jsonschema.validate(instance=content, schema=CONFIG_SCHEMA)
        except jsonschema.ValidationError as e:
            raise ConfigurationError(f"Config file validation failed: {e.message}") from e

        logger.debug(f"Loaded configuration from {filepath}")
        return dict(content)

    @staticmethod
    def _validate(values: Dict[str, Any]) -> None:
        try:
            jsonschema.validate(instance=values, schema=CONFIG_SCHEMA)
        except jsonschema.ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e.message}") from e


_REDACTION_FILTER: Optional[SecretRedactionFilter] = None


def get_redaction_filter() -> SecretRedactionFilter:
    """Return the process-wide redaction filter, installing it on first use."""
    global _REDACTION_FILTER
    if _REDACTION_FILTER is None:
        _REDACTION_FILTER = SecretRedactionFilter()
        setup_logging_redaction(_REDACTION_FILTER)
    return _REDACTION_FILTER


def setup_logging_redaction(
    redaction_filter: SecretRedactionFilter, prefix: str = "sessly_client"
) -> None:
    """
    Attach the redaction filter to the root handlers and to every handler
    owned by a logger under ``prefix``.

    Structured loggers install their own handlers, so filtering only the
    root logger would miss them.
    """
    loggers = [logging.getLogger()]
    for name, candidate in list(logging.Logger.manager.loggerDict.items()):
        if name.startswith(prefix) and isinstance(candidate, logging.Logger):
            loggers.append(candidate)

    for logger_instance in loggers:
        for handler in logger_instance.handlers:
            if redaction_filter not in handler.filters:
                handler.addFilter(redaction_filter)
