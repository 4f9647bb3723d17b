"""
DynamoDB key-value repository used as the durable per-device store.

Each persisted value (access token, refresh token, cached user record) is a
single item keyed by ``key``. The repository translates botocore failures
into the storage exception hierarchy and retries throttled writes with
exponential backoff.
"""

import time
from typing import Any, Iterable, Optional

import boto3
from botocore.exceptions import ClientError, BotoCoreError

from sessly_client.utils.logger import get_logger
from .exceptions import (
    StorageException,
    ThrottlingError,
    NetworkError,
    PermissionError,
)


logger = get_logger(__name__)

THROTTLING_CODES = ("ProvisionedThroughputExceededException", "ThrottlingException")
PERMISSION_CODES = ("AccessDeniedException", "UnauthorizedOperation")


class KeyValueRepository:
    """
    Repository for string values persisted in DynamoDB.

    Table Schema:
        Partition Key: key (e.g., "access_token")
        Attribute: value (string)
    """

    def __init__(
        self,
        table_name: str = "sessly_session",
        dynamodb_resource: Optional[Any] = None,
        max_retries: int = 3,
        backoff_base: float = 1.0,
    ):
        self.table_name = table_name
        self.dynamodb = dynamodb_resource or boto3.resource("dynamodb")
        self.table = self.dynamodb.Table(table_name)
        # Total write attempts, including the first
        self.max_retries = max_retries
        self.backoff_base = backoff_base

    def get_value(self, key: str) -> Optional[str]:
        """Return the stored string for ``key``, or None when absent."""
        context = {"table": self.table_name, "key": key}
        started = time.time()
        try:
            response = self.table.get_item(Key={"key": key})
        except ClientError as e:
            raise self._translate_client_error(e, "get_value", context)
        except (BotoCoreError, OSError) as e:
            raise self._network_error(e, "get_value", context) from e

        item = response.get("Item")
        if item is None:
            logger.debug("Key not found", operation="get_value", context=context)
            return None

        logger.info(
            "Key retrieved",
            operation="get_value",
            context=context,
            duration_ms=(time.time() - started) * 1000,
        )
        value = item.get("value")
        return None if value is None else str(value)

    def put_value(self, key: str, value: str) -> bool:
        """
        Upsert ``value`` under ``key``.

        Throttled writes are retried up to ``max_retries`` times, sleeping
        ``backoff_base * 2**attempt`` seconds between attempts. Any other
        failure is translated on the first occurrence.
        """
        context = {"table": self.table_name, "key": key, "value_length": len(value)}
        attempt = 0

        while True:
            started = time.time()
            try:
                self.table.put_item(Item={"key": key, "value": value})
            except ClientError as e:
                code = e.response.get("Error", {}).get("Code", "Unknown")
                attempt += 1
                if code not in THROTTLING_CODES:
                    raise self._translate_client_error(e, "put_value", context)
                if attempt >= self.max_retries:
                    raise ThrottlingError(
                        f"Write to {self.table_name} still throttled after {attempt} attempts"
                    ) from e
                delay = self.backoff_base * (2 ** (attempt - 1))
                logger.warning(
                    f"Write throttled, next attempt in {delay}s",
                    operation="put_value",
                    context={**context, "attempt": attempt},
                    error=code,
                )
                time.sleep(delay)
                continue
            except (BotoCoreError, OSError) as e:
                raise self._network_error(e, "put_value", context) from e

            logger.info(
                "Value saved",
                operation="put_value",
                context=context,
                duration_ms=(time.time() - started) * 1000,
            )
            return True

    def delete_values(self, keys: Iterable[str]) -> bool:
        """Delete every key in ``keys``; keys that do not exist are ignored."""
        keys = list(keys)
        context = {"table": self.table_name, "keys": keys}

        try:
            for key in keys:
                self.table.delete_item(Key={"key": key})
        except ClientError as e:
            raise self._translate_client_error(e, "delete_values", context)
        except (BotoCoreError, OSError) as e:
            raise self._network_error(e, "delete_values", context) from e

        logger.info("Keys deleted", operation="delete_values", context=context)
        return True

    def _network_error(self, error: Exception, operation: str, context: dict) -> NetworkError:
        logger.error("Storage unreachable", operation=operation, context=context, error=str(error))
        return NetworkError(f"Cannot reach DynamoDB table {self.table_name}: {error}")

    def _translate_client_error(
        self, error: ClientError, operation: str, context: dict
    ) -> StorageException:
        code = error.response.get("Error", {}).get("Code", "Unknown")

        if code in PERMISSION_CODES:
            logger.error("Permission denied", operation=operation, context=context, error=code)
            return PermissionError(f"Access to {self.table_name} denied: {code}")

        if code in THROTTLING_CODES:
            return ThrottlingError(f"DynamoDB {operation} throttled: {code}")

        logger.error("DynamoDB request failed", operation=operation, context=context, error=str(error))
        return StorageException(f"DynamoDB {operation} failed: {error}")
