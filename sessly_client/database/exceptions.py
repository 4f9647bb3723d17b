"""
Custom exception hierarchy for local and remote storage operations.

The repositories translate backend-specific failures (botocore errors,
file I/O errors) into these so callers can handle them uniformly.
"""


class StorageException(Exception):
    """
    Base exception for all storage-related errors.
    """

    pass


class ThrottlingError(StorageException):
    """
    Raised when DynamoDB keeps throttling after retry exhaustion.
    """

    pass


class NetworkError(StorageException):
    """
    Raised when network-level failures occur (connection timeout, DNS failure, etc.).
    """

    pass


class PermissionError(StorageException):
    """
    Raised when IAM permissions (or file permissions) are insufficient.
    """

    pass
