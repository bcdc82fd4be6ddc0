"""
Repository exceptions, grouped by how a caller is expected to react:

- ValidationError / ContinuationTokenError: fix the call, retrying won't help
- EntityNotFoundError: the targeted entity is gone (the if-exists operations swallow it)
- ConflictError: re-read the entity and decide again
- ConnectionError / RetryableError: infrastructure; RetryableError is safe to retry
"""

from typing import Any, Dict, Optional

from .base import TableRepositoryError


class ValidationError(TableRepositoryError):
    """A caller contract was violated or stored data failed model validation.

    Raised for None/empty required arguments, writes that need an ETag but
    carry none, malformed requests rejected by DynamoDB, and pydantic failures
    while reading items into an entity class.
    """

    def __init__(self, message: str, errors: Optional[Dict[str, Any]] = None, original_error: Optional[Exception] = None):
        self.errors = errors or {}
        super().__init__(message, original_error, {'validation_errors': self.errors} if self.errors else None)


class ContinuationTokenError(ValidationError):
    """A page token could not be decoded back into a resume handle."""

    def __init__(self, token: str, original_error: Optional[Exception] = None):
        self.token = token
        super().__init__(f"Malformed continuation token: {token!r}", original_error=original_error)


class EntityNotFoundError(TableRepositoryError):
    """A mutation targeted an entity that does not exist.

    Args:
        table_name: Full name of the table that was written to
        key: PartitionKey/RowKey pair of the missing entity
        original_error: The rejected conditional write
    """

    def __init__(self, table_name: str, key: dict, original_error: Optional[Exception] = None):
        self.table_name = table_name
        self.key = key
        super().__init__(
            f"Entity not found in table '{table_name}' with key: {key}",
            original_error,
            {'table_name': table_name, 'key': key}
        )


class ConflictError(TableRepositoryError):
    """The store rejected a write because of the entity's current state.

    Inserting over an existing key, an ETag mismatch on replace/merge/delete,
    or a transaction conflict reported by DynamoDB.
    """

    def __init__(self, message: str, resource_id: Optional[str] = None, original_error: Optional[Exception] = None):
        self.resource_id = resource_id
        super().__init__(message, original_error, {'resource_id': resource_id} if resource_id else None)


class ConnectionError(TableRepositoryError):
    """The store cannot be reached, the table is missing, or credentials were refused."""


class RetryableError(TableRepositoryError):
    """A transient failure such as throttling or a service hiccup."""

    retryable = True

    def __init__(self, message: str, retry_after_seconds: Optional[int] = None, original_error: Optional[Exception] = None):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            message,
            original_error,
            {'retry_after_seconds': retry_after_seconds} if retry_after_seconds else None
        )
