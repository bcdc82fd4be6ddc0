# Base exception class
from .base import TableRepositoryError

from .domain_exceptions import (
    ValidationError,
    ContinuationTokenError,
    EntityNotFoundError,
    ConflictError,
    ConnectionError,
    RetryableError,
)

__all__ = [
    # Base exception
    "TableRepositoryError",

    # Domain exceptions (alphabetically ordered)
    "ConflictError",
    "ConnectionError",
    "ContinuationTokenError",
    "EntityNotFoundError",
    "RetryableError",
    "ValidationError",
]
