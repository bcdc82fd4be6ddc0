from .config import DynamoDBConfig
from .exceptions import (
    ConflictError,
    ConnectionError,
    ContinuationTokenError,
    EntityNotFoundError,
    RetryableError,
    TableRepositoryError,
    ValidationError,
)
from .models import (
    DynamicTableEntity,
    Filter,
    PagedResult,
    QueryComparison,
    QueryOperator,
    Statement,
    TableEntity,
    wildcard_etag,
)
from .query import to_condition, to_filter_expression
from .core import (
    SegmentWalker,
    TableGateway,
    TableQuery,
    create_table_gateway,
    run_in_waves,
    suppress_not_found,
)
from .repositories import TableRepository

__version__ = "1.0.0"
__all__ = [
    # Configuration
    "DynamoDBConfig",

    # Exceptions
    "ConflictError",
    "ConnectionError",
    "ContinuationTokenError",
    "EntityNotFoundError",
    "RetryableError",
    "TableRepositoryError",
    "ValidationError",

    # Entities
    "TableEntity",
    "DynamicTableEntity",
    "PagedResult",
    "wildcard_etag",

    # Filters
    "Filter",
    "QueryComparison",
    "QueryOperator",
    "Statement",
    "to_condition",
    "to_filter_expression",

    # Core building blocks
    "TableGateway",
    "create_table_gateway",
    "SegmentWalker",
    "TableQuery",
    "run_in_waves",
    "suppress_not_found",

    # Repository
    "TableRepository",
]
