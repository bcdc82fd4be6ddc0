from .converters import read_entity, write_entity
from .entity import (
    ETAG,
    PARTITION_KEY,
    ROW_KEY,
    TIMESTAMP,
    WILDCARD_ETAG,
    DynamicTableEntity,
    PagedResult,
    TableEntity,
    wildcard_etag,
)
from .filter import (
    Filter,
    FilterOperatorStep,
    FilterWhenStep,
    QueryComparison,
    QueryOperator,
    Statement,
)

__all__ = [
    # Entities
    "TableEntity",
    "DynamicTableEntity",
    "PagedResult",
    "wildcard_etag",

    # System property names
    "PARTITION_KEY",
    "ROW_KEY",
    "ETAG",
    "TIMESTAMP",
    "WILDCARD_ETAG",

    # Filters
    "Filter",
    "FilterWhenStep",
    "FilterOperatorStep",
    "QueryComparison",
    "QueryOperator",
    "Statement",

    # Conversion
    "read_entity",
    "write_entity",
]
