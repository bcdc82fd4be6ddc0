"""
Table Entity Models

Every entity lives in a table keyed by PartitionKey (HASH) and RowKey (RANGE).
The store also maintains two system properties on each write:

- ETag: opacity token used for optimistic concurrency. "*" skips the check.
- Timestamp: UTC time of the last successful write.

Subclass TableEntity to declare typed properties. Use DynamicTableEntity when
the table is schemaless and properties are only known at runtime.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..exceptions import ValidationError

PARTITION_KEY = "PartitionKey"
ROW_KEY = "RowKey"
ETAG = "ETag"
TIMESTAMP = "Timestamp"

SYSTEM_PROPERTIES = (PARTITION_KEY, ROW_KEY, ETAG, TIMESTAMP)

WILDCARD_ETAG = "*"


class TableEntity(BaseModel):
    """Base class for entities stored through a TableRepository."""

    partition_key: str = Field(..., alias=PARTITION_KEY, description="Groups entities for locality and scaling")
    row_key: str = Field(..., alias=ROW_KEY, description="Identifies the entity within its partition")
    etag: Optional[str] = Field(default=None, alias=ETAG, description="Store-assigned version marker")
    timestamp: Optional[datetime] = Field(default=None, alias=TIMESTAMP, description="Store-assigned last write time (UTC)")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def key(self) -> dict:
        """DynamoDB primary key of this entity."""
        return {PARTITION_KEY: self.partition_key, ROW_KEY: self.row_key}


class DynamicTableEntity(TableEntity):
    """Schemaless entity: any property read from the table is kept as an extra field."""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="allow"
    )


class PagedResult(BaseModel):
    """One page of a segmented query.

    next_page_token is None once the query is exhausted; otherwise pass it
    back verbatim to fetch the following page.
    """

    items: List[Any] = Field(default_factory=list)
    next_page_token: Optional[str] = None
    current_page_token: Optional[str] = None
    take: Optional[int] = None

    @property
    def has_more(self) -> bool:
        return self.next_page_token is not None


def wildcard_etag(entity: TableEntity) -> TableEntity:
    """Set the entity's ETag to "*" so the next write skips the concurrency check."""
    if entity is None:
        raise ValidationError("Entity cannot be None")

    entity.etag = WILDCARD_ETAG
    return entity
