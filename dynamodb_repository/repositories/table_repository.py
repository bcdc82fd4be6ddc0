"""
Table Repository

Typed async repository over one DynamoDB table keyed by PartitionKey/RowKey.

Reads:
- exists / get_by_keys / get_by_entity: point reads
- get_all / count / count_in_partition / find_by / find_in / query: segmented
  reads drained through the SegmentWalker
- query_page: one page at a time with an opaque continuation token

Writes follow the insert/replace/merge/delete matrix:
- insert fails with ConflictError when the key is taken
- insert_or_replace / insert_or_merge never fail on existence
- replace / merge / delete require the entity to exist and, unless its ETag
  is "*", to carry the stored ETag. A missing entity raises
  EntityNotFoundError, a stale ETag raises ConflictError.
- the *_if_exists variants treat a missing entity as a no-op

Collection variants run the single-entity operation in waves of
``max_concurrency`` (see core.batch). Every successful write stamps the
entity with the ETag and Timestamp that were stored.
"""

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, Type, TypeVar

from boto3.dynamodb.conditions import Attr, ConditionBase

from ..config import DynamoDBConfig
from ..core.batch import run_in_waves, suppress_not_found
from ..core.segment_walker import SegmentWalker, TableQuery
from ..core.table_gateway import TableGateway, create_table_gateway, format_resource_id
from ..exceptions import ConflictError, EntityNotFoundError, ValidationError
from ..models.converters import read_entity, write_entity
from ..models.entity import (
    ETAG,
    PARTITION_KEY,
    ROW_KEY,
    TIMESTAMP,
    WILDCARD_ETAG,
    DynamicTableEntity,
    PagedResult,
    TableEntity
)
from ..models.filter import Filter, QueryComparison
from ..query.filter_converter import comparison_to_token, to_condition
from ..utils import format_timestamp, generate_filter_condition, to_utc, utc_now
from ..validation import TableNameValidator

logger = logging.getLogger(__name__)

E = TypeVar('E', bound=TableEntity)


def _is_conditional_check_failure(error: ConflictError) -> bool:
    return error.error_code == 'ConditionalCheckFailedException'


class TableRepository(Generic[E]):
    """
    Repository for the entities of one table.

    All operations are coroutines; store calls run in worker threads. Every
    operation accepts ``cancel_event`` (anything with ``is_set()``, such as
    asyncio.Event). It is honoured between the segments of multi-segment
    reads; point reads and writes that have started always complete.
    """

    def __init__(
        self,
        config: DynamoDBConfig,
        table_name: str,
        entity_class: Type[E] = DynamicTableEntity,
        create_if_not_exists: bool = False,
        max_concurrency: Optional[int] = None,
        gateway: Optional[TableGateway] = None
    ):
        """Bind the repository to a table.

        Args:
            config: DynamoDB configuration
            table_name: Base table name (prefix and environment come from config)
            entity_class: Entity model items are read into
            create_if_not_exists: Create the table on construction when missing
            max_concurrency: Wave size for collection operations
                (defaults to config.max_concurrent_operations)
            gateway: Pre-built gateway, bypassing create_table_gateway

        Raises:
            ValidationError: If config or table_name is missing, or max_concurrency is below 1
        """
        if config is None:
            raise ValidationError("Config cannot be None")
        if not table_name:
            raise ValidationError("Table name cannot be None or empty")
        if not TableNameValidator().is_valid(table_name):
            raise ValidationError(f"Invalid table name: {table_name}")

        self.max_concurrency = max_concurrency if max_concurrency is not None else config.max_concurrent_operations
        if self.max_concurrency < 1:
            raise ValidationError(f"max_concurrency must be at least 1, got {self.max_concurrency}")

        self.config = config
        self.entity_class = entity_class
        self.gateway = gateway or create_table_gateway(config, table_name)

        if create_if_not_exists:
            self.gateway.create_table_if_not_exists()
        # Resolve the lazy table handle before worker threads share it
        self.gateway.table

        self._walker = SegmentWalker(self.gateway, converter=self._to_entity)
        self._raw_walker = SegmentWalker(self.gateway)

    @property
    def table_name(self) -> str:
        return self.gateway.table_name

    def _to_entity(self, item: Dict[str, Any]) -> E:
        return read_entity(item, self.entity_class)

    async def _call(self, func: Callable, *args, **kwargs):
        return await asyncio.to_thread(func, *args, **kwargs)

    # =========================================================================
    # Retrieval
    # =========================================================================

    async def exists(self, partition_key: str, row_key: str, cancel_event=None) -> bool:
        """True when an entity with these keys exists.

        Raises:
            ValidationError: If either key is None, or empty (DynamoDB rejects empty key strings)
        """
        key = self._key(partition_key, row_key)
        item = await self._call(self.gateway.get_item, key, projection=[ROW_KEY])
        return item is not None

    async def get_all(self, cancel_event=None, on_progress: Optional[Callable[[List[E]], Any]] = None) -> List[E]:
        """Every entity in the table."""
        return await self._walker.execute_all(TableQuery(), cancel_event=cancel_event, on_progress=on_progress)

    async def count(self, cancel_event=None) -> int:
        """Number of entities in the table."""
        items = await self._raw_walker.execute_all(TableQuery(select=[ROW_KEY]), cancel_event=cancel_event)
        return len(items)

    async def count_in_partition(self, partition_key: Optional[str], cancel_event=None) -> int:
        """Number of entities in one partition. An empty partition key counts as 0."""
        if not partition_key:
            return 0

        query = TableQuery(select=[ROW_KEY], partition_key=partition_key)
        items = await self._raw_walker.execute_all(query, cancel_event=cancel_event)
        return len(items)

    async def get_by_keys(self, partition_key: str, row_key: str, cancel_event=None) -> Optional[E]:
        """The entity with these keys, or None when there is none.

        An empty key is not "no entity": DynamoDB rejects the request, which
        surfaces as ValidationError (as does a None key, before any call).
        """
        key = self._key(partition_key, row_key)
        item = await self._call(self.gateway.get_item, key)
        if item is None:
            return None
        return self._to_entity(item)

    async def get_by_entity(self, entity: TableEntity, cancel_event=None) -> Optional[E]:
        """Re-read an entity by its keys."""
        if entity is None:
            raise ValidationError("Entity cannot be None")
        return await self.get_by_keys(entity.partition_key, entity.row_key, cancel_event=cancel_event)

    async def find_by(self, field_name: str, value: str, cancel_event=None) -> List[E]:
        """Entities whose field_name equals value."""
        query_filter = Filter.when(field_name, QueryComparison.EQUAL, value).build()
        return await self.query(query_filter, cancel_event=cancel_event)

    async def find_in(self, field_name: str, values: Iterable[str], cancel_event=None) -> List[E]:
        """Entities whose field_name equals any of values.

        No store call is made for an empty set of values.

        Raises:
            ValidationError: If values is None or holds a non-string
        """
        if values is None:
            raise ValidationError("Values cannot be None")

        step = None
        for value in values:
            if step is None:
                step = Filter.when(field_name, QueryComparison.EQUAL, value)
            else:
                step = step.or_().when(field_name, QueryComparison.EQUAL, value)

        if step is None:
            return []

        return await self.query(step.build(), cancel_event=cancel_event)

    async def query(
        self,
        query_filter: Filter,
        cancel_event=None,
        on_progress: Optional[Callable[[List[E]], Any]] = None
    ) -> List[E]:
        """Every entity matching query_filter.

        Example:
            >>> people = await repository.query(
            ...     Filter.when("Age", QueryComparison.GREATER_THAN_OR_EQUAL, "50")
            ...     .and_()
            ...     .when("Name", QueryComparison.EQUAL, "John")
            ...     .build()
            ... )
        """
        if query_filter is None:
            raise ValidationError("Filter cannot be None")

        query = TableQuery(filter_condition=to_condition(query_filter))
        return await self._walker.execute_all(query, cancel_event=cancel_event, on_progress=on_progress)

    async def query_page(
        self,
        query_filter: Optional[Filter] = None,
        take: Optional[int] = None,
        page_token: Optional[str] = None,
        cancel_event=None
    ) -> PagedResult:
        """One page of entities matching query_filter (all entities when None).

        take defaults to config.default_page_size. Pass the returned
        next_page_token back to continue; it is None once the query is exhausted.

        Raises:
            ValidationError: If take is below 1
            ContinuationTokenError: If page_token is malformed
        """
        take = take if take is not None else self.config.default_page_size
        if take is not None and take < 1:
            raise ValidationError(f"take must be a positive integer, got {take}")

        query = TableQuery(filter_condition=to_condition(query_filter), take=take)
        return await self._walker.execute_page(query, page_token=page_token, cancel_event=cancel_event)

    # =========================================================================
    # Insert
    # =========================================================================

    async def insert(self, entity: E, cancel_event=None) -> E:
        """Insert a new entity.

        Raises:
            ConflictError: If an entity with the same keys already exists
        """
        self._require_entity(entity)
        etag, timestamp = self._new_version()
        item = self._to_item(entity, etag, timestamp)

        try:
            await self._call(self.gateway.put_item, item, condition=Attr(PARTITION_KEY).not_exists())
        except ConflictError as e:
            if not _is_conditional_check_failure(e):
                raise
            raise ConflictError(
                f"Entity already exists in table '{self.table_name}'",
                format_resource_id(entity.key),
                original_error=e.original_error
            ) from e

        self._stamp(entity, etag, timestamp)
        logger.info(f"Inserted entity {format_resource_id(entity.key)} into {self.table_name}")
        return entity

    async def insert_many(self, entities: Iterable[E], cancel_event=None) -> List[E]:
        return await run_in_waves(self.insert, entities, self.max_concurrency)

    async def insert_or_replace(self, entity: E, cancel_event=None) -> E:
        """Write the entity, replacing every property of any existing one."""
        self._require_entity(entity)
        etag, timestamp = self._new_version()

        await self._call(self.gateway.put_item, self._to_item(entity, etag, timestamp))

        self._stamp(entity, etag, timestamp)
        logger.info(f"Inserted or replaced entity {format_resource_id(entity.key)} in {self.table_name}")
        return entity

    async def insert_or_replace_many(self, entities: Iterable[E], cancel_event=None) -> List[E]:
        return await run_in_waves(self.insert_or_replace, entities, self.max_concurrency)

    async def insert_or_merge(self, entity: E, cancel_event=None) -> E:
        """Write the entity's properties onto any existing one, creating it when missing."""
        self._require_entity(entity)
        etag, timestamp = self._new_version()

        item = self._to_item(entity, etag, timestamp)
        await self._call(self.gateway.update_item, entity.key, self._properties(item))

        self._stamp(entity, etag, timestamp)
        logger.info(f"Inserted or merged entity {format_resource_id(entity.key)} in {self.table_name}")
        return entity

    async def insert_or_merge_many(self, entities: Iterable[E], cancel_event=None) -> List[E]:
        return await run_in_waves(self.insert_or_merge, entities, self.max_concurrency)

    # =========================================================================
    # Replace
    # =========================================================================

    async def replace(self, entity: E, cancel_event=None) -> E:
        """Replace an existing entity with this one.

        Raises:
            ValidationError: If the entity has no ETag
            EntityNotFoundError: If the entity does not exist
            ConflictError: If the stored ETag differs
        """
        self._require_entity(entity)
        condition = self._version_condition(entity)
        etag, timestamp = self._new_version()
        item = self._to_item(entity, etag, timestamp)

        try:
            await self._call(self.gateway.put_item, item, condition=condition)
        except ConflictError as e:
            if not _is_conditional_check_failure(e):
                raise
            raise await self._resolve_conditional_failure(entity, e) from e

        self._stamp(entity, etag, timestamp)
        logger.info(f"Replaced entity {format_resource_id(entity.key)} in {self.table_name}")
        return entity

    async def replace_many(self, entities: Iterable[E], cancel_event=None) -> List[E]:
        return await run_in_waves(self.replace, entities, self.max_concurrency)

    async def replace_if_exists(self, entity: E, cancel_event=None) -> Optional[E]:
        """replace, doing nothing when the entity does not exist."""
        return await suppress_not_found(self.replace, entity)

    async def replace_many_if_exists(self, entities: Iterable[E], cancel_event=None) -> List[Optional[E]]:
        return await run_in_waves(self.replace_if_exists, entities, self.max_concurrency)

    # =========================================================================
    # Merge
    # =========================================================================

    async def merge(self, entity: E, cancel_event=None) -> E:
        """Write the entity's properties onto an existing entity.

        Properties that are None on the entity are left untouched in the store.

        Raises:
            ValidationError: If the entity has no ETag
            EntityNotFoundError: If the entity does not exist
            ConflictError: If the stored ETag differs
        """
        self._require_entity(entity)
        condition = self._version_condition(entity)
        etag, timestamp = self._new_version()
        item = self._to_item(entity, etag, timestamp)

        try:
            await self._call(self.gateway.update_item, entity.key, self._properties(item), condition=condition)
        except ConflictError as e:
            if not _is_conditional_check_failure(e):
                raise
            raise await self._resolve_conditional_failure(entity, e) from e

        self._stamp(entity, etag, timestamp)
        logger.info(f"Merged entity {format_resource_id(entity.key)} in {self.table_name}")
        return entity

    async def merge_many(self, entities: Iterable[E], cancel_event=None) -> List[E]:
        return await run_in_waves(self.merge, entities, self.max_concurrency)

    async def merge_if_exists(self, entity: E, cancel_event=None) -> Optional[E]:
        """merge, doing nothing when the entity does not exist."""
        return await suppress_not_found(self.merge, entity)

    async def merge_many_if_exists(self, entities: Iterable[E], cancel_event=None) -> List[Optional[E]]:
        return await run_in_waves(self.merge_if_exists, entities, self.max_concurrency)

    # =========================================================================
    # Delete
    # =========================================================================

    async def delete(self, entity: TableEntity, cancel_event=None) -> None:
        """Delete an existing entity.

        Raises:
            ValidationError: If the entity has no ETag
            EntityNotFoundError: If the entity does not exist
            ConflictError: If the stored ETag differs
        """
        self._require_entity(entity)
        condition = self._version_condition(entity)

        try:
            await self._call(self.gateway.delete_item, entity.key, condition=condition)
        except ConflictError as e:
            if not _is_conditional_check_failure(e):
                raise
            raise await self._resolve_conditional_failure(entity, e) from e

        logger.info(f"Deleted entity {format_resource_id(entity.key)} from {self.table_name}")

    async def delete_many(self, entities: Iterable[TableEntity], cancel_event=None) -> None:
        await run_in_waves(self.delete, entities, self.max_concurrency)

    async def delete_if_exists(self, entity: TableEntity, cancel_event=None) -> None:
        """delete, doing nothing when the entity does not exist."""
        await suppress_not_found(self.delete, entity)

    async def delete_if_exists_by_keys(self, partition_key: str, row_key: str, cancel_event=None) -> None:
        """Delete the entity with these keys if there is one."""
        key = self._key(partition_key, row_key)
        item = await self._call(self.gateway.get_item, key, projection=[PARTITION_KEY, ROW_KEY, ETAG])
        if item is None:
            return
        await suppress_not_found(self.delete, self._deletion_target(item))

    async def delete_many_if_exists(self, entities: Iterable[TableEntity], cancel_event=None) -> None:
        await run_in_waves(self.delete_if_exists, entities, self.max_concurrency)

    async def delete_all(self, cancel_event=None) -> int:
        """Delete every entity in the table.

        Returns:
            Number of entities found for deletion
        """
        entities = await self._find_for_deletion(None, cancel_event)
        await self.delete_many_if_exists(entities)
        logger.info(f"Deleted {len(entities)} entities from {self.table_name}")
        return len(entities)

    async def delete_older_than(self, dt: datetime, cancel_event=None) -> int:
        """Delete every entity last written before dt. Naive datetimes are taken as UTC.

        Returns:
            Number of entities found for deletion
        """
        if dt is None:
            raise ValidationError("Datetime cannot be None")

        condition = generate_filter_condition(
            TIMESTAMP,
            comparison_to_token(QueryComparison.LESS_THAN),
            format_timestamp(to_utc(dt))
        )
        entities = await self._find_for_deletion(condition, cancel_event)
        await self.delete_many_if_exists(entities)
        logger.info(f"Deleted {len(entities)} entities older than {dt.isoformat()} from {self.table_name}")
        return len(entities)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _find_for_deletion(self, condition: Optional[ConditionBase], cancel_event) -> List[TableEntity]:
        """Keys and ETags of matching items, without reading them into entity_class."""
        query = TableQuery(filter_condition=condition, select=[PARTITION_KEY, ROW_KEY, ETAG])
        items = await self._raw_walker.execute_all(query, cancel_event=cancel_event)
        return [self._deletion_target(item) for item in items]

    @staticmethod
    def _deletion_target(item: Dict[str, Any]) -> TableEntity:
        # Items written outside the repository carry no ETag
        return TableEntity(
            partition_key=item[PARTITION_KEY],
            row_key=item[ROW_KEY],
            etag=item.get(ETAG, WILDCARD_ETAG)
        )

    async def _resolve_conditional_failure(self, entity: TableEntity, error: ConflictError) -> Exception:
        """Decide whether a rejected conditional write hit a missing entity or a stale ETag."""
        key = entity.key
        current = await self._call(self.gateway.get_item, key, projection=[ROW_KEY], consistent_read=True)
        if current is None:
            return EntityNotFoundError(self.table_name, key, original_error=error.original_error)

        return ConflictError(
            f"ETag mismatch for entity in table '{self.table_name}'",
            format_resource_id(key),
            original_error=error.original_error
        )

    @staticmethod
    def _key(partition_key: str, row_key: str) -> Dict[str, str]:
        if partition_key is None or row_key is None:
            raise ValidationError("Partition key and row key cannot be None")
        return {PARTITION_KEY: partition_key, ROW_KEY: row_key}

    @staticmethod
    def _require_entity(entity: TableEntity) -> None:
        if entity is None:
            raise ValidationError("Entity cannot be None")

    @staticmethod
    def _version_condition(entity: TableEntity) -> ConditionBase:
        if entity.etag is None:
            raise ValidationError(
                f"Entity {format_resource_id(entity.key)} has no ETag; read it first or use wildcard_etag()"
            )

        condition = Attr(PARTITION_KEY).exists()
        if entity.etag != WILDCARD_ETAG:
            condition = condition & Attr(ETAG).eq(entity.etag)
        return condition

    @staticmethod
    def _new_version():
        return uuid.uuid4().hex, utc_now()

    @staticmethod
    def _to_item(entity: TableEntity, etag: str, timestamp: datetime) -> Dict[str, Any]:
        item = write_entity(entity)
        item[ETAG] = etag
        item[TIMESTAMP] = format_timestamp(timestamp)
        return item

    @staticmethod
    def _properties(item: Dict[str, Any]) -> Dict[str, Any]:
        return {name: value for name, value in item.items() if name not in (PARTITION_KEY, ROW_KEY)}

    @staticmethod
    def _stamp(entity: TableEntity, etag: str, timestamp: datetime) -> None:
        entity.etag = etag
        entity.timestamp = timestamp
