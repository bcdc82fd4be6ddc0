"""
Thin DynamoDB Table Gateway

Lightweight wrapper around the boto3 Table resource for one repository table.
It exposes exactly the store primitives the repository needs:

1. Point reads and writes keyed by PartitionKey/RowKey
2. Conditional writes for optimistic concurrency
3. One round trip of a segmented Scan/Query (items plus resume handle)

Conditions are handed in as boto3 condition objects and rendered here, with
a fresh ConditionExpressionBuilder per request. The builder boto3 attaches to
a resource is shared by every call on that resource, and batch operations run
several requests at once from worker threads.

Every botocore ClientError leaves this module mapped to the repository's
exception taxonomy.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import boto3
from boto3.dynamodb.conditions import ConditionBase, ConditionExpressionBuilder
from botocore.exceptions import ClientError

from ..config import DynamoDBConfig
from ..exceptions import (
    ConnectionError,
    ConflictError,
    ValidationError,
    RetryableError
)
from ..models.entity import PARTITION_KEY, ROW_KEY
from ..utils import (
    build_partition_key_condition,
    build_projection_expression,
    merge_expression_attributes,
    render_condition
)

logger = logging.getLogger(__name__)


def map_dynamodb_error(
    error: ClientError,
    operation: str,
    table_name: str,
    resource_id: Optional[str] = None
) -> Exception:
    """Map DynamoDB ClientError to domain-specific exceptions.

    A failed ConditionExpression maps to ConflictError. Whether the entity
    was missing or its ETag no longer matched is decided by the caller, which
    knows what the condition asserted.

    Args:
        error: The boto3 ClientError
        operation: The operation that failed (e.g., "GetItem", "PutItem")
        table_name: The DynamoDB table name
        resource_id: Optional resource identifier for context

    Returns:
        Appropriate domain exception
    """
    error_code = error.response.get('Error', {}).get('Code', 'Unknown')
    error_message = error.response.get('Error', {}).get('Message', str(error))

    context = f"{operation} on {table_name}"
    if resource_id:
        context += f" (resource: {resource_id})"

    full_message = f"{context}: {error_message}"

    if error_code == 'ConditionalCheckFailedException':
        return ConflictError(f"Conditional check failed - {full_message}", resource_id, original_error=error)

    elif error_code == 'ResourceNotFoundException':
        return ConnectionError(f"Table not found - {full_message}", original_error=error)

    elif error_code == 'ValidationException':
        return ValidationError(f"Validation failed - {full_message}", original_error=error)

    elif error_code in ['ProvisionedThroughputExceededException', 'RequestLimitExceeded']:
        return RetryableError(f"Throttling - {full_message}", original_error=error)

    elif error_code in ['InternalServerError', 'ServiceUnavailable']:
        return RetryableError(f"Service unavailable - {full_message}", original_error=error)

    elif error_code in ['UnrecognizedClientException', 'AccessDeniedException']:
        return ConnectionError(f"Authentication/authorization failed - {full_message}", original_error=error)

    elif error_code == 'ItemCollectionSizeLimitExceededException':
        return ValidationError(f"Item collection size limit exceeded - {full_message}", original_error=error)

    elif error_code == 'TransactionConflictException':
        return ConflictError(f"Transaction conflict - {full_message}", resource_id, original_error=error)

    elif error_code == 'ResourceInUseException':
        return ConflictError(f"Resource in use - {full_message}", resource_id, original_error=error)

    elif error_code in ['ExpiredTokenException', 'TokenRefreshRequiredException']:
        return ConnectionError(f"Token expired - {full_message}", original_error=error)

    elif error_code in ['RequestTimeoutException', 'RequestExpiredException']:
        return RetryableError(f"Request timeout - {full_message}", original_error=error)

    elif error_code in [
        'ThrottlingException', 'SlowDown', 'BandwidthLimitExceeded',
        'RequestThrottledException', 'TooManyRequestsException'
    ]:
        return RetryableError(f"Throttling/rate limiting - {full_message}", original_error=error)

    elif error_code in [
        'ServiceException', 'ServiceUnavailableException', 'InternalFailure',
        'ServiceFailureException', 'ServiceTimeout'
    ]:
        return RetryableError(f"Service error - {full_message}", original_error=error)

    # Default to ConnectionError for unknown errors
    logger.warning(f"Unknown DynamoDB error code '{error_code}' mapped to ConnectionError")
    return ConnectionError(f"DynamoDB operation failed - {full_message}", original_error=error)


def format_resource_id(key: Dict[str, Any]) -> str:
    """Human-readable PartitionKey/RowKey identifier for error context."""
    return f"{key.get(PARTITION_KEY)}/{key.get(ROW_KEY)}"


class TableGateway:
    """
    Thin gateway for one DynamoDB table.

    Methods are synchronous; the repository runs them off the event loop.
    """

    def __init__(self, config: DynamoDBConfig, table_name: str):
        """Initialize table gateway.

        Args:
            config: DynamoDB configuration
            table_name: Full name of the DynamoDB table
        """
        self.config = config
        self.table_name = table_name
        self._dynamodb = None
        self._table = None

    @property
    def dynamodb(self):
        """Lazy initialization of DynamoDB resource."""
        if self._dynamodb is None:
            try:
                session = boto3.Session(
                    aws_access_key_id=self.config.aws_access_key_id,
                    aws_secret_access_key=self.config.aws_secret_access_key,
                    region_name=self.config.region_name
                )
                self._dynamodb = session.resource('dynamodb', **self.config.resource_kwargs())
            except Exception as e:
                logger.error(f"Failed to create DynamoDB resource: {e}")
                raise ConnectionError(f"Failed to connect to DynamoDB: {e}", e) from e
        return self._dynamodb

    @property
    def table(self):
        """boto3 Table resource, created on first use."""
        if self._table is None:
            try:
                self._table = self.dynamodb.Table(self.table_name)
            except Exception as e:
                logger.error(f"Failed to access table '{self.table_name}': {e}")
                raise ConnectionError(f"Failed to access table '{self.table_name}': {e}", e) from e
        return self._table

    def _log_request(self, operation: str, kwargs: Dict[str, Any]) -> None:
        if self.config.enable_debug_logging:
            logger.debug(f"{operation} on {self.table_name}: {kwargs}")

    @staticmethod
    def _apply_condition(kwargs: Dict[str, Any], condition: Optional[ConditionBase]) -> None:
        rendered = render_condition(condition, ConditionExpressionBuilder())
        if rendered is None:
            return
        expression, names, values = rendered
        kwargs['ConditionExpression'] = expression
        merge_expression_attributes(kwargs, names, values)

    def get_item(
        self,
        key: Dict[str, Any],
        projection: Optional[List[str]] = None,
        consistent_read: bool = False
    ) -> Optional[Dict[str, Any]]:
        """
        Point read of one item.

        Args:
            key: PartitionKey/RowKey pair
            projection: Optional attribute names to return
            consistent_read: Read the latest committed write

        Returns:
            The item, or None when no item has that key
        """
        get_kwargs = {'Key': key}
        if consistent_read:
            get_kwargs['ConsistentRead'] = True

        projection_expression, projection_names = build_projection_expression(projection)
        if projection_expression:
            get_kwargs['ProjectionExpression'] = projection_expression
            merge_expression_attributes(get_kwargs, projection_names)

        self._log_request("GetItem", get_kwargs)
        try:
            response = self.table.get_item(**get_kwargs)
        except ClientError as e:
            raise map_dynamodb_error(e, "GetItem", self.table_name, format_resource_id(key)) from e

        return response.get('Item')

    def put_item(self, item: Dict[str, Any], condition: Optional[ConditionBase] = None) -> None:
        """
        Put item into DynamoDB table, replacing any item with the same key.

        Example:
            gateway.put_item(
                item={'PartitionKey': 'a', 'RowKey': '1', 'Name': 'John'},
                condition=Attr('PartitionKey').not_exists()
            )
        """
        put_kwargs = {'Item': item}
        self._apply_condition(put_kwargs, condition)

        self._log_request("PutItem", put_kwargs)
        try:
            self.table.put_item(**put_kwargs)
        except ClientError as e:
            raise map_dynamodb_error(e, "PutItem", self.table_name, format_resource_id(item)) from e

    def update_item(
        self,
        key: Dict[str, Any],
        updates: Dict[str, Any],
        condition: Optional[ConditionBase] = None
    ) -> None:
        """
        SET each attribute in updates on the item with the given key.

        Attributes not named in updates are left untouched. Creates the item
        when it does not exist, unless the condition forbids it.

        Args:
            key: PartitionKey/RowKey pair
            updates: Attribute name to new value
            condition: Optional condition for the update
        """
        if not updates:
            raise ValidationError("Update requires at least one attribute")

        names = {}
        values = {}
        set_parts = []
        for i, (attribute_name, value) in enumerate(updates.items()):
            names[f"#u{i}"] = attribute_name
            values[f":u{i}"] = value
            set_parts.append(f"#u{i} = :u{i}")

        update_kwargs = {
            'Key': key,
            'UpdateExpression': "SET " + ", ".join(set_parts)
        }
        merge_expression_attributes(update_kwargs, names, values)
        self._apply_condition(update_kwargs, condition)

        self._log_request("UpdateItem", update_kwargs)
        try:
            self.table.update_item(**update_kwargs)
        except ClientError as e:
            raise map_dynamodb_error(e, "UpdateItem", self.table_name, format_resource_id(key)) from e

    def delete_item(self, key: Dict[str, Any], condition: Optional[ConditionBase] = None) -> None:
        """Delete the item with the given key. Deleting a missing item is not an error unless conditioned."""
        delete_kwargs = {'Key': key}
        self._apply_condition(delete_kwargs, condition)

        self._log_request("DeleteItem", delete_kwargs)
        try:
            self.table.delete_item(**delete_kwargs)
        except ClientError as e:
            raise map_dynamodb_error(e, "DeleteItem", self.table_name, format_resource_id(key)) from e

    def execute_query_segment(
        self,
        table_query,
        exclusive_start_key: Optional[Dict[str, Any]] = None
    ) -> Tuple[List[Dict[str, Any]], Optional[Dict[str, Any]]]:
        """
        Fetch one segment of a query.

        A partition-scoped TableQuery runs as a Query on the partition key;
        anything else runs as a Scan. The take becomes the request Limit,
        which DynamoDB applies to items evaluated before filtering, so a
        segment can hold fewer items than the take even when more match.

        Args:
            table_query: TableQuery describing filter, take, projection and partition
            exclusive_start_key: Resume handle from the previous segment

        Returns:
            Tuple of (items, resume handle or None when exhausted)
        """
        kwargs = {}
        builder = ConditionExpressionBuilder()

        operation = "Scan"
        if table_query.partition_key is not None:
            operation = "Query"
            key_expression, key_names, key_values = render_condition(
                build_partition_key_condition(PARTITION_KEY, table_query.partition_key),
                builder,
                is_key_condition=True
            )
            kwargs['KeyConditionExpression'] = key_expression
            merge_expression_attributes(kwargs, key_names, key_values)

        rendered_filter = render_condition(table_query.filter_condition, builder)
        if rendered_filter is not None:
            filter_expression, filter_names, filter_values = rendered_filter
            kwargs['FilterExpression'] = filter_expression
            merge_expression_attributes(kwargs, filter_names, filter_values)

        projection_expression, projection_names = build_projection_expression(table_query.select)
        if projection_expression:
            kwargs['ProjectionExpression'] = projection_expression
            merge_expression_attributes(kwargs, projection_names)

        if table_query.take is not None:
            kwargs['Limit'] = table_query.take

        if exclusive_start_key:
            kwargs['ExclusiveStartKey'] = exclusive_start_key

        self._log_request(operation, kwargs)
        try:
            if operation == "Query":
                response = self.table.query(**kwargs)
            else:
                response = self.table.scan(**kwargs)
        except ClientError as e:
            raise map_dynamodb_error(e, operation, self.table_name) from e

        items = response.get('Items', [])
        last_key = response.get('LastEvaluatedKey')
        logger.debug(f"{operation} segment on {self.table_name}: {len(items)} items, more={last_key is not None}")
        return items, last_key

    def create_table_if_not_exists(self) -> None:
        """Create the table with the PartitionKey/RowKey schema unless it already exists."""
        client = self.dynamodb.meta.client
        try:
            client.create_table(
                TableName=self.table_name,
                KeySchema=[
                    {'AttributeName': PARTITION_KEY, 'KeyType': 'HASH'},
                    {'AttributeName': ROW_KEY, 'KeyType': 'RANGE'}
                ],
                AttributeDefinitions=[
                    {'AttributeName': PARTITION_KEY, 'AttributeType': 'S'},
                    {'AttributeName': ROW_KEY, 'AttributeType': 'S'}
                ],
                BillingMode='PAY_PER_REQUEST'
            )
            logger.info(f"Created table {self.table_name}")
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') != 'ResourceInUseException':
                raise map_dynamodb_error(e, "CreateTable", self.table_name) from e
            logger.debug(f"Table {self.table_name} already exists")

        try:
            client.get_waiter('table_exists').wait(TableName=self.table_name)
        except ClientError as e:
            raise map_dynamodb_error(e, "DescribeTable", self.table_name) from e


def create_table_gateway(config: DynamoDBConfig, table_name: str) -> TableGateway:
    """
    Factory function to create a TableGateway instance.

    Args:
        config: DynamoDB configuration
        table_name: Base table name, expanded with config.get_table_name()

    Returns:
        Configured TableGateway instance
    """
    full_table_name = config.get_table_name(table_name)
    return TableGateway(config, full_table_name)
