"""
Tests for TableRepository argument handling and failure classification,
using a mocked gateway so no store is involved.
"""

from unittest.mock import Mock

import pytest
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

from dynamodb_repository.exceptions import ConflictError, EntityNotFoundError, ValidationError
from dynamodb_repository.repositories.table_repository import TableRepository
from dynamodb_repository.validation import TABLE_NAME_PATTERN, TableNameValidator
from tests.helpers import PersonEntity


def conditional_check_failed() -> ConflictError:
    client_error = ClientError(
        error_response={'Error': {'Code': 'ConditionalCheckFailedException', 'Message': 'The conditional request failed'}},
        operation_name='PutItem'
    )
    return ConflictError("Conditional check failed", "people/1", original_error=client_error)


@pytest.fixture
def mock_gateway():
    gateway = Mock()
    gateway.table_name = "test_test_people"
    gateway.execute_query_segment.return_value = ([], None)
    gateway.get_item.return_value = None
    return gateway


@pytest.fixture
def repository(mock_dynamodb_config, mock_gateway):
    return TableRepository(mock_dynamodb_config, "people", entity_class=PersonEntity, gateway=mock_gateway)


class TestConstruction:

    def test_none_config_rejected(self):
        with pytest.raises(ValidationError, match="Config cannot be None"):
            TableRepository(None, "people")

    @pytest.mark.parametrize("table_name", [None, ""])
    def test_empty_table_name_rejected(self, mock_dynamodb_config, table_name):
        with pytest.raises(ValidationError, match="Table name cannot be None or empty"):
            TableRepository(mock_dynamodb_config, table_name)

    def test_max_concurrency_defaults_to_config(self, repository, mock_dynamodb_config):
        assert repository.max_concurrency == mock_dynamodb_config.max_concurrent_operations

    def test_invalid_max_concurrency_rejected(self, mock_dynamodb_config, mock_gateway):
        with pytest.raises(ValidationError, match="max_concurrency must be at least 1"):
            TableRepository(mock_dynamodb_config, "people", gateway=mock_gateway, max_concurrency=0)

    def test_create_if_not_exists(self, mock_dynamodb_config, mock_gateway):
        TableRepository(mock_dynamodb_config, "people", gateway=mock_gateway, create_if_not_exists=True)

        mock_gateway.create_table_if_not_exists.assert_called_once_with()

    def test_table_name_comes_from_gateway(self, repository):
        assert repository.table_name == "test_test_people"


class TestTableNameValidator:

    @pytest.mark.parametrize("name", ["people", "1people", "a", "with_underscore"])
    def test_every_name_accepted(self, name):
        assert TableNameValidator().is_valid(name) is True

    def test_documented_pattern(self):
        assert TABLE_NAME_PATTERN.match("People2024")
        assert not TABLE_NAME_PATTERN.match("1people")


class TestRetrievalShortCircuits:

    @pytest.mark.asyncio
    async def test_find_in_empty_values_makes_no_store_call(self, repository, mock_gateway):
        assert await repository.find_in("Name", []) == []

        mock_gateway.execute_query_segment.assert_not_called()

    @pytest.mark.asyncio
    async def test_find_in_none_values_rejected(self, repository):
        with pytest.raises(ValidationError):
            await repository.find_in("Name", None)

    @pytest.mark.asyncio
    async def test_find_in_non_string_values_rejected(self, repository, mock_gateway):
        with pytest.raises(ValidationError, match="Invalid filter statement"):
            await repository.find_in("Age", [50, 60])

        mock_gateway.execute_query_segment.assert_not_called()

    @pytest.mark.asyncio
    async def test_find_by_non_string_value_rejected(self, repository, mock_gateway):
        with pytest.raises(ValidationError):
            await repository.find_by("Age", 50)

        mock_gateway.execute_query_segment.assert_not_called()

    @pytest.mark.parametrize("partition_key", [None, ""])
    @pytest.mark.asyncio
    async def test_count_in_empty_partition_is_zero(self, repository, mock_gateway, partition_key):
        assert await repository.count_in_partition(partition_key) == 0

        mock_gateway.execute_query_segment.assert_not_called()

    @pytest.mark.asyncio
    async def test_query_requires_filter(self, repository):
        with pytest.raises(ValidationError, match="Filter cannot be None"):
            await repository.query(None)

    @pytest.mark.asyncio
    async def test_query_page_rejects_non_positive_take(self, repository):
        with pytest.raises(ValidationError, match="take must be a positive integer"):
            await repository.query_page(take=0)

    @pytest.mark.asyncio
    async def test_get_by_keys_requires_keys(self, repository, mock_gateway):
        with pytest.raises(ValidationError):
            await repository.get_by_keys(None, "1")

        mock_gateway.get_item.assert_not_called()

    @pytest.mark.asyncio
    async def test_get_by_entity_requires_entity(self, repository):
        with pytest.raises(ValidationError, match="Entity cannot be None"):
            await repository.get_by_entity(None)

    @pytest.mark.asyncio
    async def test_delete_older_than_requires_datetime(self, repository):
        with pytest.raises(ValidationError):
            await repository.delete_older_than(None)


class TestWriteContracts:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("operation", ["insert", "insert_or_replace", "insert_or_merge", "replace", "merge", "delete"])
    async def test_none_entity_rejected_before_store_call(self, repository, mock_gateway, operation):
        with pytest.raises(ValidationError, match="Entity cannot be None"):
            await getattr(repository, operation)(None)

        mock_gateway.put_item.assert_not_called()
        mock_gateway.update_item.assert_not_called()
        mock_gateway.delete_item.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("operation", ["replace", "merge", "delete"])
    async def test_missing_etag_rejected(self, repository, mock_gateway, operation):
        entity = PersonEntity(partition_key="people", row_key="1", name="John")

        with pytest.raises(ValidationError, match="has no ETag"):
            await getattr(repository, operation)(entity)

        mock_gateway.put_item.assert_not_called()
        mock_gateway.update_item.assert_not_called()
        mock_gateway.delete_item.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("operation", ["insert_many", "replace_many", "merge_many", "delete_many", "delete_many_if_exists"])
    async def test_none_collection_rejected(self, repository, operation):
        with pytest.raises(ValidationError, match="Entities cannot be None"):
            await getattr(repository, operation)(None)


class TestConditionalFailureClassification:

    @pytest.mark.asyncio
    async def test_missing_entity_becomes_not_found(self, repository, mock_gateway):
        mock_gateway.delete_item.side_effect = conditional_check_failed()
        mock_gateway.get_item.return_value = None
        entity = PersonEntity(partition_key="people", row_key="1", etag="abc")

        with pytest.raises(EntityNotFoundError) as exc_info:
            await repository.delete(entity)

        assert exc_info.value.key == {'PartitionKey': 'people', 'RowKey': '1'}
        mock_gateway.get_item.assert_called_once_with(entity.key, projection=['RowKey'], consistent_read=True)

    @pytest.mark.asyncio
    async def test_present_entity_becomes_conflict(self, repository, mock_gateway):
        mock_gateway.put_item.side_effect = conditional_check_failed()
        mock_gateway.get_item.return_value = {'RowKey': '1'}
        entity = PersonEntity(partition_key="people", row_key="1", etag="stale")

        with pytest.raises(ConflictError, match="ETag mismatch"):
            await repository.replace(entity)

        assert entity.etag == "stale"

    @pytest.mark.asyncio
    async def test_other_conflicts_propagate_without_probe(self, repository, mock_gateway):
        error = ConflictError("Transaction conflict", "people/1")
        mock_gateway.update_item.side_effect = error
        entity = PersonEntity(partition_key="people", row_key="1", etag="*")

        with pytest.raises(ConflictError) as exc_info:
            await repository.merge(entity)

        assert exc_info.value is error
        mock_gateway.get_item.assert_not_called()

    @pytest.mark.asyncio
    async def test_if_exists_variant_swallows_missing_entity(self, repository, mock_gateway):
        mock_gateway.put_item.side_effect = conditional_check_failed()
        entity = PersonEntity(partition_key="people", row_key="1", etag="*")

        assert await repository.replace_if_exists(entity) is None

    @pytest.mark.asyncio
    async def test_insert_conflict_message(self, repository, mock_gateway):
        mock_gateway.put_item.side_effect = conditional_check_failed()

        with pytest.raises(ConflictError, match="already exists") as exc_info:
            await repository.insert(PersonEntity(partition_key="people", row_key="1"))

        assert exc_info.value.resource_id == "people/1"
        mock_gateway.get_item.assert_not_called()


class TestDeleteByKeys:

    @pytest.mark.asyncio
    async def test_missing_entity_is_noop(self, repository, mock_gateway):
        await repository.delete_if_exists_by_keys("people", "1")

        mock_gateway.delete_item.assert_not_called()

    @pytest.mark.asyncio
    async def test_item_without_etag_deleted_with_wildcard(self, repository, mock_gateway):
        mock_gateway.get_item.return_value = {'PartitionKey': 'people', 'RowKey': '1'}

        await repository.delete_if_exists_by_keys("people", "1")

        args, kwargs = mock_gateway.delete_item.call_args
        assert args[0] == {'PartitionKey': 'people', 'RowKey': '1'}
        assert kwargs['condition'] == Attr('PartitionKey').exists()
