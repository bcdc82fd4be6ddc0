"""
Test configuration and fixtures for the DynamoDB table repository.

Provides common fixtures backed by moto's in-process DynamoDB.
"""

import sys
from pathlib import Path

# Add parent directory to path so we can import dynamodb_repository
sys.path.insert(0, str(Path(__file__).parent.parent))

import boto3
import pytest
from moto import mock_aws

from dynamodb_repository import DynamicTableEntity, DynamoDBConfig, TableRepository
from tests.helpers import PersonEntity


@pytest.fixture
def dynamodb_config():
    """DynamoDB configuration for testing against a local endpoint."""
    return DynamoDBConfig(
        aws_access_key_id="test_key",
        aws_secret_access_key="test_secret",
        region_name="us-east-1",
        endpoint_url="http://localhost:8000",
        environment="test",
        table_prefix="test"
    )


@pytest.fixture
def mock_dynamodb_config():
    """DynamoDB configuration for mocked testing."""
    return DynamoDBConfig(
        aws_access_key_id="test_key",
        aws_secret_access_key="test_secret",
        region_name="us-east-1",
        endpoint_url=None,  # Use default AWS endpoint for moto
        environment="test",
        table_prefix="test",
        max_concurrent_operations=3
    )


@pytest.fixture
def mock_dynamodb_resource():
    """Mock DynamoDB resource."""
    with mock_aws():
        yield boto3.resource('dynamodb', region_name='us-east-1')


@pytest.fixture
def person_repository(mock_dynamodb_config, mock_dynamodb_resource):
    """Typed repository over a freshly created 'people' table."""
    return TableRepository(
        mock_dynamodb_config,
        "people",
        entity_class=PersonEntity,
        create_if_not_exists=True
    )


@pytest.fixture
def dynamic_repository(mock_dynamodb_config, mock_dynamodb_resource):
    """Schemaless repository over a freshly created 'things' table."""
    return TableRepository(
        mock_dynamodb_config,
        "things",
        entity_class=DynamicTableEntity,
        create_if_not_exists=True
    )


@pytest.fixture
def sample_people():
    """The three people used by the filter query tests."""
    return [
        PersonEntity(partition_key="people", row_key="1", name="John", age="50"),
        PersonEntity(partition_key="people", row_key="2", name="John", age="40"),
        PersonEntity(partition_key="people", row_key="3", name="Mary", age="60"),
    ]
