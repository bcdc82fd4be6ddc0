"""
Test helpers for the DynamoDB table repository.
"""

from .entities import (
    Department,
    PersonEntity,
    PersonWithDecimalEntity,
    PersonWithEnumEntity,
    ProductEntity,
    Tier,
    build_people,
)
from .timestamp_assertions import assert_stored_as_utc_string, assert_utc_timezone

__all__ = [
    'Department',
    'PersonEntity',
    'PersonWithDecimalEntity',
    'PersonWithEnumEntity',
    'ProductEntity',
    'Tier',
    'build_people',
    'assert_stored_as_utc_string',
    'assert_utc_timezone',
]
