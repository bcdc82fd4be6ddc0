"""
Core infrastructure for table repository operations.

- TableGateway: thin wrapper over the boto3 Table resource
- SegmentWalker / TableQuery: drive segmented Scan/Query round trips
- run_in_waves / suppress_not_found: batch execution helpers
- Continuation token codec for paged queries
"""

from .batch import is_not_found, run_in_waves, suppress_not_found
from .continuation import decode_continuation_token, encode_continuation_token
from .segment_walker import SegmentWalker, TableQuery
from .table_gateway import TableGateway, create_table_gateway, map_dynamodb_error

__all__ = [
    "TableGateway",
    "create_table_gateway",
    "map_dynamodb_error",
    "SegmentWalker",
    "TableQuery",
    "run_in_waves",
    "suppress_not_found",
    "is_not_found",
    "encode_continuation_token",
    "decode_continuation_token",
]
