"""
Table Repository Utilities - Consolidated Module

Key Features:
- Timestamp handling (UTC-only storage format)
- Store grammar primitives: render one comparison, combine two conditions
- Query building (projections, key conditions, textual rendering)
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from boto3.dynamodb.conditions import And, Attr, ConditionBase, ConditionExpressionBuilder, Key, Or

logger = logging.getLogger(__name__)


# =============================================================================
# Timezone Utilities
# =============================================================================

def to_utc(dt: datetime) -> datetime:
    """Convert datetime to UTC.

    Naive datetimes are assumed to already be in UTC.

    Examples:
        >>> dt = datetime(2024, 1, 1, 10, 0, tzinfo=ZoneInfo('America/New_York'))
        >>> to_utc(dt)  # -> 2024-01-01 15:00:00+00:00

        >>> dt = datetime(2024, 1, 1, 10, 0)
        >>> to_utc(dt)  # -> 2024-01-01 10:00:00+00:00
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """Render a datetime in the stored Timestamp format.

    Always UTC with microsecond precision, so stored timestamps compare
    correctly as strings (a filter like ``Timestamp < threshold`` relies on it).
    """
    return to_utc(dt).isoformat(timespec='microseconds')


# =============================================================================
# Store Grammar Primitives
# =============================================================================

# Condition tokens are the boto3 Attr method names
COMPARISON_TOKENS = ('eq', 'ne', 'gt', 'gte', 'lt', 'lte')

# Boolean tokens are the DynamoDB expression keywords
OPERATOR_AND = 'AND'
OPERATOR_OR = 'OR'


def generate_filter_condition(field_name: str, comparison_token: str, value: Any) -> ConditionBase:
    """Render a single ``field <comparison> value`` condition.

    Example:
        >>> generate_filter_condition('Name', 'eq', 'John')
        # Returns: Attr('Name').eq('John')

    Raises:
        ValueError: For an unknown comparison token
    """
    if comparison_token not in COMPARISON_TOKENS:
        raise ValueError(
            f"Unsupported comparison token: {comparison_token}. "
            f"Supported values: {', '.join(COMPARISON_TOKENS)}"
        )
    return getattr(Attr(field_name), comparison_token)(value)


def combine_filters(left: ConditionBase, operator_token: str, right: ConditionBase) -> ConditionBase:
    """Combine two conditions with a boolean operator.

    The left operand is kept as a unit, so folding a sequence with this
    function groups it left to right: ``((A AND B) AND C)``.

    Raises:
        ValueError: For an unknown operator token
    """
    if operator_token == OPERATOR_AND:
        return And(left, right)
    elif operator_token == OPERATOR_OR:
        return Or(left, right)
    raise ValueError(
        f"Unsupported operator token: {operator_token}. "
        f"Supported values: {OPERATOR_AND}, {OPERATOR_OR}"
    )


def render_condition(condition: Optional[ConditionBase], builder: Optional[ConditionExpressionBuilder] = None,
                     is_key_condition: bool = False) -> Optional[Tuple[str, Dict[str, str], Dict[str, Any]]]:
    """Render a condition into (expression, attribute names, attribute values).

    Pass the same builder for every condition of one request so placeholders
    (#n0, :v0, ...) stay unique across them.

    Returns:
        Tuple of (expression, names, values), or None for no condition
    """
    if condition is None:
        return None

    builder = builder or ConditionExpressionBuilder()
    built = builder.build_expression(condition, is_key_condition=is_key_condition)
    return (
        built.condition_expression,
        built.attribute_name_placeholders,
        built.attribute_value_placeholders,
    )


# =============================================================================
# Query Building Utilities
# =============================================================================

def build_projection_expression(fields: Optional[List[str]]) -> Tuple[Optional[str], Optional[Dict[str, str]]]:
    """Build ProjectionExpression with ExpressionAttributeNames.

    Placeholders keep reserved words (Name, Timestamp, ...) safe.

    Example:
        >>> build_projection_expression(['RowKey', 'Name'])
        ('#f0, #f1', {'#f0': 'RowKey', '#f1': 'Name'})
    """
    if not fields:
        return None, None

    expression_names = {}
    projection_parts = []

    for i, field in enumerate(fields):
        attr_name = f"#f{i}"
        expression_names[attr_name] = field
        projection_parts.append(attr_name)

    projection_expression = ', '.join(projection_parts)
    return projection_expression, expression_names


def build_partition_key_condition(partition_key_name: str, partition_value: str) -> ConditionBase:
    """KeyConditionExpression selecting every entity of one partition."""
    return Key(partition_key_name).eq(partition_value)


def merge_expression_attributes(kwargs: Dict[str, Any], names: Optional[Dict[str, str]],
                                values: Optional[Dict[str, Any]] = None) -> None:
    """Add placeholder maps to a boto3 request, keeping any already present."""
    if names:
        kwargs.setdefault('ExpressionAttributeNames', {}).update(names)
    if values:
        kwargs.setdefault('ExpressionAttributeValues', {}).update(values)


__all__ = [
    # Timezone Utilities
    "to_utc",
    "utc_now",
    "format_timestamp",

    # Store Grammar
    "COMPARISON_TOKENS",
    "OPERATOR_AND",
    "OPERATOR_OR",
    "generate_filter_condition",
    "combine_filters",
    "render_condition",

    # Query Building
    "build_projection_expression",
    "build_partition_key_condition",
    "merge_expression_attributes",
]
