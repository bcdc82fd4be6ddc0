"""
Filter to DynamoDB condition conversion.

Folds a Filter's parts left to right with the store's two grammar
primitives. The first statement becomes the running condition; every
following (operator, statement) pair wraps it:

    A and B and C  ->  ((A AND B) AND C)

never ``(A AND (B AND C))``. A None filter means "no filter".
"""

import logging
from typing import Optional

from boto3.dynamodb.conditions import ConditionBase

from ..models.filter import Filter, QueryComparison, QueryOperator, Statement
from ..utils import OPERATOR_AND, OPERATOR_OR, combine_filters, generate_filter_condition, render_condition

logger = logging.getLogger(__name__)

_COMPARISON_TOKENS = {
    QueryComparison.EQUAL: 'eq',
    QueryComparison.NOT_EQUAL: 'ne',
    QueryComparison.GREATER_THAN: 'gt',
    QueryComparison.GREATER_THAN_OR_EQUAL: 'gte',
    QueryComparison.LESS_THAN: 'lt',
    QueryComparison.LESS_THAN_OR_EQUAL: 'lte',
}

_OPERATOR_TOKENS = {
    QueryOperator.AND: OPERATOR_AND,
    QueryOperator.OR: OPERATOR_OR,
}


def comparison_to_token(comparison: QueryComparison) -> str:
    try:
        return _COMPARISON_TOKENS[comparison]
    except KeyError:
        raise ValueError(f"Unhandled enum value: {comparison}.") from None


def operator_to_token(operator: QueryOperator) -> str:
    try:
        return _OPERATOR_TOKENS[operator]
    except KeyError:
        raise ValueError(f"Unhandled enum value: {operator}.") from None


def statement_to_condition(statement: Statement) -> ConditionBase:
    return generate_filter_condition(
        statement.field_name,
        comparison_to_token(statement.comparison),
        statement.field_value
    )


def to_condition(query_filter: Optional[Filter]) -> Optional[ConditionBase]:
    """Convert a Filter into a boto3 condition, or None for no filter."""
    if query_filter is None:
        return None

    parts = query_filter.parts
    combined = statement_to_condition(parts[0])

    for i in range(1, len(parts) - 1, 2):
        operator, statement = parts[i], parts[i + 1]
        combined = combine_filters(combined, operator_to_token(operator), statement_to_condition(statement))

    return combined


def to_filter_expression(query_filter: Optional[Filter]) -> str:
    """Textual DynamoDB FilterExpression for a Filter ("" when there is none).

    Names and values appear as #n/:v placeholders, exactly as they would be
    sent to the store.

    Example:
        >>> f = Filter.when("Name", QueryComparison.EQUAL, "John").and_().when("Age", QueryComparison.EQUAL, "50").build()
        >>> to_filter_expression(f)
        '(#n0 = :v0 AND #n1 = :v1)'
    """
    rendered = render_condition(to_condition(query_filter))
    if rendered is None:
        return ""
    return rendered[0]
