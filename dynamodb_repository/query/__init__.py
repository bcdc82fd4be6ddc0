from .filter_converter import (
    comparison_to_token,
    operator_to_token,
    statement_to_condition,
    to_condition,
    to_filter_expression,
)

__all__ = [
    "comparison_to_token",
    "operator_to_token",
    "statement_to_condition",
    "to_condition",
    "to_filter_expression",
]
