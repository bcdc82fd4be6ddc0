"""
Filter Expression Builder

Lets callers describe ``field cmp value [AND|OR field cmp value]*`` without
writing DynamoDB condition expressions by hand:

    filter = (
        Filter.when("Age", QueryComparison.GREATER_THAN_OR_EQUAL, "50")
        .and_()
        .when("Name", QueryComparison.EQUAL, "John")
        .build()
    )

The builder alternates between two step types. ``Filter.when`` returns a
FilterOperatorStep, which only offers ``and_()``, ``or_()`` and ``build()``;
those operators return a FilterWhenStep, which only offers ``when()``. A
sequence that starts with an operator, repeats a statement or ends on an
operator therefore cannot be written.

Statements must be strings; anything else raises ValidationError as soon as
``when`` is called. Whether the field exists is left to the store.
"""

from enum import Enum
from typing import Tuple, Union

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import ValidationError


class QueryComparison(str, Enum):
    """Comparison applied between a field and a value."""
    EQUAL = "Equal"
    NOT_EQUAL = "NotEqual"
    GREATER_THAN = "GreaterThan"
    GREATER_THAN_OR_EQUAL = "GreaterThanOrEqual"
    LESS_THAN = "LessThan"
    LESS_THAN_OR_EQUAL = "LessThanOrEqual"


class QueryOperator(str, Enum):
    """Boolean operator joining two statements."""
    AND = "And"
    OR = "Or"


class Statement(BaseModel):
    """A single field/comparison/value triple."""

    field_name: str
    comparison: QueryComparison
    field_value: str

    model_config = ConfigDict(frozen=True)


FilterPart = Union[Statement, QueryOperator]


def _statement(field_name: str, comparison: QueryComparison, field_value: str) -> Statement:
    try:
        return Statement(field_name=field_name, comparison=comparison, field_value=field_value)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid filter statement {field_name!r} {comparison!r} {field_value!r}: {e}",
            errors={'errors': e.errors()},
            original_error=e
        ) from e


class Filter(BaseModel):
    """An immutable, alternating sequence of statements and operators."""

    parts: Tuple[FilterPart, ...]

    model_config = ConfigDict(frozen=True)

    @model_validator(mode='after')
    def validate_alternation(self) -> 'Filter':
        if not self.parts:
            raise ValueError("A filter needs at least one statement")
        for index, part in enumerate(self.parts):
            expects_statement = index % 2 == 0
            if expects_statement and not isinstance(part, Statement):
                raise ValueError(f"Expected a statement at position {index}, got {part!r}")
            if not expects_statement and not isinstance(part, QueryOperator):
                raise ValueError(f"Expected an operator at position {index}, got {part!r}")
        if len(self.parts) % 2 == 0:
            raise ValueError("A filter cannot end with an operator")
        return self

    @classmethod
    def when(cls, field_name: str, comparison: QueryComparison, field_value: str) -> 'FilterOperatorStep':
        """Start a filter with its first statement.

        Raises:
            ValidationError: If field_name, comparison or field_value has the wrong type
        """
        return FilterOperatorStep((_statement(field_name, comparison, field_value),))

    @property
    def statements(self) -> Tuple[Statement, ...]:
        return tuple(part for part in self.parts if isinstance(part, Statement))


class FilterWhenStep:
    """Builder state right after an operator: only a statement may follow."""

    __slots__ = ('_parts',)

    def __init__(self, parts: Tuple[FilterPart, ...]):
        self._parts = parts

    def when(self, field_name: str, comparison: QueryComparison, field_value: str) -> 'FilterOperatorStep':
        return FilterOperatorStep(self._parts + (_statement(field_name, comparison, field_value),))


class FilterOperatorStep:
    """Builder state right after a statement: join another one or finish."""

    __slots__ = ('_parts',)

    def __init__(self, parts: Tuple[FilterPart, ...]):
        self._parts = parts

    def and_(self) -> FilterWhenStep:
        return FilterWhenStep(self._parts + (QueryOperator.AND,))

    def or_(self) -> FilterWhenStep:
        return FilterWhenStep(self._parts + (QueryOperator.OR,))

    def build(self) -> Filter:
        return Filter(parts=self._parts)
