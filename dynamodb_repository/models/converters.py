"""
Entity <-> DynamoDB item conversion.

DynamoDB has no native decimal-as-text or enum types, so declared fields of
those types are translated on the way in and out:

- Decimal fields are written as strings and parsed back on read.
- Enum fields are written as their integer value (or the raw value for
  non-integer enums) and looked up again on read.

A stored value that cannot be parsed back never fails the read: the field
keeps its declared default, or takes its zero value (Decimal(0), the first
enum member) when it has none.

Everything else goes through a generic pass: datetimes become UTC ISO strings
and floats become Decimal, which is the only number type boto3 accepts.
"""

import logging
import typing
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import ValidationError as PydanticValidationError

from ..exceptions import ValidationError
from ..utils import format_timestamp
from .entity import TableEntity

logger = logging.getLogger(__name__)

E = TypeVar('E', bound=TableEntity)


def _field_type(annotation: Any) -> Any:
    """Strip Optional[...] from an annotation."""
    if typing.get_origin(annotation) is typing.Union:
        args = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _is_decimal_type(field_type: Any) -> bool:
    return isinstance(field_type, type) and issubclass(field_type, Decimal)


def _is_enum_type(field_type: Any) -> bool:
    return isinstance(field_type, type) and issubclass(field_type, Enum)


def _enum_to_store(value: Enum) -> Any:
    if isinstance(value.value, int):
        return int(value.value)
    return value.value


def _to_store_value(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {k: _to_store_value(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_to_store_value(v) for v in obj]
    elif isinstance(obj, datetime):
        return format_timestamp(obj)
    elif isinstance(obj, Enum):
        return _enum_to_store(obj)
    elif isinstance(obj, bool):
        return obj
    elif isinstance(obj, float):
        return Decimal(str(obj))
    return obj


def write_entity(entity: TableEntity) -> Dict[str, Any]:
    """Convert an entity into a DynamoDB item keyed by store property names."""
    item = entity.model_dump(by_alias=True, exclude_none=True)

    for field_name, field_info in type(entity).model_fields.items():
        value = getattr(entity, field_name)
        if value is None:
            continue

        property_name = field_info.alias or field_name
        field_type = _field_type(field_info.annotation)

        if _is_decimal_type(field_type):
            item[property_name] = str(value)
        elif _is_enum_type(field_type):
            item[property_name] = _enum_to_store(value)

    return _to_store_value(item)


def _read_decimal(raw: Any) -> Optional[Decimal]:
    try:
        return Decimal(str(raw))
    except (InvalidOperation, ValueError):
        return None


def _read_enum(enum_class: Type[Enum], raw: Any) -> Optional[Enum]:
    try:
        return enum_class(raw)
    except ValueError:
        pass
    try:
        return enum_class(int(raw))
    except (TypeError, ValueError, InvalidOperation):
        return None


def _zero_value(field_type: Any) -> Any:
    if _is_decimal_type(field_type):
        return field_type(0)
    return next(iter(field_type))


def read_entity(item: Dict[str, Any], entity_class: Type[E]) -> E:
    """Convert a DynamoDB item into an instance of entity_class.

    Raises:
        ValidationError: If the item does not satisfy the entity model
    """
    data = dict(item)

    for field_name, field_info in entity_class.model_fields.items():
        property_name = field_info.alias or field_name
        if property_name not in data or data[property_name] is None:
            continue

        field_type = _field_type(field_info.annotation)
        raw = data[property_name]

        if _is_decimal_type(field_type):
            parsed = _read_decimal(raw)
        elif _is_enum_type(field_type):
            parsed = _read_enum(field_type, raw)
        else:
            continue

        if parsed is not None:
            data[property_name] = parsed
        elif field_info.is_required():
            logger.debug(f"Unparseable value {raw!r} for {entity_class.__name__}.{field_name}, using zero value")
            data[property_name] = _zero_value(field_type)
        else:
            logger.debug(f"Dropping unparseable value {raw!r} for {entity_class.__name__}.{field_name}")
            del data[property_name]

    try:
        return entity_class.model_validate(data)
    except PydanticValidationError as e:
        logger.error(f"Failed to convert item to {entity_class.__name__}: {e}")
        raise ValidationError(
            f"Failed to convert item to {entity_class.__name__}: {e}",
            errors={'errors': e.errors()},
            original_error=e
        ) from e
