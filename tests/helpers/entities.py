"""
Entity models shared by the tests.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import Field

from dynamodb_repository import TableEntity


class PersonEntity(TableEntity):
    name: Optional[str] = Field(default=None, alias="Name")
    age: Optional[str] = Field(default=None, alias="Age")


class PersonWithDecimalEntity(TableEntity):
    name: Optional[str] = Field(default=None, alias="Name")
    salary: Optional[Decimal] = Field(default=None, alias="Salary")


class Department(Enum):
    ENGINEERING = 1
    SALES = 2
    SUPPORT = 3


class Tier(Enum):
    GOLD = "gold"
    SILVER = "silver"


class PersonWithEnumEntity(TableEntity):
    name: Optional[str] = Field(default=None, alias="Name")
    department: Optional[Department] = Field(default=None, alias="Department")
    tier: Optional[Tier] = Field(default=None, alias="Tier")


class ProductEntity(TableEntity):
    """Required decimal and enum properties, no defaults."""
    price: Decimal = Field(alias="Price")
    department: Department = Field(alias="Department")


def build_people(count: int, partition_key: str = "people", name: str = "John") -> list:
    """count PersonEntity instances with row keys "0".."count-1"."""
    return [
        PersonEntity(partition_key=partition_key, row_key=str(i), name=name, age=str(20 + i))
        for i in range(count)
    ]
