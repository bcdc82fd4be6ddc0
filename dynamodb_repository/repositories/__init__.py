from .table_repository import TableRepository

__all__ = [
    "TableRepository",
]
