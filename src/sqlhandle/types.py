"""
Column metadata for result cursors.

This module provides:
- Column: name and type of one result column, from cursor descriptions
- resolve_type: Resolve driver type codes to Python types
"""
import datetime
from typing import Any, Self


def resolve_type(type_map: dict, type_code: Any, column_name: str | None = None) -> type | None:
    """Resolve a driver type code to a Python type.

    Priority:
    1. Direct type code lookup
    2. Column name patterns
    3. None (unknown)
    """
    if isinstance(type_code, type):
        return type_code

    if isinstance(type_code, str):
        base_type = type_code.split('(')[0].upper()
        if base_type in type_map:
            return type_map[base_type]
    elif type_code is not None and type_code in type_map:
        return type_map[type_code]

    if column_name:
        name_lower = column_name.lower()
        if name_lower.endswith('_id') or name_lower == 'id':
            return int
        if name_lower.endswith(('_datetime', '_at', '_timestamp')):
            return datetime.datetime
        if name_lower.endswith('_date') or name_lower == 'date':
            return datetime.date

    return None


class Column:
    """Result column metadata."""

    def __init__(self, name: str, type_code: Any = None, python_type: type | None = None,
                 display_size: int | None = None, precision: int | None = None,
                 scale: int | None = None):
        self.name = name
        self.type_code = type_code
        self.python_type = python_type
        self.display_size = display_size
        self.precision = precision
        self.scale = scale

    @classmethod
    def from_cursor_description(cls, item: Any, type_map: dict | None = None) -> Self:
        """Create a Column from one DB-API ``cursor.description`` entry."""
        item = tuple(item) + (None,) * (7 - len(item))
        name, type_code, display_size, _, precision, scale, _ = item[:7]
        return cls(name=name, type_code=type_code,
                   python_type=resolve_type(type_map or {}, type_code, name),
                   display_size=display_size, precision=precision, scale=scale)

    def __repr__(self) -> str:
        return (f'Column(name={self.name!r}, type_code={self.type_code!r}, '
                f'python_type={self.python_type.__name__ if self.python_type else None})')

    def __eq__(self, other):
        if not isinstance(other, Column):
            return NotImplemented
        return (self.name, self.type_code) == (other.name, other.type_code)

    def __hash__(self):
        return hash((self.name, repr(self.type_code)))

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'type_code': self.type_code,
            'python_type': self.python_type.__name__ if self.python_type else None,
            'display_size': self.display_size,
            'precision': self.precision,
            'scale': self.scale,
        }

    @staticmethod
    def get_names(columns: list[Self]) -> list[str]:
        return [col.name for col in columns]

    @staticmethod
    def get_column_types_dict(columns: list[Self]) -> dict[str, dict]:
        return {col.name: col.to_dict() for col in columns}


def columns_from_cursor_description(cursor: Any, type_map: dict | None = None) -> tuple[Column, ...] | None:
    """Columns of the cursor's current result, or None when it has none."""
    if cursor.description is None:
        return None
    return tuple(Column.from_cursor_description(desc, type_map) for desc in cursor.description)
