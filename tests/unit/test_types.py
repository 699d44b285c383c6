import datetime

import pytest
from sqlhandle.strategy.sqlite import sqlite_types
from sqlhandle.types import Column, columns_from_cursor_description, resolve_type


@pytest.mark.parametrize(('type_code', 'name', 'expected'), [
    ('INTEGER', 'x', int),
    ('varchar(20)', 'x', None),
    ('TEXT', 'x', str),
    (float, 'x', float),
    (None, 'order_id', int),
    (None, 'created_at', datetime.datetime),
    (None, 'trade_date', datetime.date),
    (None, 'name', None),
])
def test_resolve_type(type_code, name, expected):
    assert resolve_type(sqlite_types, type_code, name) is expected


def test_from_short_description():
    column = Column.from_cursor_description(('total', 'REAL'), sqlite_types)

    assert column.name == 'total'
    assert column.python_type is float
    assert column.display_size is None
    assert column.to_dict()['python_type'] == 'float'


def test_columns_from_cursor(mocker):
    cursor = mocker.Mock(description=[('id', None, None, None, None, None, None),
                                      ('note', None, None, None, None, None, None)])

    columns = columns_from_cursor_description(cursor)

    assert Column.get_names(columns) == ['id', 'note']
    assert columns[0].python_type is int
    assert columns_from_cursor_description(mocker.Mock(description=None)) is None


def test_equality():
    assert Column('a', 'INTEGER') == Column('a', 'INTEGER', python_type=int)
    assert Column('a') != Column('b')
    assert len({Column('a'), Column('a')}) == 1


if __name__ == '__main__':
    __import__('pytest').main([__file__])
