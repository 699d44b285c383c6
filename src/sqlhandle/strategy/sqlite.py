"""
SQLite-specific strategy implementation.

SQLite uses the qmark paramstyle natively, reports auto-commit through
``isolation_level`` and has no stored procedures. ``lastrowid`` is only a
generated key when the INSERT target declares an INTEGER PRIMARY KEY (a
rowid alias); that check reads ``pragma_table_info`` and is cached per
database file.
"""
import datetime
import logging
import sqlite3
from typing import TYPE_CHECKING, Any

import dateutil.parser
from sqlhandle.cache import cacheable_strategy
from sqlhandle.sql import insert_target
from sqlhandle.strategy.base import DatabaseStrategy, register_strategy
from sqlhandle.strategy.base import inserted_nothing, unwrap_connection

if TYPE_CHECKING:
    from sqlhandle.options import SourceOptions

logger = logging.getLogger(__name__)

sqlite_types: dict[str, type] = {
    'INTEGER': int,
    'REAL': float,
    'TEXT': str,
    'BLOB': bytes,
    'NUMERIC': float,
    'BOOLEAN': bool,
    'DATE': datetime.date,
    'DATETIME': datetime.datetime,
    'TIMESTAMP': datetime.datetime,
}


def convert_date(val: bytes) -> datetime.date:
    """Convert ISO 8601 date string to date object."""
    return dateutil.parser.isoparse(val.decode()).date()


def convert_datetime(val: bytes) -> datetime.datetime:
    """Convert ISO 8601 datetime string to datetime object."""
    return dateutil.parser.isoparse(val.decode())


def adapt_datetime(val: datetime.datetime) -> str:
    return val.isoformat(' ')


def adapt_date(val: datetime.date) -> str:
    return val.isoformat()


@register_strategy('sqlite')
class SQLiteStrategy(DatabaseStrategy):
    """SQLite-specific operations.
    """

    @property
    def dialect_name(self) -> str:
        return 'sqlite'

    @classmethod
    def get_required_options(cls) -> list[str]:
        return ['database']

    def get_engine_kwargs(self, options: 'SourceOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for SQLite."""
        return {
            'connect_args': {
                'detect_types': sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
                'check_same_thread': False,
            }
        }

    def configure_connection(self, conn: Any) -> None:
        """Register date/datetime adapters and converters.

        Converters are keyed on the declared column type, so DATE, DATETIME
        and TIMESTAMP columns come back as Python objects.
        """
        sqlite3.register_adapter(datetime.datetime, adapt_datetime)
        sqlite3.register_adapter(datetime.date, adapt_date)
        sqlite3.register_converter('date', convert_date)
        sqlite3.register_converter('datetime', convert_datetime)
        sqlite3.register_converter('timestamp', convert_datetime)

    def get_type_map(self) -> dict[str, type]:
        return sqlite_types

    def is_autocommit(self, conn: Any) -> bool:
        """SQLite connections with ``isolation_level=None`` commit per statement."""
        return unwrap_connection(conn).isolation_level is None

    def cache_scope(self, conn: Any) -> str:
        """The main database file; in-memory databases are scoped per connection."""
        raw = unwrap_connection(conn)
        cursor = raw.cursor()
        try:
            cursor.execute("select file from pragma_database_list where name = 'main'")
            row = cursor.fetchone()
        finally:
            cursor.close()
        if row and row[0]:
            return row[0]
        return f'memory-{id(raw)}'

    def generated_key(self, conn: Any, cursor: Any, sql: str) -> int:
        if cursor.description:
            return super().generated_key(conn, cursor, sql)
        if inserted_nothing(cursor):
            return -1
        target = insert_target(sql)
        if target is None:
            return -1
        schema, table = target
        if not self.has_rowid_alias(conn, table, schema or 'main'):
            logger.debug(f'Table {table} has no INTEGER PRIMARY KEY, no generated key')
            return -1
        return super().generated_key(conn, cursor, sql)

    @cacheable_strategy('rowid_alias', ttl=300, maxsize=50)
    def has_rowid_alias(self, cn: Any, table: str, schema: str = 'main') -> bool:
        """Check whether a table's primary key is a single INTEGER column.

        Only such a column aliases the rowid, which is what ``lastrowid``
        reports.
        """
        cursor = unwrap_connection(cn).cursor()
        try:
            cursor.execute('select type, pk from pragma_table_info(?, ?)', (table, schema))
            keys = [row[0] for row in cursor.fetchall() if row[1]]
        finally:
            cursor.close()
        return len(keys) == 1 and keys[0].upper() == 'INTEGER'
