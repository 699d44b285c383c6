"""
PostgreSQL-specific strategy implementation (psycopg 3).

psycopg uses the ``%s`` paramstyle, so ``?`` placeholders are rewritten
outside literals and bare percent signs are doubled. Procedures are invoked
with ``CALL``; PostgreSQL returns OUT and INOUT arguments as a single row,
which is read into the output markers instead of being exposed as a result
set. An INSERT into a table with a serial or identity column gets a
``RETURNING`` clause for that column, so the generated key comes back with
the statement itself.
"""
import datetime
import logging
import re
from typing import Any

from psycopg.postgres import types as pg_types
from sqlhandle.cache import cacheable_strategy
from sqlhandle.sql import TokenType, insert_target, quote_identifier
from sqlhandle.sql import tokenize_sql
from sqlhandle.strategy.base import DatabaseStrategy, register_strategy
from sqlhandle.strategy.base import unwrap_connection

logger = logging.getLogger(__name__)

_RETURNING = re.compile(r'\breturning\b', re.IGNORECASE)

_oid = lambda x: pg_types.get(x).oid

postgres_types: dict[int, type] = {}

for v in [_oid('bpchar'), _oid('varchar'), _oid('text'), _oid('name'),
          _oid('json'), _oid('uuid')]:
    postgres_types[v] = str

for v in [_oid('int2'), _oid('int4'), _oid('int8')]:
    postgres_types[v] = int

for v in [_oid('float4'), _oid('float8'), _oid('numeric')]:
    postgres_types[v] = float

postgres_types[_oid('date')] = datetime.date

for v in [_oid('timestamp'), _oid('timestamptz')]:
    postgres_types[v] = datetime.datetime

for v in [_oid('time'), _oid('timetz')]:
    postgres_types[v] = datetime.time

postgres_types[_oid('bool')] = bool

for v in [_oid('bytea'), _oid('jsonb')]:
    postgres_types[v] = bytes


@register_strategy('postgresql')
class PostgresStrategy(DatabaseStrategy):
    """PostgreSQL-specific operations.
    """

    placeholder = '%s'

    @property
    def dialect_name(self) -> str:
        return 'postgresql'

    @classmethod
    def get_required_options(cls) -> list[str]:
        return ['hostname', 'username', 'password', 'database', 'port']

    def get_type_map(self) -> dict[int, type]:
        return postgres_types

    def execute_call(self, conn, cursor, sql, params, out_positions):
        """Execute ``CALL`` and copy the returned argument row into outputs.

        The row carries one value per OUT/INOUT argument, in argument order.
        """
        cursor.execute(self.standardize_sql(sql, params), params)
        if not out_positions or not cursor.description:
            return {}, False
        row = cursor.fetchone()
        if row is None:
            return {}, True
        outputs = dict(zip(out_positions, row))
        logger.debug(f'Procedure returned {len(outputs)} output value(s)')
        return outputs, True

    def cache_scope(self, conn: Any) -> str:
        info = getattr(unwrap_connection(conn), 'info', None)
        if info is None:
            return super().cache_scope(conn)
        return f'{info.host}:{info.port}/{info.dbname}'

    def prepare_insert(self, conn: Any, sql: str) -> str:
        """Append ``RETURNING`` for the target's sequence column.

        Statements that already return something are sent as written.
        """
        target = insert_target(sql)
        if target is None or _has_returning(sql):
            return sql
        schema, table = target
        column = self.find_sequence_column(conn, table, schema)
        if column is None:
            logger.debug(f'Table {table} has no serial or identity column, no generated key')
            return sql
        return f'{sql.rstrip().rstrip(";").rstrip()}\nreturning {quote_identifier(column)}'

    @cacheable_strategy('sequence_column', ttl=300, maxsize=50)
    def find_sequence_column(self, cn: Any, table: str, schema: str | None = None) -> str | None:
        """First serial or identity column of a table, or None.
        """
        sql = """
select column_name
from information_schema.columns
where table_name = %s
and table_schema = coalesce(%s::text, current_schema())
and (column_default like 'nextval%%' or is_identity = 'YES')
order by ordinal_position
limit 1
"""
        cursor = unwrap_connection(cn).cursor()
        try:
            cursor.execute(sql, (table, schema))
            row = cursor.fetchone()
        finally:
            cursor.close()
        return row[0] if row else None


def _has_returning(sql: str) -> bool:
    return any(
        token.type == TokenType.SQL_TEXT and _RETURNING.search(token.text)
        for token in tokenize_sql(sql)
    )
