"""
Unit tests for driver strategies and dialect detection.
"""
import sqlite3

import pytest
from sqlhandle.cache import Cache
from sqlhandle.strategy import GenericStrategy, PostgresStrategy
from sqlhandle.strategy import SQLiteStrategy, get_available_dialects
from sqlhandle.strategy import get_db_strategy, get_strategy
from sqlhandle.strategy import get_strategy_class, is_supported_dialect
from sqlhandle.utils import get_dialect_name

from tests.fixtures.fakes import FakeConnection


def _psycopg_like_connection():
    cls = type('Connection', (), {'__module__': 'psycopg.connection'})
    return cls()


@pytest.fixture
def sqlite_conn():
    conn = sqlite3.connect(':memory:')
    conn.execute('create table person (id integer primary key, name text)')
    conn.execute('create table tag (name text primary key, note text)')
    conn.execute('create table legacy (id int primary key, name text)')
    conn.execute('create table pair (a integer, b integer, primary key (a, b))')
    yield conn
    conn.close()


class TestDialectDetection:

    def test_driver_connections(self, sqlite_conn):
        assert get_dialect_name(sqlite_conn) == 'sqlite'
        assert get_dialect_name(_psycopg_like_connection()) == 'postgresql'
        assert get_dialect_name(FakeConnection()) is None

    def test_sqlalchemy_objects(self, mocker, sqlite_conn):
        engine = mocker.Mock()
        engine.dialect.name = 'PostgreSQL'
        assert get_dialect_name(engine) == 'postgresql'

        fairy = mocker.Mock(spec=['dbapi_connection'])
        fairy.dbapi_connection = sqlite_conn
        assert get_dialect_name(fairy) == 'sqlite'

    def test_strategy_for_connection(self, sqlite_conn):
        assert isinstance(get_db_strategy(sqlite_conn), SQLiteStrategy)
        assert isinstance(get_db_strategy(_psycopg_like_connection()), PostgresStrategy)
        assert isinstance(get_db_strategy(FakeConnection()), GenericStrategy)

    def test_strategies_are_shared(self):
        assert get_strategy('sqlite') is get_strategy('sqlite')

    def test_available_dialects(self):
        assert set(get_available_dialects()) == {'postgresql', 'sqlite'}
        assert is_supported_dialect('sqlite')
        assert not is_supported_dialect('generic')
        assert get_strategy_class('postgresql') is PostgresStrategy

    def test_unknown_dialect(self):
        with pytest.raises(ValueError, match='Unsupported dialect'):
            get_strategy('oracle')


class TestPlaceholders:

    def test_postgres_rewrites_qmarks(self):
        sql = "select * from t where id = ? and pct = 5 % 2 and note = '?'"

        assert PostgresStrategy().standardize_sql(sql, [1]) == (
            "select * from t where id = %s and pct = 5 %% 2 and note = '?'")

    def test_postgres_escapes_percent_in_comments(self):
        assert PostgresStrategy().standardize_sql('select ? -- 50% off\n', [1]) == (
            'select %s -- 50%% off\n')

    def test_without_params_sql_is_sent_as_written(self):
        sql = "select * from t where name like 'a%'"
        assert PostgresStrategy().standardize_sql(sql, []) == sql

    def test_qmark_drivers_are_unchanged(self):
        sql = 'select * from t where id = ?'
        assert SQLiteStrategy().standardize_sql(sql, [1]) == sql
        assert GenericStrategy().standardize_sql(sql, [1]) == sql


class TestAutocommit:

    def test_sqlite_isolation_level(self):
        assert SQLiteStrategy().is_autocommit(sqlite3.connect(':memory:', isolation_level=None))
        assert not SQLiteStrategy().is_autocommit(sqlite3.connect(':memory:'))

    def test_pool_proxy_is_unwrapped(self, mocker):
        proxy = mocker.Mock()
        proxy.driver_connection.autocommit = True
        assert GenericStrategy().is_autocommit(proxy)

    def test_generic_attribute(self):
        conn = FakeConnection()
        assert not GenericStrategy().is_autocommit(conn)
        conn.autocommit = True
        assert GenericStrategy().is_autocommit(conn)


class TestGeneratedKey:

    def test_integer_primary_key(self, sqlite_conn):
        cursor = sqlite_conn.execute("insert into person (name) values ('a')")
        key = SQLiteStrategy().generated_key(sqlite_conn, cursor, 'insert into person (name) values (?)')
        assert key == cursor.lastrowid == 1

    @pytest.mark.parametrize('sql', [
        "insert into tag (name) values ('a')",
        "insert into legacy (id, name) values (5, 'a')",
        'insert into pair (a, b) values (1, 2)',
    ])
    def test_tables_without_rowid_alias(self, sqlite_conn, sql):
        cursor = sqlite_conn.execute(sql)
        assert SQLiteStrategy().generated_key(sqlite_conn, cursor, sql) == -1

    def test_ignored_insert_has_no_key(self, sqlite_conn):
        sql = "insert or ignore into person (id, name) values (1, 'a')"
        first = sqlite_conn.execute(sql)
        assert SQLiteStrategy().generated_key(sqlite_conn, first, sql) == 1

        second = sqlite_conn.execute(sql)

        assert second.rowcount == 0
        assert SQLiteStrategy().generated_key(sqlite_conn, second, sql) == -1

    def test_not_an_insert(self, sqlite_conn):
        cursor = sqlite_conn.execute("update person set name = 'b'")
        assert SQLiteStrategy().generated_key(sqlite_conn, cursor, "update person set name = 'b'") == -1

    def test_returning_row(self, mocker):
        cursor = mocker.Mock(description=[('id',)])
        cursor.fetchone.return_value = (12,)
        assert PostgresStrategy().generated_key(None, cursor, 'insert into t values (1) returning id') == 12

    def test_postgres_without_returning(self, mocker):
        cursor = mocker.Mock(description=None, lastrowid=0)
        assert PostgresStrategy().generated_key(None, cursor, 'insert into t values (1)') == -1

    def test_rowid_alias_is_cached_per_database(self, sqlite_conn):
        other = sqlite3.connect(':memory:')
        other.execute('create table person (code text primary key, name text)')
        strategy = SQLiteStrategy()
        try:
            assert strategy.has_rowid_alias(sqlite_conn, 'person')
            assert not strategy.has_rowid_alias(other, 'person')
        finally:
            other.close()

    def test_rowid_alias_is_cached(self, sqlite_conn):
        strategy = SQLiteStrategy()
        assert strategy.has_rowid_alias(sqlite_conn, 'person')
        sqlite_conn.execute('drop table person')
        sqlite_conn.execute('create table person (name text primary key)')

        assert strategy.has_rowid_alias(sqlite_conn, 'person')
        assert not strategy.has_rowid_alias(sqlite_conn, 'person', bypass_cache=True)

        Cache.get_instance().clear_for_table('person')
        assert not strategy.has_rowid_alias(sqlite_conn, 'person')


class TestPostgresInsert:
    """RETURNING is appended for tables with a serial or identity column"""

    @pytest.fixture
    def pg_conn(self, mocker):
        conn = mocker.Mock(driver_connection=None, info=None)
        conn.cursor.return_value.fetchone.return_value = ('id',)
        return conn

    def test_appends_returning(self, pg_conn):
        sql = PostgresStrategy().prepare_insert(pg_conn, 'insert into person (name) values (?);')

        assert sql == 'insert into person (name) values (?)\nreturning "id"'
        lookup = pg_conn.cursor.return_value
        assert lookup.execute.call_args.args[1] == ('person', None)
        assert lookup.close.called

    def test_schema_qualified_target(self, pg_conn):
        PostgresStrategy().prepare_insert(pg_conn, 'insert into sales."Order" (x) values (?)')

        assert pg_conn.cursor.return_value.execute.call_args.args[1] == ('Order', 'sales')

    def test_sequence_column_is_cached(self, pg_conn):
        strategy = PostgresStrategy()
        strategy.prepare_insert(pg_conn, 'insert into person (name) values (?)')
        strategy.prepare_insert(pg_conn, 'insert into person (name) values (?)')

        assert pg_conn.cursor.call_count == 1

    def test_table_without_sequence(self, pg_conn):
        pg_conn.cursor.return_value.fetchone.return_value = None
        sql = 'insert into tag (name) values (?)'

        assert PostgresStrategy().prepare_insert(pg_conn, sql) == sql

    @pytest.mark.parametrize('sql', [
        'insert into person (name) values (?) returning id',
        'update person set name = ?',
    ])
    def test_sent_as_written(self, pg_conn, sql):
        assert PostgresStrategy().prepare_insert(pg_conn, sql) == sql
        assert not pg_conn.cursor.called

    def test_returned_key_is_reported(self, mocker, pg_conn):
        cursor = mocker.Mock(description=[('id',)], rowcount=1)
        cursor.fetchone.return_value = (7,)

        assert PostgresStrategy().generated_key(pg_conn, cursor, 'insert into person (name) values (?)') == 7

    def test_generic_strategy_leaves_insert_alone(self):
        sql = 'insert into person (name) values (?)'
        assert GenericStrategy().prepare_insert(FakeConnection(), sql) is sql


if __name__ == '__main__':
    __import__('pytest').main([__file__])
