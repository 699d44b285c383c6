"""
Transaction behavior of automatic and explicit connections with SQLite.
"""
import pytest
import sqlhandle
from sqlhandle.cursor import Select
from sqlhandle.statement import Update


def _balances(connection=None):
    with Select('select owner, balance from account order by id', connection=connection) as query:
        query.execute()
        return {query.get_string(1): query.get_float(2) for _ in iter(query.next, False)}


class TestExplicitConnection:
    """Several handles sharing one caller-owned connection and transaction"""

    def test_rollback_discards_every_handle(self, sqlite_file_registry):
        conn = sqlhandle.acquire()
        try:
            debit = Update('update account set balance = balance - ? where owner = ?',
                           connection=conn, args=[30.0, 'ann'])
            credit = Update('update account set balance = balance + ? where owner = ?',
                            connection=conn, args=[30.0, 'ben'])
            debit.execute().close()
            credit.execute().close()

            assert _balances(conn) == {'ann': 70.0, 'ben': 80.0}
            conn.rollback()
            assert _balances(conn) == {'ann': 100.0, 'ben': 50.0}
        finally:
            sqlhandle.release(None, conn)

        assert _balances() == {'ann': 100.0, 'ben': 50.0}

    def test_commit_by_owner(self, sqlite_file_registry):
        conn = sqlhandle.acquire('file')
        try:
            with Update('update account set balance = 0 where owner = ?', connection=conn, args=['ben']) as handle:
                handle.execute()
            assert _balances()['ben'] == 50.0
            conn.commit()
        finally:
            sqlhandle.release('file', conn)

        assert _balances()['ben'] == 0.0

    def test_handle_does_not_release_connection(self, sqlite_file_registry):
        conn = sqlhandle.acquire()
        try:
            handle = Update('update account set owner = owner', connection=conn)
            handle.execute().close()
            handle.execute().close()

            assert handle.connection is conn
            cursor = conn.cursor()
            cursor.execute('select 1')
            assert cursor.fetchone() == (1,)
        finally:
            sqlhandle.release(None, conn)


class TestAutomaticConnection:

    def test_close_commits(self, sqlite_file_registry):
        Update('update account set balance = 1 where owner = ?', args=['ann']).execute().close()
        assert _balances()['ann'] == 1.0

    def test_close_without_commit_discards(self, sqlite_file_registry):
        Update('update account set balance = 1 where owner = ?', args=['ann']).execute().close(commit=False)
        assert _balances()['ann'] == 100.0

    def test_error_in_block_discards(self, sqlite_file_registry):
        with pytest.raises(RuntimeError), Update('delete from account') as handle:
            handle.execute()
            raise RuntimeError('abort')

        assert len(_balances()) == 2

    def test_uncommitted_changes_are_isolated(self, sqlite_file_registry):
        handle = Update('update account set balance = 5 where owner = ?', args=['ben'])
        handle.execute()
        try:
            assert handle.is_open
            with Select('select balance from account where owner = ?', args=['ben']) as query:
                query.execute(precache=True)
                query.next()
                assert query.get_float(1) == 50.0
        finally:
            handle.close()

        assert _balances()['ben'] == 5.0


if __name__ == '__main__':
    __import__('pytest').main([__file__])
