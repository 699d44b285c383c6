"""
Statement handles: SQL text, ordered arguments and a connection, driven
through one lifecycle.

    handle = Update('update t set name = ? where id = ?', 'reports')
    handle.set_args('alice', 7)
    try:
        handle.execute()
        print(handle.row_count)
    finally:
        handle.close()

A handle either acquires its connection from the registry on `execute()`
(automatic mode) and hands it back on `close()`, or runs on a connection the
caller supplied with `set_connection()` (explicit mode). An explicit
connection is never committed, rolled back or released by the handle, so
several handles can share one transaction.

Setters are ignored while the handle is open. `close()` never raises and
leaves the handle ready for another `execute()` with the same SQL and
arguments.
"""
import logging
import time
from contextlib import contextmanager
from functools import wraps
from typing import Any, Self

from sqlhandle.cache import Cache
from sqlhandle.coercion import bind_args, format_query
from sqlhandle.exceptions import AlreadyOpen, ExecutionFailed, NoSQL
from sqlhandle.outcome import Outcome, RowsAffected
from sqlhandle.parameters import OutParameter
from sqlhandle.registry import ConnectionRegistry, get_registry
from sqlhandle.sql import count_placeholders, ddl_target
from sqlhandle.strategy import DatabaseStrategy, get_db_strategy

__all__ = ['StatementHandle', 'Update', 'Insert', 'suppressed']

logger = logging.getLogger(__name__)


@contextmanager
def suppressed(action: str):
    """Log and swallow any error raised while performing ``action``."""
    try:
        yield
    except Exception as exc:
        logger.debug(f'Ignored error while {action}: {exc}')


def dumpsql(func):
    """Decorator for logging the rendered statement and its timing."""
    @wraps(func)
    def wrapper(self, strategy, cursor, params, out_positions):
        start = time.time()
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f'SQL:\n{format_query(self.sql, self.args)}')
        try:
            return func(self, strategy, cursor, params, out_positions)
        except Exception:
            logger.error(f'Error with query:\nSQL:\n{self.sql}\nargs: {self.args}')
            raise
        finally:
            logger.debug(f'Query time: {time.time() - start:.4f}s')
    return wrapper


class StatementHandle:
    """Lifecycle shared by every statement kind.

    Args:
        sql: SQL text with ``?`` placeholders
        source_name: Registry source to acquire from (None is the default)
        connection: Caller-owned connection; switches the handle to explicit
            mode
        args: Initial arguments
        registry: Registry to acquire from (defaults to the process-wide one)
    """

    def __init__(self, sql: str | None = None, source_name: str | None = None, *,
                 connection: Any = None, args: tuple | list = (),
                 registry: ConnectionRegistry | None = None):
        self._sql = None
        self._source_name = None
        self._args: list[Any] = []
        self._connection = None
        self._explicit = False
        self._statement = None
        self._registry = registry
        self.outcome: Outcome | None = None
        self.set_connection(connection)
        self.set_source_name(source_name)
        self.set_sql(sql)
        self.set_args(*args)

    @property
    def sql(self) -> str | None:
        return self._sql

    @property
    def source_name(self) -> str | None:
        return self._source_name

    @property
    def args(self) -> tuple:
        return tuple(self._args)

    @property
    def connection(self) -> Any:
        return self._connection

    @property
    def statement(self) -> Any:
        """The live driver cursor, or None."""
        return self._statement

    @property
    def using_explicit_connection(self) -> bool:
        return self._explicit

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry if self._registry is not None else get_registry()

    @property
    def is_open(self) -> bool:
        """Automatic handles are open while they hold a connection; explicit
        handles while they hold a live statement.
        """
        if self._explicit:
            return self._statement is not None
        return self._connection is not None

    def _ignored(self, setter: str) -> bool:
        if self.is_open:
            logger.debug(f'{setter} ignored while {self!r} is open')
            return True
        return False

    def set_sql(self, sql: str | None) -> Self:
        if not self._ignored('set_sql'):
            self._sql = sql
        return self

    def set_source_name(self, name: str | None) -> Self:
        if not self._ignored('set_source_name'):
            self._source_name = name
        return self

    def set_args(self, *args: Any) -> Self:
        """Replace the argument list."""
        if not self._ignored('set_args'):
            self._args = list(args)
        return self

    def add_args(self, *args: Any) -> Self:
        """Append to the argument list."""
        if not self._ignored('add_args'):
            self._args.extend(args)
        return self

    def set_connection(self, connection: Any) -> Self:
        """Run on a caller-owned connection; None returns to automatic mode."""
        if not self._ignored('set_connection'):
            self._connection = connection
            self._explicit = connection is not None
        return self

    def execute(self) -> Self:
        """Acquire (automatic mode), bind, execute and record the outcome.

        Raises
            AlreadyOpen: The prior execution was not closed
            NoSQL: No SQL text is set
            ExecutionFailed: Acquiring, binding or executing failed; the
                original error is on ``cause``
        """
        if self._statement is not None:
            raise AlreadyOpen(f'{self!r} was not closed since its prior execution')
        if not self._sql:
            raise NoSQL(f'{self!r} has no SQL to execute')

        expected = count_placeholders(self._sql)
        if expected != len(self._args):
            logger.warning(f'{self!r} has {expected} placeholder(s) but {len(self._args)} argument(s)')

        self.outcome = None
        for arg in self._args:
            if isinstance(arg, OutParameter):
                arg.reset()

        try:
            if self._connection is None:
                self._connection = self.registry.acquire(self._source_name)
                self._explicit = False
            strategy = get_db_strategy(self._connection)
            params, out_positions = bind_args(self._args)
            self._statement = self._connection.cursor()
            self.outcome = self._dispatch(strategy, self._statement, params, out_positions)
        except Exception as exc:
            self._discard_statement()
            raise ExecutionFailed(f'Execution failed: {exc}', cause=exc) from exc
        return self

    @dumpsql
    def _dispatch(self, strategy, cursor, params, out_positions) -> Outcome:
        return self._run(strategy, cursor, params, out_positions)

    def _run(self, strategy: DatabaseStrategy, cursor: Any, params: list,
             out_positions: list[int]) -> Outcome:
        raise NotImplementedError

    def _execute_sql(self, strategy: DatabaseStrategy, cursor: Any, params: list,
                     sql: str | None = None) -> None:
        sql = self._sql if sql is None else sql
        cursor.execute(strategy.standardize_sql(sql, params), params)

    def close(self, commit: bool = True) -> Self:
        """Release results, the statement and (automatic mode) the connection.

        An owned connection is committed first unless ``commit`` is False or
        the connection auto-commits. Never raises.
        """
        self._clear_results()
        self._release(commit)
        return self

    def _clear_results(self) -> None:
        """Drop per-execution results; kinds with row state override."""

    def _discard_statement(self) -> None:
        statement, self._statement = self._statement, None
        if statement is not None:
            with suppressed('closing statement'):
                statement.close()

    def _release(self, commit: bool) -> None:
        self._discard_statement()
        conn = self._connection
        if conn is None or self._explicit:
            return
        if commit:
            with suppressed('committing'):
                if not get_db_strategy(conn).is_autocommit(conn):
                    conn.commit()
        with suppressed('releasing connection'):
            self.registry.release(self._source_name, conn)
        self._connection = None

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Close, committing only when the block raised nothing."""
        self.close(commit=exc_type is None)

    def __repr__(self) -> str:
        sql = (self._sql or '').strip().replace('\n', ' ')
        if len(sql) > 60:
            sql = sql[:57] + '...'
        return f'{self.__class__.__name__}({sql!r})'


class Update(StatementHandle):
    """Statement that changes rows (UPDATE, DELETE, DDL)."""

    def _run(self, strategy, cursor, params, out_positions):
        self._execute_sql(strategy, cursor, params)
        target = ddl_target(self._sql)
        if target is not None:
            Cache.get_instance().clear_for_table(target[1])
        return RowsAffected(cursor.rowcount)

    @property
    def row_count(self) -> int:
        """Rows affected by the last execution, -1 before any."""
        if isinstance(self.outcome, RowsAffected):
            return self.outcome.row_count
        return -1

    update_count = row_count


class Insert(Update):
    """INSERT statement that also reports the generated identity value."""

    def _run(self, strategy, cursor, params, out_positions):
        sql = strategy.prepare_insert(self._connection, self._sql)
        self._execute_sql(strategy, cursor, params, sql)
        key = strategy.generated_key(self._connection, cursor, self._sql)
        return RowsAffected(cursor.rowcount, key)

    @property
    def generated_key(self) -> int:
        """Identity value assigned by the last execution.

        -1 when the table has no identity column or nothing has executed.
        """
        if isinstance(self.outcome, RowsAffected):
            return self.outcome.generated_key
        return -1

    insert_count = Update.row_count
