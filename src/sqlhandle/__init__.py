"""
Named connection sources and statement handles over DB-API 2.0 drivers.

Sources are discovered once per process from a naming namespace and handed
out by name; statements are run through handles:

    sqlhandle.configure({'bindings': {'env': {'db': {'main': {
        'drivername': 'sqlite', 'database': ':memory:'}}}}})

    with Select('select name from person where id = ?', args=[7]) as q:
        q.execute()
        while q.next():
            print(q.get_string(1))

The module functions are facades for one-off statements on the
process-wide registry.
"""
__version__ = '0.1.0'

from typing import Any

from sqlhandle.coercion import format_query
from sqlhandle.cursor import ResultCursor, Select
from sqlhandle.exceptions import AlreadyOpen, DatabaseError, DbConnectionError
from sqlhandle.exceptions import ExecutionFailed, IntegrityError, NameNotFound
from sqlhandle.exceptions import NamespaceError, NoSourcesAvailable, NoSQL
from sqlhandle.exceptions import OperationalError, ProgrammingError
from sqlhandle.exceptions import RegistryError, RegistryUninitialized
from sqlhandle.exceptions import StatementError, UnknownSource
from sqlhandle.namespace import Context, InitialContext, Reference
from sqlhandle.options import RegistryOptions, SourceOptions
from sqlhandle.options import iterdict_data_loader, pandas_data_loader
from sqlhandle.outcome import ProcedureOutcome, ResultSet, RowsAffected
from sqlhandle.parameters import InOutParameter, OutParameter
from sqlhandle.procedure import ProcedureCall, StoredProcedure
from sqlhandle.registry import DEFAULT_SOURCE_NAME, ConnectionRegistry
from sqlhandle.registry import configure, get_registry, reset_registry
from sqlhandle.registry import set_registry
from sqlhandle.source import ConnectionProvider, ConnectionSource
from sqlhandle.source import EngineProvider
from sqlhandle.statement import Insert, StatementHandle, Update
from sqlhandle.types import Column


def initialize() -> bool:
    """Discover sources on the process-wide registry now instead of on first use.
    """
    return get_registry().initialize()


def acquire(name: str | None = None) -> Any:
    """Check a connection out of a named source (None is the default).
    """
    return get_registry().acquire(name)


def release(name: str | None, conn: Any) -> None:
    """Hand a connection back to its source. Never raises.
    """
    get_registry().release(name, conn)


def list_source_names() -> frozenset[str]:
    return get_registry().list_source_names()


def execute(sql: str, *args: Any, source_name: str | None = None) -> int:
    """Execute a statement on a pooled connection and return affected row count.
    """
    with Update(sql, source_name, args=args) as handle:
        return handle.execute().row_count


def insert(sql: str, *args: Any, source_name: str | None = None) -> int:
    """Execute an INSERT and return the generated key (-1 if none).
    """
    with Insert(sql, source_name, args=args) as handle:
        return handle.execute().generated_key


def select(sql: str, *args: Any, source_name: str | None = None,
           data_loader=None, **kwargs: Any) -> Any:
    """Execute a query and load all rows through ``data_loader``.
    """
    with Select(sql, source_name, args=args) as handle:
        return handle.execute(precache=True).fetch(data_loader, **kwargs)


__all__ = [
    'configure',
    'initialize',
    'acquire',
    'release',
    'list_source_names',
    'execute',
    'insert',
    'select',
    'format_query',
    'get_registry',
    'set_registry',
    'reset_registry',
    'ConnectionRegistry',
    'ConnectionSource',
    'ConnectionProvider',
    'EngineProvider',
    'DEFAULT_SOURCE_NAME',
    'Context',
    'InitialContext',
    'Reference',
    'RegistryOptions',
    'SourceOptions',
    'iterdict_data_loader',
    'pandas_data_loader',
    'StatementHandle',
    'Update',
    'Insert',
    'Select',
    'ResultCursor',
    'StoredProcedure',
    'ProcedureCall',
    'OutParameter',
    'InOutParameter',
    'RowsAffected',
    'ResultSet',
    'ProcedureOutcome',
    'Column',
    'DatabaseError',
    'NamespaceError',
    'NameNotFound',
    'RegistryError',
    'RegistryUninitialized',
    'NoSourcesAvailable',
    'UnknownSource',
    'StatementError',
    'AlreadyOpen',
    'NoSQL',
    'ExecutionFailed',
    'DbConnectionError',
    'IntegrityError',
    'ProgrammingError',
    'OperationalError',
]
