"""
Fixtures for SQLite-specific integration tests.
"""
import pytest
from sqlhandle.options import RegistryOptions
from sqlhandle.registry import ConnectionRegistry, set_registry
from sqlhandle.statement import Update


@pytest.fixture
def sqlite_file_registry(tmp_path):
    """Process-wide registry over a file-based SQLite source behind a QueuePool.

    Each checkout is a separate driver connection, so uncommitted changes
    are not visible to other handles.
    """
    bindings = {'env': {'db': {'file': {
        'drivername': 'sqlite',
        'database': str(tmp_path / 'handles.db'),
        'pool_max_connections': 2,
    }}}}
    registry = ConnectionRegistry(RegistryOptions(bindings=bindings))
    set_registry(registry)

    with Update('create table account (id integer primary key, owner text, balance real)') as handle:
        handle.execute()
    with Update('insert into account (owner, balance) values (?, ?), (?, ?)',
                args=['ann', 100.0, 'ben', 50.0]) as handle:
        handle.execute()

    yield registry
