"""
SQLAlchemy engine management for connection sources.

Engines are the pooling layer behind every source built from
`SourceOptions`. They are created once per distinct set of options, kept in
a thread-safe registry, and disposed at interpreter exit.
"""
import atexit
import logging
import threading

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool, QueuePool, StaticPool
from sqlhandle.strategy import get_strategy

__all__ = [
    'create_url_from_options',
    'get_engine_for_options',
    'dispose_all_engines',
]

logger = logging.getLogger(__name__)

_engine_registry: dict[str, Engine] = {}
_engine_registry_lock = threading.RLock()


def _is_memory_database(options) -> bool:
    return options.drivername == 'sqlite' and options.database in {':memory:', ''}


def create_url_from_options(options, url_creator=sa.URL.create):
    """Convert SourceOptions to a SQLAlchemy URL.
    """
    if options.drivername == 'sqlite':
        return url_creator(drivername='sqlite', database=options.database)

    if options.drivername == 'postgresql':
        query = {}
        if options.timeout:
            query['connect_timeout'] = str(options.timeout)
        return url_creator(
            drivername='postgresql+psycopg',
            username=options.username,
            password=options.password,
            host=options.hostname,
            port=options.port,
            database=options.database,
            query=query
        )

    raise ValueError(f'Unsupported database type: {options.drivername}')


def get_engine_for_options(options, engine_factory=sa.create_engine, **kwargs) -> Engine:
    """Get or create the SQLAlchemy engine for a source's options.

    Pool selection:
    - in-memory SQLite: `StaticPool`, so every checkout sees one database
    - ``use_pool``: `QueuePool` with pre-ping, sized by the pool options
    - otherwise `NullPool`, one driver connection per checkout

    Args:
        options: SourceOptions object
        engine_factory: Function to create engines (defaults to sqlalchemy.create_engine)
        **kwargs: Additional arguments passed to engine factory
    """
    key = str(options)

    with _engine_registry_lock:
        if key in _engine_registry:
            logger.debug(f'Using existing engine for {options.drivername}')
            return _engine_registry[key]

        url = create_url_from_options(options)
        engine_kwargs = {'echo': False}
        engine_kwargs.update(get_strategy(options.drivername).get_engine_kwargs(options))

        if _is_memory_database(options):
            engine_kwargs['poolclass'] = StaticPool
        elif options.use_pool:
            engine_kwargs['poolclass'] = QueuePool
            engine_kwargs['pool_size'] = options.pool_max_connections
            engine_kwargs['pool_recycle'] = options.pool_max_idle_time
            engine_kwargs['pool_timeout'] = options.pool_wait_timeout
            engine_kwargs['max_overflow'] = 0
            engine_kwargs['pool_pre_ping'] = True
            engine_kwargs['pool_reset_on_return'] = 'rollback'
        else:
            engine_kwargs['poolclass'] = NullPool

        engine_kwargs.update(kwargs)
        engine = engine_factory(url, **engine_kwargs)
        _engine_registry[key] = engine
        logger.debug(f'Created new engine for {options.drivername} ({engine_kwargs["poolclass"].__name__})')

        return engine


def dispose_all_engines() -> None:
    """Dispose all engines in the registry."""
    with _engine_registry_lock:
        for engine in list(_engine_registry.values()):
            engine.dispose()
        _engine_registry.clear()
        logger.debug('All database engines disposed')


atexit.register(dispose_all_engines)
