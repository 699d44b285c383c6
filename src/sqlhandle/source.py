"""
Connection sources: a name bound to something that hands out connections.

A provider is any object with a ``get_connection()`` method returning a
DB-API 2.0 connection. The connection's ``close()`` must hand it back to
whatever pool the provider keeps. `EngineProvider` is the stock provider,
backed by a SQLAlchemy engine and its pool.
"""
import logging
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from sqlalchemy.engine import Engine
from sqlhandle.engine import get_engine_for_options
from sqlhandle.options import SourceOptions
from sqlhandle.strategy import get_strategy
from sqlhandle.strategy.base import _STRATEGY_REGISTRY

logger = logging.getLogger(__name__)

__all__ = [
    'ConnectionProvider',
    'ConnectionSource',
    'EngineProvider',
]


@runtime_checkable
class ConnectionProvider(Protocol):
    """Anything that hands out pooled DB-API connections."""

    def get_connection(self) -> Any:
        ...


@dataclass(frozen=True)
class ConnectionSource:
    """A registered, immutable name-to-provider binding.
    """
    name: str
    provider: ConnectionProvider

    def connect(self) -> Any:
        logger.debug(f'Acquiring connection from source "{self.name}"')
        return self.provider.get_connection()


class EngineProvider:
    """Provider backed by a SQLAlchemy engine.

    ``get_connection()`` checks a DB-API connection out of the engine's pool;
    closing it returns it to the pool.
    """

    def __init__(self, engine: Engine, options: SourceOptions | None = None):
        self.engine = engine
        self.options = options

    @classmethod
    def from_options(cls, options: SourceOptions | dict) -> 'EngineProvider':
        if not isinstance(options, SourceOptions):
            options = SourceOptions(**options)
        return cls(get_engine_for_options(options), options)

    @property
    def dialect(self) -> str:
        return str(self.engine.dialect.name).lower()

    def get_connection(self) -> Any:
        conn = self.engine.raw_connection()
        if self.dialect in _STRATEGY_REGISTRY:
            get_strategy(self.dialect).configure_connection(conn)
        return conn

    def __repr__(self) -> str:
        return f'EngineProvider({self.engine.url!r})'
