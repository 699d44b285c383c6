"""
Driver strategy factory.
"""
from functools import lru_cache

from sqlhandle.strategy.base import _STRATEGY_REGISTRY
from sqlhandle.strategy.base import DatabaseStrategy as DatabaseStrategy
from sqlhandle.strategy.base import GenericStrategy as GenericStrategy
from sqlhandle.strategy.base import register_strategy as register_strategy
from sqlhandle.strategy.postgres import PostgresStrategy as PostgresStrategy
from sqlhandle.strategy.sqlite import SQLiteStrategy as SQLiteStrategy
from sqlhandle.utils import get_dialect_name


def _validate_dialect(dialect: str) -> None:
    """Raise ValueError if dialect is not registered."""
    if dialect not in _STRATEGY_REGISTRY:
        available = list(_STRATEGY_REGISTRY.keys())
        raise ValueError(f'Unsupported dialect: {dialect}. Available: {available}')


@lru_cache(maxsize=8)
def _get_strategy(dialect: str) -> DatabaseStrategy:
    """Get cached strategy instance for a dialect."""
    _validate_dialect(dialect)
    return _STRATEGY_REGISTRY[dialect]()


def get_strategy(dialect: str) -> DatabaseStrategy:
    """Get strategy instance for a dialect name."""
    return _get_strategy(dialect)


def get_db_strategy(cn) -> DatabaseStrategy:
    """Get the strategy for a connection; unknown drivers get the generic one."""
    return _get_strategy(get_dialect_name(cn) or 'generic')


def get_available_dialects() -> list[str]:
    """Return dialects that can be built from connection options."""
    return [name for name in _STRATEGY_REGISTRY if name != 'generic']


def is_supported_dialect(dialect: str) -> bool:
    return dialect in get_available_dialects()


def get_strategy_class(dialect: str) -> type['DatabaseStrategy']:
    """Get the strategy class for a dialect without instantiating."""
    _validate_dialect(dialect)
    return _STRATEGY_REGISTRY[dialect]
