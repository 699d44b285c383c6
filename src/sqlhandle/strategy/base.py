"""
Base strategy interface for driver-specific statement behavior.

Statement handles speak plain DB-API 2.0. Everything that differs between
drivers sits behind a strategy:

- the placeholder the driver expects in place of ``?``
- whether a connection is in auto-commit mode
- how an identity value assigned by an INSERT is recovered
- how a procedure call passes output parameters back
"""
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from sqlhandle.sql import has_placeholders, parse_call
from sqlhandle.sql import standardize_placeholders

if TYPE_CHECKING:
    from sqlhandle.options import SourceOptions

logger = logging.getLogger(__name__)

# Registry of dialect name -> strategy class
# Defined here to avoid circular imports (concrete strategies import from base)
_STRATEGY_REGISTRY: dict[str, type['DatabaseStrategy']] = {}


def register_strategy(dialect: str):
    """Decorator to register a strategy class for a dialect.

    Usage:
        @register_strategy('postgresql')
        class PostgresStrategy(DatabaseStrategy):
            ...
    """
    def decorator(cls: type['DatabaseStrategy']) -> type['DatabaseStrategy']:
        _STRATEGY_REGISTRY[dialect] = cls
        return cls
    return decorator


def unwrap_connection(conn: Any) -> Any:
    """Return the driver connection behind a pool proxy.
    """
    driver = getattr(conn, 'driver_connection', None)
    return conn if driver is None else driver


class DatabaseStrategy(ABC):
    """Base class for driver-specific statement behavior.
    """

    placeholder = '?'

    @property
    @abstractmethod
    def dialect_name(self) -> str:
        """Return the dialect identifier."""

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return list of required option field names for this dialect."""
        return []

    @classmethod
    def validate_options(cls, options: 'SourceOptions') -> None:
        """Validate options for this dialect.

        Raises
            ValueError: If any required field is None or 0
        """
        for field in cls.get_required_options():
            if not getattr(options, field):
                raise ValueError(f'field {field} cannot be None or 0')

    def get_engine_kwargs(self, options: 'SourceOptions') -> dict[str, Any]:
        """Return extra SQLAlchemy create_engine kwargs."""
        return {}

    def configure_connection(self, conn: Any) -> None:
        """Prepare a freshly checked-out connection."""

    def get_type_map(self) -> dict:
        """Return mapping of driver type codes to Python types."""
        return {}

    def standardize_sql(self, sql: str, params: list | tuple | None = None) -> str:
        """Convert ``?`` placeholders to this driver's style.

        Statements without parameters are sent as written.
        """
        if not params or not has_placeholders(sql):
            return sql
        return standardize_placeholders(sql, self.placeholder)

    def is_autocommit(self, conn: Any) -> bool:
        """Check whether the connection commits every statement itself."""
        return getattr(unwrap_connection(conn), 'autocommit', False) is True

    def cache_scope(self, conn: Any) -> str:
        """Identify the database a connection points at, for metadata caches.

        Without driver-specific knowledge every connection is its own scope.
        """
        return f'conn-{id(unwrap_connection(conn))}'

    def prepare_insert(self, conn: Any, sql: str) -> str:
        """Return the INSERT text to execute so its generated key can be read."""
        return sql

    def generated_key(self, conn: Any, cursor: Any, sql: str) -> int:
        """Return the identity value assigned by an INSERT, or -1.

        A statement with a RETURNING clause reports its first returned value.
        Otherwise the driver's ``lastrowid`` is used when it is set. An
        INSERT that added no row has no key, whatever ``lastrowid`` still
        holds from an earlier statement.
        """
        if cursor.description:
            return _first_value_as_key(cursor)
        if inserted_nothing(cursor):
            return -1
        lastrowid = getattr(cursor, 'lastrowid', None)
        if isinstance(lastrowid, int) and lastrowid > 0:
            return lastrowid
        return -1

    def execute_call(self, conn: Any, cursor: Any, sql: str, params: list,
                     out_positions: list[int]) -> tuple[dict[int, Any], bool]:
        """Run a procedure call.

        Returns
            (output values by argument position, whether the driver's result
            row was consumed to read them)
        """
        cursor.execute(self.standardize_sql(sql, params), params)
        return {}, False


@register_strategy('generic')
class GenericStrategy(DatabaseStrategy):
    """Any DB-API driver: qmark paramstyle, ``callproc`` for procedure calls.
    """

    @property
    def dialect_name(self) -> str:
        return 'generic'

    def execute_call(self, conn, cursor, sql, params, out_positions):
        """Route ``CALL name(?, ...)`` through ``cursor.callproc``.

        The sequence ``callproc`` returns holds the output values at the
        argument positions. Calls with literal arguments, or drivers without
        ``callproc``, fall back to plain execution.
        """
        call = parse_call(sql)
        callproc = getattr(cursor, 'callproc', None)
        if call is None or callproc is None or any(arg != '?' for arg in call[1]):
            return super().execute_call(conn, cursor, sql, params, out_positions)

        name = call[0]
        logger.debug(f'Calling procedure {name} with {len(params)} argument(s)')
        result = callproc(name, params)
        if result is None:
            return {}, False
        result = list(result)
        outputs = {pos: result[pos] for pos in out_positions if pos < len(result)}
        return outputs, False


def _first_value_as_key(cursor: Any) -> int:
    row = cursor.fetchone()
    if not row or row[0] is None:
        return -1
    try:
        return int(row[0])
    except (TypeError, ValueError):
        logger.debug(f'Generated key {row[0]!r} is not an integer')
        return -1


def inserted_nothing(cursor: Any) -> bool:
    return getattr(cursor, 'rowcount', -1) == 0
