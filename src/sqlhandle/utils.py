"""
Connection introspection helpers.
"""
import logging
from typing import Any

logger = logging.getLogger(__name__)


def get_dialect_name(obj: Any) -> str | None:
    """Get dialect name for a DB-API connection, pool proxy or engine.

    Returns
        'postgresql', 'sqlite', or None for drivers without a dedicated
        strategy
    """
    if hasattr(obj, 'dialect') and hasattr(obj.dialect, 'name'):
        return str(obj.dialect.name).lower()

    # SQLAlchemy pool wrapper (_ConnectionFairy) - unwrap to DBAPI connection
    if hasattr(obj, 'dbapi_connection'):
        return get_dialect_name(obj.dbapi_connection)

    type_name = f'{type(obj).__module__}.{type(obj).__name__}'
    if 'psycopg' in type_name:
        return 'postgresql'
    if 'sqlite3' in type_name:
        return 'sqlite'

    return None
