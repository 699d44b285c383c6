"""
Table metadata caching for dialect strategies.

Strategies consult table metadata (for instance whether an INSERT target
has an identity column) on every execution. Results are kept in named
cachetools TTL caches so that repeated statements against the same table
do not re-query the catalog.
"""
import functools
import logging
import threading

import cachetools

logger = logging.getLogger(__name__)


class Cache:
    """Thread-safe singleton holding every named metadata cache.
    """

    _instance = None
    _caches: dict[str, cachetools.TTLCache] = {}
    _lock = threading.RLock()

    @classmethod
    def get_instance(cls) -> 'Cache':
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def get_cache(self, name: str, maxsize: int = 100, ttl: int = 300) -> cachetools.TTLCache:
        """Get or create the TTL cache registered under ``name``."""
        with self._lock:
            if name not in self._caches:
                self._caches[name] = cachetools.TTLCache(maxsize=maxsize, ttl=ttl)
            return self._caches[name]

    def clear_all(self) -> None:
        with self._lock:
            for cache in self._caches.values():
                cache.clear()

    def clear_for_table(self, table_name: str) -> None:
        """Drop every cached entry keyed on ``table_name``.

        Call after DDL changes a table's shape.
        """
        table_lower = table_name.lower()
        with self._lock:
            for cache in self._caches.values():
                for key in [k for k in list(cache.keys()) if k.split(':')[0] == table_lower]:
                    cache.pop(key, None)
                    logger.debug(f'Cleared cache entry {key} for table {table_name}')


def _cache_key(table: str, method_args: tuple, method_kwargs: dict, scope: str = '') -> str:
    """Deterministic key from the table name, remaining arguments and the
    database the connection points at.
    """
    args_str = ':'.join(repr(arg) for arg in method_args)
    kwargs_str = ':'.join(f'{k}={v!r}' for k, v in sorted(method_kwargs.items()))
    return f'{table}:{args_str}:{kwargs_str}:{scope}'.lower()


def cacheable_strategy(cache_name: str, ttl: int = 300, maxsize: int = 50):
    """Cache a strategy method of the form ``method(self, cn, table, ...)``.

    The connection itself is not part of the key, only the database it
    points at (``self.cache_scope(cn)``). Pass ``bypass_cache=True`` to skip
    the lookup.
    """
    def decorator(method):
        @functools.wraps(method)
        def wrapper(self, cn, table, *args, bypass_cache=False, **kwargs):
            if bypass_cache:
                logger.debug(f'Bypassing cache for {method.__name__}({table})')
                return method(self, cn, table, *args, **kwargs)

            name = f'{cache_name}_{self.__class__.__name__}_{method.__name__}'
            cache = Cache.get_instance().get_cache(name, ttl=ttl, maxsize=maxsize)
            key = _cache_key(table, args, kwargs, self.cache_scope(cn))

            if key in cache:
                logger.debug(f'Cache hit for {method.__name__}({table})')
                return cache[key]

            logger.debug(f'Cache miss for {method.__name__}({table})')
            result = method(self, cn, table, *args, **kwargs)
            cache[key] = result
            return result

        return wrapper
    return decorator
