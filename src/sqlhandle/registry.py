"""
Process-scoped registry of named connection sources.

On first use the registry resolves its root context in the namespace and
either looks up an explicit list of source names or walks the whole subtree,
registering every connection provider it finds under its slash-joined path.
One source is then elected as the default and also registered under the
reserved name ``DEFAULT``.

Initialization happens at most once. A failure is latched: every later
``acquire`` raises `RegistryUninitialized` without retrying discovery.
"""
import logging
import threading
from collections.abc import Mapping
from dataclasses import fields
from typing import Any

from sqlhandle.exceptions import NamespaceError, NoSourcesAvailable
from sqlhandle.exceptions import RegistryUninitialized, UnknownSource
from sqlhandle.namespace import Context, InitialContext, Reference
from sqlhandle.options import RegistryOptions
from sqlhandle.source import ConnectionProvider, ConnectionSource

from libb import load_options

__all__ = [
    'DEFAULT_SOURCE_NAME',
    'ConnectionRegistry',
    'configure',
    'get_registry',
    'set_registry',
    'reset_registry',
]

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_NAME = 'DEFAULT'


def is_provider(obj: Any) -> bool:
    return not isinstance(obj, Context) and isinstance(obj, ConnectionProvider)


class ConnectionRegistry:
    """Named connection sources discovered from a namespace.

    Args:
        options: Discovery settings; defaults to `RegistryOptions()`
        context: Namespace to discover from; defaults to the tree built from
            ``options.bindings``
    """

    def __init__(self, options: RegistryOptions | None = None, context: Context | None = None):
        self.options = options if options is not None else RegistryOptions()
        self._context = context
        self._sources: dict[str, ConnectionSource] = {}
        self._default_name: str | None = None
        self._initialized = False
        self._init_failed = False
        self._init_error: BaseException | None = None
        self._lock = threading.RLock()

    @property
    def is_initialized(self) -> bool:
        with self._lock:
            return self._initialized

    @property
    def initialization_failed(self) -> bool:
        with self._lock:
            return self._init_failed

    @property
    def default_source_name(self) -> str | None:
        """Name of the source aliased as ``DEFAULT``, if any."""
        with self._lock:
            return self._default_name

    def initialize(self) -> bool:
        """Discover sources and elect a default.

        Runs at most once; later calls report the latched outcome.

        Returns
            True if the registry is initialized, False if discovery failed
        """
        with self._lock:
            if self._initialized:
                return True
            if self._init_failed:
                return False
            try:
                sources, default_name = self._discover()
            except Exception as exc:
                self._init_failed = True
                self._init_error = exc
                logger.error(f'Connection registry failed to initialize: {exc}', exc_info=True)
                return False
            self._sources = sources
            self._default_name = default_name
            self._initialized = True
            logger.debug(f'Connection registry initialized with sources {sorted(sources)}')
            return True

    def _root_context(self) -> Context:
        context = self._context
        if context is None:
            bindings = self.options.bindings
            if isinstance(bindings, Context):
                context = bindings
            elif bindings is not None:
                context = InitialContext.from_mapping(bindings)
            else:
                raise NamespaceError('No naming context is available: configure bindings or pass a context')

        root = self.options.root_namespace
        logger.debug(f'Resolving root context "{root}"')
        resolved = context.lookup(root)
        if not isinstance(resolved, Context):
            raise NamespaceError(f'Root namespace "{root}" is not a context')
        return resolved

    def _discover(self) -> tuple[dict[str, ConnectionSource], str | None]:
        root = self._root_context()
        sources: dict[str, ConnectionSource] = {}
        first_listed = None

        names = self.options.data_source_names
        if names:
            logger.debug(f'Looking up listed connection sources {names}')
            for name in names:
                obj = root.lookup(name)
                if not is_provider(obj):
                    logger.warning(f'Binding "{name}" is not a connection provider ({type(obj).__name__}), skipped')
                    continue
                sources[name] = ConnectionSource(name, obj)
                first_listed = first_listed or name
        else:
            self._search(root, '', sources)

        if not sources:
            logger.warning(f'No connection sources found under "{self.options.root_namespace}"')
            return sources, None

        default_name = self._elect_default(sources, first_listed)
        sources[DEFAULT_SOURCE_NAME] = sources[default_name]
        logger.debug(f'Connection source "{default_name}" is the default')
        return sources, default_name

    def _search(self, context: Context, prefix: str, sources: dict[str, ConnectionSource]) -> None:
        """Depth-first walk registering providers under their full path."""
        for binding in context.list_bindings():
            name = prefix + binding.name
            obj = binding.object
            if isinstance(obj, Reference):
                obj = context.lookup(binding.name)
                if obj is None:
                    logger.warning(f'Reference "{name}" resolved to nothing, skipped')
                    continue
            if isinstance(obj, Context):
                logger.debug(f'Searching sub-context "{name}"')
                self._search(obj, name + '/', sources)
            elif is_provider(obj):
                logger.debug(f'Found connection source "{name}"')
                sources[name] = ConnectionSource(name, obj)
            else:
                logger.warning(f'Binding "{name}" is not a connection provider ({type(obj).__name__}), skipped')

    def _elect_default(self, sources: dict[str, ConnectionSource], first_listed: str | None) -> str:
        configured = self.options.default_data_source_name
        if configured:
            if configured in sources:
                return configured
            logger.warning(f'Default connection source "{configured}" was not found')
        if first_listed is not None:
            return first_listed
        name = next(iter(sources))
        if len(sources) > 1:
            logger.warning(f'Several connection sources found and no default configured, using "{name}"')
        return name

    def get_source(self, name: str | None = None) -> ConnectionSource:
        """Return the registered source, initializing on first use.

        Raises
            RegistryUninitialized: Discovery failed (now or earlier)
            NoSourcesAvailable: Discovery found no sources
            UnknownSource: ``name`` is not registered
        """
        with self._lock:
            if not self.initialize():
                raise RegistryUninitialized('Connection registry failed to initialize') from self._init_error
            if not self._sources:
                raise NoSourcesAvailable('No connection sources are available')
            key = DEFAULT_SOURCE_NAME if name is None else name
            source = self._sources.get(key)
            if source is None:
                raise UnknownSource(key)
            return source

    def acquire(self, name: str | None = None) -> Any:
        """Check a connection out of the named source (``None`` is the default).

        The provider is called outside the registry lock, so a provider that
        blocks waiting for a pooled connection does not stall other callers.
        """
        return self.get_source(name).connect()

    def release(self, name: str | None, conn: Any) -> None:
        """Return a connection to its source by closing it. Never raises."""
        if conn is None:
            return
        try:
            conn.close()
            logger.debug(f'Released connection to source "{name or DEFAULT_SOURCE_NAME}"')
        except Exception as exc:
            logger.debug(f'Error releasing connection to source "{name or DEFAULT_SOURCE_NAME}": {exc}')

    def list_source_names(self) -> frozenset[str]:
        """Snapshot of every registered name, ``DEFAULT`` included."""
        with self._lock:
            if not self.initialize():
                raise RegistryUninitialized('Connection registry failed to initialize') from self._init_error
            return frozenset(self._sources)

    def __repr__(self) -> str:
        state = 'failed' if self._init_failed else 'initialized' if self._initialized else 'pending'
        return f'ConnectionRegistry({self.options.root_namespace!r}, {state})'


_registry: ConnectionRegistry | None = None
_registry_lock = threading.RLock()


def get_registry() -> ConnectionRegistry:
    """Return the process-wide registry, creating it with default options."""
    global _registry
    with _registry_lock:
        if _registry is None:
            _registry = ConnectionRegistry()
        return _registry


def set_registry(registry: ConnectionRegistry | None) -> ConnectionRegistry | None:
    """Install ``registry`` as the process-wide registry; returns the previous one."""
    global _registry
    with _registry_lock:
        previous, _registry = _registry, registry
        return previous


def reset_registry() -> None:
    """Forget the process-wide registry (including a latched failure)."""
    set_registry(None)


def configure(options: RegistryOptions | Mapping | str | None = None, config: Any | None = None,
              **kw: Any) -> ConnectionRegistry:
    """Create the process-wide registry from options

    Args:
        options: Can be:
                - RegistryOptions object
                - String path to configuration
                - Dictionary of options, with ``root_namespace`` or
                  ``rootNamespace`` style keys
                - Options specified as keyword arguments
        config: Configuration object (for loading from config files)
        **kw: Additional keyword arguments to override options

    Returns
        The newly installed ConnectionRegistry
    """
    if options is None:
        options = {}
    if isinstance(options, RegistryOptions):
        for field in fields(options):
            kw.pop(field.name, None)
    elif isinstance(options, Mapping):
        options = RegistryOptions.from_properties(options, **kw)
    else:
        options_func = load_options(cls=RegistryOptions)(lambda o, c: o)
        options = options_func(options, config, **kw)

    registry = ConnectionRegistry(options)
    set_registry(registry)
    logger.debug(f'Configured {registry!r}')
    return registry
