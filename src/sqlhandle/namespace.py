"""
In-process naming namespace that connection sources are discovered from.

A `Context` is a tree of named bindings. Leaves are connection providers,
`Reference` objects that are resolved on lookup, or anything else (which
discovery skips). Paths are slash-separated, e.g. ``env/db/reports``.

`InitialContext.from_mapping` builds a tree from configuration:

    InitialContext.from_mapping({
        'env': {'db': {
            'main': {'drivername': 'sqlite', 'database': ':memory:'},
            'reports': {'drivername': 'postgresql', 'hostname': ...},
        }}
    })

Mappings with a ``drivername`` key become deferred engine providers; other
mappings become sub-contexts.
"""
from collections.abc import Callable, Iterator, Mapping
from typing import Any, NamedTuple

from sqlalchemy.engine import Engine
from sqlhandle.exceptions import NameNotFound, NamespaceError
from sqlhandle.options import SourceOptions
from sqlhandle.source import EngineProvider

__all__ = [
    'Binding',
    'Context',
    'InitialContext',
    'Reference',
]


class Binding(NamedTuple):
    name: str
    object: Any


class Reference:
    """A deferred binding, resolved by calling ``factory`` on lookup."""

    def __init__(self, factory: Callable[[], Any], class_name: str | None = None):
        self.factory = factory
        self.class_name = class_name

    def resolve(self) -> Any:
        return self.factory()

    def __repr__(self) -> str:
        return f'Reference({self.class_name or self.factory!r})'


def _split_path(name: str) -> list[str]:
    return [part for part in name.strip('/').split('/') if part]


class Context:
    """A node of the namespace tree; bindings keep insertion order."""

    def __init__(self, bindings: Mapping[str, Any] | None = None):
        self._bindings: dict[str, Any] = dict(bindings or {})

    def bind(self, name: str, obj: Any) -> 'Context':
        """Bind ``obj`` at a slash-separated path, creating sub-contexts."""
        parts = _split_path(name)
        if not parts:
            raise NamespaceError('Cannot bind an empty name')
        context = self
        for part in parts[:-1]:
            child = context._bindings.get(part)
            if child is None:
                child = context._bindings[part] = Context()
            elif not isinstance(child, Context):
                raise NamespaceError(f'"{part}" in "{name}" is not a context')
            context = child
        context._bindings[parts[-1]] = obj
        return self

    def list_bindings(self) -> Iterator[Binding]:
        """Yield the direct bindings of this context, unresolved."""
        for name, obj in list(self._bindings.items()):
            yield Binding(name, obj)

    def lookup(self, name: str) -> Any:
        """Resolve a slash-separated path; the empty path is this context.

        References met along the way are resolved.

        Raises
            NameNotFound: When any part of the path is unbound
        """
        obj = self
        for part in _split_path(name):
            if not isinstance(obj, Context) or part not in obj._bindings:
                raise NameNotFound(name)
            obj = obj._bindings[part]
            if isinstance(obj, Reference):
                obj = obj.resolve()
        return obj

    def __contains__(self, name: str) -> bool:
        try:
            self.lookup(name)
        except NameNotFound:
            return False
        return True

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({list(self._bindings)!r})'


def _source_reference(options: Mapping | SourceOptions) -> Reference:
    def factory():
        return EngineProvider.from_options(options)
    return Reference(factory, class_name='EngineProvider')


class InitialContext(Context):
    """Root of a namespace tree."""

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> 'InitialContext':
        """Build a namespace tree from a nested mapping.

        - mappings with a ``drivername`` key and `SourceOptions` become
          references to engine providers, created on first lookup
        - SQLAlchemy engines are wrapped in an `EngineProvider`
        - other mappings become sub-contexts
        - anything else is bound unchanged
        """
        root = cls()
        _populate(root, mapping)
        return root


def _populate(context: Context, mapping: Mapping[str, Any]) -> None:
    for name, value in mapping.items():
        if isinstance(value, SourceOptions) or (isinstance(value, Mapping) and 'drivername' in value):
            context.bind(name, _source_reference(value))
        elif isinstance(value, Engine):
            context.bind(name, EngineProvider(value))
        elif isinstance(value, Mapping):
            child = Context()
            _populate(child, value)
            context.bind(name, child)
        else:
            context.bind(name, value)
