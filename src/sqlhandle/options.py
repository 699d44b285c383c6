from collections.abc import Mapping
from dataclasses import dataclass, fields

import pandas as pd
from sqlhandle.strategy import get_available_dialects, get_strategy_class
from sqlhandle.strategy import is_supported_dialect
from sqlhandle.types import Column

from libb import ConfigOptions

__all__ = [
    'RegistryOptions',
    'SourceOptions',
    'DEFAULT_ROOT_NAMESPACE',
    'pandas_data_loader',
    'iterdict_data_loader',
]

DEFAULT_ROOT_NAMESPACE = 'env/db'

# Keys accepted from flat key-value configuration files
PROPERTY_KEYS = {
    'rootNamespace': 'root_namespace',
    'dataSourceNames': 'data_source_names',
    'defaultDataSourceName': 'default_data_source_name',
}


def iterdict_data_loader(data, columns, **kwargs) -> list[dict]:
    """Minimal data loader.

    Accepts additional keyword arguments for compatibility with other data
    loaders, but doesn't use them.
    """
    if not data:
        return []
    return list(data)


def pandas_data_loader(data, columns, **kwargs) -> pd.DataFrame:
    """Pandas DataFrame loader.

    Always returns a DataFrame, never None, with columns preserved for empty results.
    Includes type information in the DataFrame.attrs attribute.
    """
    names = Column.get_names(columns or ())
    if not data:
        df = pd.DataFrame(columns=names)
    else:
        df = pd.DataFrame.from_records(list(data), columns=names)
    df.attrs['column_types'] = Column.get_column_types_dict(columns or ())
    return df


def _split_names(value) -> list[str] | None:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.split(',')
    names = [str(name).strip() for name in value if str(name).strip()]
    return names or None


@dataclass
class RegistryOptions(ConfigOptions):
    """Options

    Connection-source discovery:
    - root_namespace: slash-separated path of the context holding the sources
      (default: env/db)
    - data_source_names: explicit source names, as a list or a comma
      separated string; when set, the namespace is not walked
    - default_data_source_name: source aliased as DEFAULT
    - bindings: the namespace itself, as a nested mapping or a Context
    """
    root_namespace: str = DEFAULT_ROOT_NAMESPACE
    data_source_names: list[str] | str | None = None
    default_data_source_name: str = None
    bindings: Mapping | None = None

    def __post_init__(self):
        if self.root_namespace is None:
            self.root_namespace = DEFAULT_ROOT_NAMESPACE
        self.root_namespace = self.root_namespace.strip().strip('/')
        self.data_source_names = _split_names(self.data_source_names)
        if self.default_data_source_name is not None:
            self.default_data_source_name = self.default_data_source_name.strip() or None

    @classmethod
    def from_properties(cls, properties: Mapping, **kw) -> 'RegistryOptions':
        """Build options from flat key-value configuration.

        Both ``rootNamespace`` style and ``root_namespace`` style keys are
        accepted, in ``properties`` and as keyword overrides; unrelated keys
        are ignored.
        """
        known = {f.name for f in fields(cls)}
        options = {}
        for key, value in {**properties, **kw}.items():
            key = PROPERTY_KEYS.get(key, key)
            if key in known:
                options[key] = value
        return cls(**options)


@dataclass
class SourceOptions(ConfigOptions):
    """Options

    supported driver names: `postgresql`, `sqlite`

    Connection pooling options:
    - use_pool: Whether to use connection pooling (default: True)
    - pool_max_connections: Maximum connections in pool (default: 5)
    - pool_max_idle_time: Maximum seconds a connection can be idle (default: 300)
    - pool_wait_timeout: Maximum seconds to wait for a connection (default: 30)

    In-memory SQLite databases always share a single connection.
    """
    drivername: str = 'postgresql'
    hostname: str = None
    username: str = None
    password: str = None
    database: str = None
    port: int = 0
    timeout: int = 0
    use_pool: bool = True
    pool_max_connections: int = 5
    pool_max_idle_time: int = 300
    pool_wait_timeout: int = 30

    def __post_init__(self):
        if not is_supported_dialect(self.drivername):
            available = get_available_dialects()
            raise ValueError(f'drivername must be one of: {available}')
        strategy_cls = get_strategy_class(self.drivername)
        strategy_cls.validate_options(self)
