import pathlib
import site

import pytest
from sqlhandle.cache import Cache
from sqlhandle.engine import dispose_all_engines
from sqlhandle.registry import reset_registry

HERE = pathlib.Path(pathlib.Path(__file__).resolve()).parent
site.addsitedir(HERE)


@pytest.fixture(autouse=True)
def clear_caches():
    """Clear all caches before and after each test to ensure test isolation."""
    Cache.get_instance().clear_all()
    yield
    Cache.get_instance().clear_all()


@pytest.fixture(autouse=True)
def isolated_registry():
    """Each test starts without a process-wide registry or pooled engines."""
    reset_registry()
    yield
    reset_registry()
    dispose_all_engines()


pytest_plugins = [
    'tests.fixtures.fakes',
    'tests.fixtures.sqlite',
]
