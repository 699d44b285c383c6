"""
Tests for connection-source discovery, default election and acquisition.
"""
import logging
import threading

import pytest
from sqlhandle.exceptions import NoSourcesAvailable, RegistryUninitialized
from sqlhandle.exceptions import UnknownSource
from sqlhandle.namespace import Context, InitialContext, Reference
from sqlhandle.options import RegistryOptions
from sqlhandle.registry import DEFAULT_SOURCE_NAME, ConnectionRegistry
from sqlhandle.registry import configure, get_registry, reset_registry
from sqlhandle.registry import set_registry

from tests.fixtures.fakes import FakeProvider, make_registry


class TestDiscovery:
    """Walking the namespace under the root context"""

    def test_single_source_is_default(self, fake_registry, fake_provider):
        assert fake_registry.initialize() is True
        assert fake_registry.is_initialized
        assert fake_registry.list_source_names() == {'main', DEFAULT_SOURCE_NAME}
        assert fake_registry.default_source_name == 'main'

    def test_nested_contexts_register_full_paths(self):
        a, b, c = FakeProvider('a'), FakeProvider('b'), FakeProvider('c')
        context = InitialContext.from_mapping({
            'env': {'db': {'a': a, 'pools': {'b': b, 'archive': {'c': c}}}}
        })
        registry = ConnectionRegistry(RegistryOptions(), context)

        names = registry.list_source_names()

        assert names == {'a', 'pools/b', 'pools/archive/c', DEFAULT_SOURCE_NAME}
        assert registry.get_source('pools/archive/c').provider is c

    def test_non_provider_bindings_are_skipped(self, caplog):
        provider = FakeProvider()
        registry = make_registry({'main': provider, 'note': 'not a provider', 'count': 3})

        with caplog.at_level(logging.WARNING, logger='sqlhandle.registry'):
            names = registry.list_source_names()

        assert names == {'main', DEFAULT_SOURCE_NAME}
        assert 'note' in caplog.text

    def test_reference_is_resolved(self):
        provider = FakeProvider()
        registry = make_registry({'main': Reference(lambda: provider)})

        assert registry.get_source('main').provider is provider

    def test_reference_resolving_to_none_is_skipped(self, caplog):
        provider = FakeProvider()
        registry = make_registry({'gone': Reference(lambda: None), 'main': provider})

        with caplog.at_level(logging.WARNING, logger='sqlhandle.registry'):
            names = registry.list_source_names()

        assert 'gone' not in names
        assert 'resolved to nothing' in caplog.text

    def test_explicit_list_skips_walk(self):
        a, b, c = FakeProvider('a'), FakeProvider('b'), FakeProvider('c')
        registry = make_registry({'a': a, 'b': b, 'c': c}, data_source_names='c, a')

        assert registry.list_source_names() == {'a', 'c', DEFAULT_SOURCE_NAME}
        assert registry.default_source_name == 'c'

    def test_custom_root_namespace(self):
        provider = FakeProvider()
        context = Context().bind('apps/billing/main', provider)
        registry = ConnectionRegistry(RegistryOptions(root_namespace='/apps/billing/'), context)

        assert registry.get_source().provider is provider

    def test_zero_sources(self, caplog):
        context = InitialContext.from_mapping({'env': {'db': {}}})
        registry = ConnectionRegistry(RegistryOptions(), context)

        with caplog.at_level(logging.WARNING, logger='sqlhandle.registry'):
            assert registry.initialize() is True

        assert registry.list_source_names() == frozenset()
        assert registry.default_source_name is None
        with pytest.raises(NoSourcesAvailable):
            registry.acquire()


class TestDefaultElection:
    """Choosing the source aliased as DEFAULT"""

    def test_configured_default(self):
        a, b = FakeProvider('a'), FakeProvider('b')
        registry = make_registry({'a': a, 'b': b}, default_data_source_name='b')

        assert registry.default_source_name == 'b'
        assert registry.get_source(DEFAULT_SOURCE_NAME).provider is b

    def test_unknown_configured_default_falls_back(self, caplog):
        a, b = FakeProvider('a'), FakeProvider('b')
        registry = make_registry({'a': a, 'b': b}, default_data_source_name='x')

        with caplog.at_level(logging.WARNING, logger='sqlhandle.registry'):
            registry.initialize()

        assert registry.default_source_name == 'a'
        assert '"x" was not found' in caplog.text

    def test_first_discovered_wins_with_warning(self, caplog):
        a, b = FakeProvider('a'), FakeProvider('b')
        registry = make_registry({'a': a, 'b': b})

        with caplog.at_level(logging.WARNING, logger='sqlhandle.registry'):
            registry.initialize()

        assert registry.default_source_name == 'a'
        assert 'no default configured' in caplog.text

    def test_default_acquire_uses_elected_provider(self):
        a, b = FakeProvider('a'), FakeProvider('b')
        registry = make_registry({'a': a, 'b': b}, default_data_source_name='b')

        conn = registry.acquire()

        assert b.handed_out == [conn]
        assert a.handed_out == []


class TestInitializationFailure:
    """A failed discovery is latched for the life of the registry"""

    def test_missing_root_fails(self):
        context = InitialContext.from_mapping({'other': {}})
        registry = ConnectionRegistry(RegistryOptions(), context)

        assert registry.initialize() is False
        assert registry.initialization_failed
        assert not registry.is_initialized

    def test_no_context_configured_fails(self):
        registry = ConnectionRegistry()

        assert registry.initialize() is False
        with pytest.raises(RegistryUninitialized):
            registry.acquire()

    def test_failure_is_not_retried(self, mocker):
        context = Context()
        lookup = mocker.spy(context, 'lookup')
        registry = ConnectionRegistry(RegistryOptions(), context)

        for _ in range(3):
            with pytest.raises(RegistryUninitialized):
                registry.acquire()

        assert lookup.call_count == 1

    def test_failure_keeps_original_cause(self):
        registry = make_registry({'main': FakeProvider()}, data_source_names='missing')

        with pytest.raises(RegistryUninitialized) as excinfo:
            registry.acquire('main')

        assert excinfo.value.__cause__ is not None
        assert 'missing' in str(excinfo.value.__cause__)

    def test_reference_error_fails_initialization(self):
        def broken():
            raise RuntimeError('driver not installed')

        registry = make_registry({'main': Reference(broken)})

        assert registry.initialize() is False
        with pytest.raises(RegistryUninitialized):
            registry.list_source_names()


class TestAcquireRelease:

    def test_unknown_source(self, fake_registry):
        with pytest.raises(UnknownSource) as excinfo:
            fake_registry.acquire('nope')
        assert excinfo.value.name == 'nope'

    def test_acquire_initializes_lazily(self, fake_registry, fake_provider):
        assert not fake_registry.is_initialized

        conn = fake_registry.acquire('main')

        assert fake_registry.is_initialized
        assert fake_provider.handed_out == [conn]

    def test_release_closes_connection(self, fake_registry):
        conn = fake_registry.acquire()

        fake_registry.release(None, conn)

        assert conn.closed

    def test_release_swallows_errors(self, fake_registry):
        conn = fake_registry.acquire()
        conn.fail_close = True

        fake_registry.release('main', conn)

        assert not conn.closed

    def test_release_none_is_noop(self, fake_registry):
        fake_registry.release('main', None)

    def test_concurrent_first_use_discovers_once(self, mocker):
        registry = make_registry({'main': FakeProvider()})
        discover = mocker.spy(registry, '_discover')
        barrier = threading.Barrier(8)
        errors = []

        def worker():
            barrier.wait()
            try:
                registry.release('main', registry.acquire())
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert discover.call_count == 1


class TestProcessRegistry:

    def test_get_registry_is_shared(self):
        assert get_registry() is get_registry()

    def test_set_and_reset(self, fake_registry):
        previous = set_registry(fake_registry)

        assert get_registry() is fake_registry
        assert previous is not fake_registry

        reset_registry()
        assert get_registry() is not fake_registry

    def test_configure_from_dict(self):
        provider = FakeProvider()

        registry = configure({'bindings': {'env': {'db': {'main': provider}}}})

        assert get_registry() is registry
        assert registry.get_source('main').provider is provider

    def test_configure_from_property_keys(self):
        main, reports = FakeProvider('main'), FakeProvider('reports')

        registry = configure({
            'rootNamespace': 'apps/db',
            'dataSourceNames': 'main, reports',
            'defaultDataSourceName': 'reports',
            'bindings': {'apps': {'db': {'main': main, 'reports': reports}}},
        })

        assert registry.options.root_namespace == 'apps/db'
        assert registry.list_source_names() == {'main', 'reports', DEFAULT_SOURCE_NAME}
        assert registry.default_source_name == 'reports'

    def test_configure_from_keywords(self):
        provider = FakeProvider()

        registry = configure(rootNamespace='apps', bindings={'apps': {'x': provider}})

        assert registry.get_source('x').provider is provider

    def test_configure_from_options(self):
        options = RegistryOptions(root_namespace='apps', bindings={'apps': {'x': FakeProvider()}})

        registry = configure(options)

        assert registry.options.root_namespace == 'apps'
        assert registry.list_source_names() == {'x', DEFAULT_SOURCE_NAME}


if __name__ == '__main__':
    __import__('pytest').main([__file__])
