'''
Tests of the `@isolated_fixture` marker and pre-filters, without running
collection.
'''

from types import SimpleNamespace
from typing import Any

from pytest import raises

from isolated_fixture.handle import IsolatedTypeHandle, TypeWrapper
from isolated_fixture.marker import (
    EmptyFilter, FixtureBuilder, IsolatedFixture, MethodNameFilter,
    fixture_builders, isolated_fixture,
)
from isolated_fixture.types import PreFilter, RunState


def test_bare_decorator():
    @isolated_fixture
    class TestA:
        pass
    (marker,) = fixture_builders(TestA)
    assert isinstance(marker, IsolatedFixture)
    assert isinstance(marker, FixtureBuilder)
    assert marker.arguments == ()
    assert marker.run_state is RunState.RUNNABLE

def test_decorator_factory():
    @isolated_fixture(args=(int, 3), category='a, b', author='someone', ignore='later')
    class TestA:
        pass
    (marker,) = fixture_builders(TestA)
    assert marker.type_args == (int,)
    assert marker.arguments == (3,)
    assert marker.categories == ('a', 'b')
    assert marker.author == 'someone'
    assert marker.run_state is RunState.IGNORED
    assert marker.skip_reason == 'later'

def test_repeatable_and_inherited():
    @isolated_fixture(args=(1,))
    @isolated_fixture(args=(2,))
    class TestA:
        pass
    class TestB(TestA):
        pass
    assert [m.arguments for m in fixture_builders(TestA)] == [(2,), (1,)]
    assert fixture_builders(TestB) == fixture_builders(TestA)

def test_marker_instance_as_decorator():
    marker = IsolatedFixture(5, explicit=True)
    @marker
    class TestA:
        pass
    assert fixture_builders(TestA) == (marker,)
    assert marker.explicit

def test_not_a_class():
    with raises(TypeError):
        isolated_fixture(lambda: None) # type: ignore[call-overload]

def test_unmarked():
    class TestA:
        pass
    assert fixture_builders(TestA) == ()


def test_empty_filter():
    f = EmptyFilter.INSTANCE
    assert isinstance(f, PreFilter)
    assert f.match_type(int)
    assert f.match_method(int, int.__add__)

def test_method_name_filter():
    class TestA:
        def test_one(self): pass
        def test_two(self): pass
    f = MethodNameFilter(['test_one'])
    assert isinstance(f, PreFilter)
    assert f.match_type(TestA)
    assert f.match_method(TestA, TestA.test_one)
    assert not f.match_method(TestA, TestA.test_two)
    assert repr(f) == "MethodNameFilter(['test_one'])"


class RecordingBuilder:
    '''
    A suite builder that records what it is asked to build.
    '''
    def __init__(self):
        self.calls: list[tuple[Any, ...]] = []

    def build_from(self, parent, type_info, pre_filter, fixture_data):
        self.calls.append((parent, type_info, pre_filter, fixture_data))
        return ['built']

def _unconfigured_parent():
    def getini(name):
        raise ValueError(name)
    return SimpleNamespace(config=SimpleNamespace(getini=getini), nodeid='test_x.py')

def test_build_from_isolates(f_project, f_sys_modules):
    root = f_project(**{
        'pyproject.toml': '',
        'suite.py': '''
            class TestSuite:
                def test_it(self):
                    pass
            ''',
    })
    builder = RecordingBuilder()
    marker = IsolatedFixture(7, builder=builder)
    parent = _unconfigured_parent()
    with f_sys_modules(root):
        import suite # type: ignore[import-not-found]
        result = marker.build_from(parent, TypeWrapper(suite.TestSuite))
        assert result == ['built']
        ((p, type_info, pre_filter, data),) = builder.calls
        assert p is parent
        assert isinstance(type_info, IsolatedTypeHandle)
        assert type_info.type is not suite.TestSuite
        assert type_info.full_name == 'suite.TestSuite'
        assert pre_filter is EmptyFilter.INSTANCE
        assert data is marker

        builder.calls.clear()
        name_filter = MethodNameFilter(['test_it'])
        marker.build_from(parent, TypeWrapper(suite.TestSuite), name_filter)
        ((_, second, pre_filter, _),) = builder.calls
        assert pre_filter is name_filter
        assert second.context is not type_info.context

def test_default_builder():
    from isolated_fixture.builder import PytestSuiteBuilder, SuiteBuilder
    marker = IsolatedFixture()
    assert isinstance(marker.builder, PytestSuiteBuilder)
    assert isinstance(marker.builder, SuiteBuilder)
