'''
The `@isolated_fixture` marker for test classes.

A marked class is collected from a fresh copy of its module, loaded into
its own isolation context. Module-level state that one fixture sets up or
mutates is then never seen by another fixture, or by unmarked tests.

EXAMPLES:

@isolated_fixture
class TestCounter:
    def test_bump(self):
        counter.bump(5)
        assert counter.value == 5

@isolated_fixture(args=(2,), category='slow')
@isolated_fixture(args=(4,), category='slow')
class TestScaled:
    def test_scale(self, isolated_fixture_args):
        ...

Markers are repeatable (one suite per marker) and inherited by subclasses.
All the parametrized cases of one suite share one loaded copy.
'''

from abc import abstractmethod
from inspect import getattr_static
from typing import (
    Any, Callable, ClassVar, Optional, Protocol, Sequence, TypeVar, overload,
    runtime_checkable,
)
from collections.abc import Iterable

import pytest

from isolated_fixture.builder import PytestSuiteBuilder, SuiteBuilder
from isolated_fixture.descriptor import FixtureDescriptor
from isolated_fixture.handle import isolate
from isolated_fixture.settings import IsolationSettings
from isolated_fixture.trace import trace
from isolated_fixture.types import PreFilter, TypeInfo

FIXTURES_ATTRIBUTE = '__isolated_fixtures__'
'''
The class attribute holding a class's markers, as a tuple.
'''


class EmptyFilter:
    '''
    A pre-filter that matches everything.
    '''
    INSTANCE: ClassVar['EmptyFilter']

    def match_type(self, cls: type, /) -> bool:
        return True

    def match_method(self, cls: type, method: Callable[..., Any], /) -> bool:
        return True

EmptyFilter.INSTANCE = EmptyFilter()


class MethodNameFilter:
    '''
    A pre-filter that matches only the named test methods.
    '''
    names: frozenset[str]

    def __init__(self, names: Iterable[str]):
        self.names = frozenset(names)

    def match_type(self, cls: type, /) -> bool:
        return True

    def match_method(self, cls: type, method: Callable[..., Any], /) -> bool:
        return method.__name__ in self.names

    def __repr__(self) -> str:
        return f'{type(self).__name__}({sorted(self.names)!r})'


@runtime_checkable
class FixtureBuilder(Protocol):
    '''
    Something that builds the suite(s) for a class, given where in the
    collection tree they go.
    '''
    @abstractmethod
    def build_from(self,
                   parent: pytest.Collector,
                   type_info: TypeInfo,
                   pre_filter: Optional[PreFilter]=None,
                   ) -> list[pytest.Collector]: ...


C = TypeVar('C', bound=type)

class IsolatedFixture(FixtureDescriptor):
    '''
    Marks a class as an isolated fixture, and builds its suite.

    The constructor takes the fixture's arguments positionally, and its
    metadata as keywords (see `FixtureDescriptor`). Apply an instance to a
    class as a decorator.
    '''
    builder: SuiteBuilder

    def __init__(self, *arguments: Any,
                 builder: Optional[SuiteBuilder]=None,
                 **kwargs: Any):
        super().__init__(arguments, **kwargs)
        self.builder = builder if builder is not None else PytestSuiteBuilder()

    def __call__(self, cls: C) -> C:
        if not isinstance(cls, type):
            raise TypeError(f'@isolated_fixture applies to classes, not {cls!r}')
        existing = fixture_builders(cls)
        setattr(cls, FIXTURES_ATTRIBUTE, (*existing, self))
        return cls

    def build_from(self,
                   parent: pytest.Collector,
                   type_info: TypeInfo,
                   pre_filter: Optional[PreFilter]=None,
                   ) -> list[pytest.Collector]:
        '''
        Build the suite for `type_info` from a fresh, isolated copy of it.

        RAISES
        ------
        IsolatedTypeNotFoundError
            The class could not be found in the freshly loaded module.
        '''
        settings = IsolationSettings.from_config(parent.config)
        trace('BUILD', f'isolating {type_info.full_name} for {parent.nodeid}')
        handle = isolate(type_info,
                         extra_paths=settings.paths,
                         shared=settings.shared)
        return self.builder.build_from(parent,
                                       handle,
                                       pre_filter or EmptyFilter.INSTANCE,
                                       self)


def fixture_builders(cls: type) -> tuple[FixtureBuilder, ...]:
    '''
    The fixture builders (markers) applied to a class or inherited by it.
    '''
    builders = getattr_static(cls, FIXTURES_ATTRIBUTE, ())
    if not isinstance(builders, tuple):
        return ()
    return tuple(b for b in builders if isinstance(b, FixtureBuilder))


@overload
def isolated_fixture(cls: C, /) -> C: ...
@overload
def isolated_fixture(cls: None=None, /, *,
                     args: Sequence[Any]=(),
                     type_args: Optional[Sequence[type]]=None,
                     name: Optional[str]=None,
                     description: Optional[str]=None,
                     author: Optional[str]=None,
                     test_of: type|str|None=None,
                     category: Optional[str]=None,
                     ignore: Optional[str]=None,
                     explicit: bool=False,
                     ) -> IsolatedFixture: ...
def isolated_fixture(cls: Optional[type]=None, /, *,
                     args: Sequence[Any]=(),
                     type_args: Optional[Sequence[type]]=None,
                     name: Optional[str]=None,
                     description: Optional[str]=None,
                     author: Optional[str]=None,
                     test_of: type|str|None=None,
                     category: Optional[str]=None,
                     ignore: Optional[str]=None,
                     explicit: bool=False,
                     ):
    """
    Decorator/decorator factory to mark a class as an isolated fixture.

    - `args` are the fixture's arguments, available to its tests through the
    `isolated_fixture_args` fixture. Leading classes are taken as type
    arguments unless `type_args` is given.

    - `name` replaces the displayed name, otherwise derived from the class
    name and arguments.

    - `category` is a comma-separated list of categories, applied as the
    `category` mark and as keywords for `-k`.

    - `ignore` skips the fixture with the given reason.

    - `explicit` skips the fixture unless it is named on the command line.
    """
    marker = IsolatedFixture(*args,
                             type_args=type_args,
                             name=name,
                             description=description,
                             author=author,
                             test_of=test_of,
                             category=category,
                             ignore=ignore,
                             explicit=explicit)
    if cls is None:
        return marker
    return marker(cls)
