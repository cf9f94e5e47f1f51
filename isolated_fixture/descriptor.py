'''
Fixture-level metadata: name, arguments, run state, categories and the like.

`FixtureDescriptor` is the typed record of it. The fields fixed at
construction are read-only. The ones that may change later (categories, the
ignore reason and the run state it implies, explicitness) have a single
setter each that keeps them consistent.

`PropertyBag` is the multi-valued, string-keyed view of the same data, as
reported to the host (e.g. in `user_properties`, and so in JUnit XML).
'''

from typing import Any, Optional
from collections.abc import Iterable, Iterator, Sequence

from isolated_fixture.types import RunState


class PropertyNames:
    '''
    The well-known keys of a `PropertyBag`.
    '''
    Description = 'Description'
    Author = 'Author'
    Category = 'Category'
    TestOf = 'TestOf'
    SkipReason = '_SKIPREASON'
    RunState = 'RunState'


class PropertyBag:
    '''
    An ordered, multi-valued mapping from property names to values.
    '''
    __values: dict[str, list[Any]]

    def __init__(self, items: Iterable[tuple[str, Any]]=()):
        self.__values = {}
        for key, value in items:
            self.add(key, value)

    def add(self, key: str, value: Any):
        '''
        Append a value under `key`.
        '''
        self.__values.setdefault(key, []).append(value)

    def set(self, key: str, value: Any):
        '''
        Replace any values under `key` with the one value.
        '''
        self.__values[key] = [value]

    def get(self, key: str) -> Any:
        '''
        The first value under `key`, or `None`.
        '''
        values = self.__values.get(key)
        return values[0] if values else None

    def __getitem__(self, key: str) -> list[Any]:
        return list(self.__values.get(key, ()))

    def __contains__(self, key: object) -> bool:
        return key in self.__values

    def keys(self) -> list[str]:
        return list(self.__values)

    def items(self) -> Iterator[tuple[str, Any]]:
        '''
        `(key, value)` pairs in insertion order, one per value.
        '''
        for key, values in self.__values.items():
            for value in values:
                yield key, value

    def __len__(self) -> int:
        return len(self.__values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PropertyBag):
            return NotImplemented
        return list(self.items()) == list(other.items())

    def __repr__(self) -> str:
        return f'{type(self).__name__}({list(self.items())!r})'


def _type_name(value: type|str) -> str:
    if isinstance(value, type):
        return f'{value.__module__}.{value.__qualname__}'
    return value


def _split_arguments(arguments: Sequence[Any]) -> tuple[tuple[type, ...], tuple[Any, ...]]:
    '''
    Split off the leading arguments that are classes, to use as type arguments.
    '''
    n = 0
    while n < len(arguments) and isinstance(arguments[n], type):
        n += 1
    return tuple(arguments[:n]), tuple(arguments[n:])


class FixtureDescriptor:
    '''
    Identity and metadata of a fixture.

    PARAMETERS
    ----------
    arguments: Sequence[Any]
        The fixture's arguments. Leading classes are taken as type
        arguments, unless `type_args` is given.
    type_args: Optional[Sequence[type]]
        Explicit type arguments.
    name: Optional[str]
        A display name to use instead of one derived from the class.
    description, author: Optional[str]
    test_of: type|str|None
        The class (or name of the class) this fixture tests.
    category: Optional[str]
        Initial categories, comma separated.
    ignore: Optional[str]
        If non-empty, the fixture is ignored for this reason.
    explicit: bool
        If true, the fixture runs only when explicitly selected.
    '''

    def __init__(self,
                 arguments: Sequence[Any]=(),
                 *,
                 type_args: Optional[Sequence[type]]=None,
                 name: Optional[str]=None,
                 description: Optional[str]=None,
                 author: Optional[str]=None,
                 test_of: type|str|None=None,
                 category: Optional[str]=None,
                 ignore: Optional[str]=None,
                 explicit: bool=False,
                 ):
        if arguments is None:
            arguments = (None,)
        if type_args is None:
            self.__type_args, self.__arguments = _split_arguments(arguments)
        else:
            self.__type_args, self.__arguments = tuple(type_args), tuple(arguments)
        self.__test_name = name
        self.__description = description
        self.__author = author
        self.__test_of = test_of
        self.__categories: dict[str, None] = {}
        self.__skip_reason: str|None = None
        self.__run_state = RunState.RUNNABLE
        self.category = category
        if explicit:
            self.explicit = True
        if ignore:
            self.ignore(ignore)

    @property
    def test_name(self) -> str|None:
        return self.__test_name

    @property
    def arguments(self) -> tuple[Any, ...]:
        '''
        The arguments originally provided, less any taken as type arguments.
        '''
        return self.__arguments

    @property
    def type_args(self) -> tuple[type, ...]:
        return self.__type_args

    @property
    def description(self) -> str|None:
        return self.__description

    @property
    def author(self) -> str|None:
        return self.__author

    @property
    def test_of(self) -> type|str|None:
        return self.__test_of

    @property
    def run_state(self) -> RunState:
        return self.__run_state

    @property
    def skip_reason(self) -> str|None:
        return self.__skip_reason

    def ignore(self, reason: Optional[str]):
        '''
        Set or clear the reason for ignoring the fixture.

        A non-empty reason marks the fixture as ignored. Clearing it makes an
        ignored fixture runnable again.
        '''
        if reason:
            self.__skip_reason = reason
            self.__run_state = RunState.IGNORED
        else:
            self.__skip_reason = None
            if self.__run_state is RunState.IGNORED:
                self.__run_state = RunState.RUNNABLE

    @property
    def ignore_reason(self) -> str|None:
        return self.__skip_reason

    @ignore_reason.setter
    def ignore_reason(self, reason: Optional[str]):
        self.ignore(reason)

    reason = ignore_reason

    @property
    def explicit(self) -> bool:
        return self.__run_state is RunState.EXPLICIT

    @explicit.setter
    def explicit(self, value: bool):
        if value:
            self.__run_state = RunState.EXPLICIT
        elif self.__run_state is RunState.EXPLICIT:
            self.__run_state = RunState.RUNNABLE

    @property
    def categories(self) -> tuple[str, ...]:
        return tuple(self.__categories)

    @property
    def category(self) -> str|None:
        '''
        The categories, comma separated, or `None` if there are none.

        Assigning appends to the categories rather than replacing them.
        The assigned value may itself be a comma-separated list. Assigning
        `None` does nothing.
        '''
        match len(self.__categories):
            case 0:
                return None
            case 1:
                return next(iter(self.__categories))
            case _:
                return ','.join(self.__categories)

    @category.setter
    def category(self, value: Optional[str]):
        if value is None:
            return
        if not isinstance(value, str):
            raise TypeError(f'Category must be a string, not {type(value).__name__}')
        for cat in value.split(','):
            cat = cat.strip()
            if cat:
                self.__categories.setdefault(cat, None)

    @property
    def properties(self) -> PropertyBag:
        '''
        The metadata as a property bag.
        '''
        bag = PropertyBag()
        if self.__description is not None:
            bag.set(PropertyNames.Description, self.__description)
        if self.__author is not None:
            bag.set(PropertyNames.Author, self.__author)
        if self.__test_of is not None:
            bag.set(PropertyNames.TestOf, _type_name(self.__test_of))
        for cat in self.__categories:
            bag.add(PropertyNames.Category, cat)
        if self.__skip_reason is not None:
            bag.set(PropertyNames.SkipReason, self.__skip_reason)
        if self.__run_state is not RunState.RUNNABLE:
            bag.set(PropertyNames.RunState, str(self.__run_state))
        return bag

    def display_name(self, type_name: str) -> str:
        '''
        The name a suite built for `type_name` is shown under.

        An explicit name wins. Otherwise: `Name[T1,T2](arg1,arg2)`, with the
        parts in brackets present only when there are type arguments or
        arguments.
        '''
        if self.__test_name:
            return self.__test_name
        name = type_name
        if self.__type_args:
            name += f'[{",".join(t.__name__ for t in self.__type_args)}]'
        if self.__arguments:
            name += f'({",".join(repr(a) for a in self.__arguments)})'
        return name

    def __repr__(self) -> str:
        return f'{type(self).__name__}(arguments={self.__arguments!r}, run_state={self.__run_state})'
