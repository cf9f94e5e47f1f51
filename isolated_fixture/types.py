'''
Auxiliary types for the isolated fixture plugin.

Types for public use are re-exported from the package via `__init__.py`
and the `__all__` variable.
'''

from abc import abstractmethod
from enum import Enum
from pathlib import Path
from typing import (
    Any, Callable, Literal, Protocol, TypeAlias, runtime_checkable,
)
from collections.abc import Sequence

TraceKind: TypeAlias = Literal['LOAD', 'RESOLVE', 'BUILD']
'''
The kinds of diagnostic tracing, each enabled by an `ISOLATED_TRACE_<kind>`
environment variable.
'''

ModuleName: TypeAlias = str
'''
A dotted module name, as used in `import` statements.
'''

class _NoValue:
    """A type for a marker for a value that is not passed in."""
    __match_args__ = ()
    def __repr__(self):
        return '_NO_VALUE'


_NO_VALUE = _NoValue()
"""A marker value to indicate that a value was not supplied"""


class RunState(Enum):
    '''
    Whether, and how, a fixture is run.
    '''
    RUNNABLE = 'Runnable'
    IGNORED = 'Ignored'
    EXPLICIT = 'Explicit'

    def __str__(self):
        return self.value


@runtime_checkable
class PreFilter(Protocol):
    '''
    Selects the types and methods a suite is built from.
    '''
    @abstractmethod
    def match_type(self, cls: type, /) -> bool: ...

    @abstractmethod
    def match_method(self, cls: type, method: Callable[..., Any], /) -> bool: ...


@runtime_checkable
class TypeInfo(Protocol):
    '''
    The structural view of a class used to build a suite from it.

    This is satisfied both by ordinary classes (via `TypeWrapper`) and by
    classes loaded into an isolation context (via `IsolatedTypeHandle`).
    '''
    @property
    @abstractmethod
    def type(self) -> type:
        '''
        The underlying runtime class.
        '''
        ...

    @property
    @abstractmethod
    def name(self) -> str: ...

    @property
    @abstractmethod
    def qualname(self) -> str: ...

    @property
    @abstractmethod
    def full_name(self) -> str:
        '''
        The module-qualified name, e.g. `tests.test_counter.TestCounter`.
        '''
        ...

    @property
    @abstractmethod
    def namespace(self) -> str: ...

    @property
    @abstractmethod
    def module_name(self) -> ModuleName: ...

    @property
    @abstractmethod
    def location(self) -> Path:
        '''
        The source file of the module the class is declared in.
        '''
        ...

    @abstractmethod
    def methods(self) -> Sequence[tuple[str, Callable[..., Any]]]: ...

    @abstractmethod
    def get_method(self, name: str) -> Callable[..., Any]|None: ...

    @abstractmethod
    def has_method(self, name: str) -> bool: ...

    @abstractmethod
    def markers(self) -> Sequence[Any]: ...


class IsolationException(Exception):
    """
    A base class for exceptions in the isolated fixture plugin.
    """
    def __init__(self, message: str, /):
        super().__init__(message)
        self.message = message

class UnitNotFoundError(IsolationException):
    '''
    Raised by an isolation context when it will not load a module itself.

    This is the "defer to host" signal: the caller falls back to the
    host's normal import machinery.
    '''
    name: ModuleName
    aliased: bool
    def __init__(self, name: ModuleName, aliased: bool=False):
        why = 'shared with the host' if aliased else 'not in the dependency roots'
        super().__init__(f'Module {name!r} is {why}.')
        self.name = name
        self.aliased = aliased

class IsolatedTypeNotFoundError(IsolationException, LookupError):
    '''
    Raised when a class cannot be found by name in a freshly loaded module.
    '''
    module: ModuleName
    qualname: str
    def __init__(self, module: ModuleName, qualname: str):
        super().__init__(f'Class {qualname!r} not found in isolated module {module!r}.')
        self.module = module
        self.qualname = qualname

class HomeUnitNotFoundError(IsolationException):
    '''
    Raised when the source file a class was declared in cannot be located.
    '''
    def __init__(self, cls: type):
        super().__init__(
            f'Cannot locate the source module of {cls.__module__}.{cls.__qualname__}.'
        )
        self.cls = cls

class ManifestError(IsolationException, ValueError):
    '''
    Raised when a dependency manifest is malformed.
    '''
    path: Path
    def __init__(self, path: Path, message: str):
        super().__init__(f'{path}: {message}')
        self.path = path
