'''
Type handles: the structural view of a class a suite is built from.

`TypeWrapper` adapts an ordinary class, as found by collection in the host.
`IsolatedTypeHandle` adapts the same class as loaded into an isolation
context. The suite builder sees the same interface either way, so building
from an isolated class needs nothing beyond substituting the handle.

Neither holds state of its own beyond what it wraps. The isolated handle
also holds the owning reference to its context.
'''

from inspect import getattr_static, isfunction
from pathlib import Path
from types import ModuleType
from typing import Any, Callable, Optional
from collections.abc import Iterable
import sys

from isolated_fixture.context import IsolationContext, new_context
from isolated_fixture.resolver import DependencyManifest
from isolated_fixture.trace import trace
from isolated_fixture.types import (
    HomeUnitNotFoundError, ModuleName, TypeInfo,
)


class TypeWrapper:
    '''
    Adapts a class to the `TypeInfo` protocol.
    '''
    __type: type
    @property
    def type(self) -> type:
        return self.__type

    def __init__(self, cls: type):
        if not isinstance(cls, type):
            raise TypeError(f'Not a class: {cls!r}')
        self.__type = cls

    @property
    def name(self) -> str:
        return self.__type.__name__

    @property
    def qualname(self) -> str:
        return self.__type.__qualname__

    @property
    def namespace(self) -> str:
        return self.__type.__module__

    @property
    def module_name(self) -> ModuleName:
        return self.__type.__module__

    @property
    def full_name(self) -> str:
        return f'{self.__type.__module__}.{self.__type.__qualname__}'

    @property
    def location(self) -> Path:
        module = sys.modules.get(self.__type.__module__)
        file = getattr(module, '__file__', None)
        if not file:
            raise HomeUnitNotFoundError(self.__type)
        return Path(file).resolve()

    def methods(self) -> list[tuple[str, Callable[..., Any]]]:
        '''
        The methods of the class, including inherited ones, in definition
        order with the most derived class first.
        '''
        seen: dict[str, Callable[..., Any]] = {}
        for base in self.__type.__mro__:
            if base is object:
                continue
            for name in base.__dict__:
                if name in seen:
                    continue
                method = self.get_method(name)
                if method is not None:
                    seen[name] = method
        return list(seen.items())

    def get_method(self, name: str) -> Callable[..., Any]|None:
        try:
            raw = getattr_static(self.__type, name)
        except AttributeError:
            return None
        if isinstance(raw, (staticmethod, classmethod)):
            raw = raw.__func__
        return raw if isfunction(raw) else None

    def has_method(self, name: str) -> bool:
        return self.get_method(name) is not None

    def markers(self) -> list[Any]:
        '''
        The `pytest` marks applied to the class.
        '''
        marks = getattr(self.__type, 'pytestmark', [])
        return list(marks) if isinstance(marks, (list, tuple)) else [marks]

    def __eq__(self, other: object) -> bool:
        return type(other) is type(self) and other.type is self.__type # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash(self.__type)

    def __repr__(self) -> str:
        return f'{type(self).__name__}({self.full_name})'


class IsolatedTypeHandle(TypeWrapper):
    '''
    Adapts a class loaded into an isolation context.
    '''
    __module: ModuleType
    @property
    def module(self) -> ModuleType:
        '''
        The context's copy of the module the class was loaded from.
        '''
        return self.__module

    __context: IsolationContext
    @property
    def context(self) -> IsolationContext:
        return self.__context

    def __init__(self, cls: type, module: ModuleType, context: IsolationContext):
        super().__init__(cls)
        self.__module = module
        self.__context = context

    @property
    def module_name(self) -> ModuleName:
        return self.__module.__name__

    @property
    def location(self) -> Path:
        file = getattr(self.__module, '__file__', None)
        if not file:
            raise HomeUnitNotFoundError(self.type)
        return Path(file).resolve()

    def __repr__(self) -> str:
        return f'{type(self).__name__}({self.full_name}, {self.__context.name})'


def isolate(type_info: TypeInfo, /, *,
            manifest: Optional[DependencyManifest]=None,
            extra_paths: Iterable[Path|str]=(),
            shared: Iterable[ModuleName]=(),
            ) -> IsolatedTypeHandle:
    '''
    Load a fresh copy of a class's module into a new isolation context, and
    return a handle on the copy of the class.

    The context options are passed to `new_context()`.

    RAISES
    ------
    HomeUnitNotFoundError
        The class's module has no source file.
    IsolatedTypeNotFoundError
        The freshly loaded module has no class by the same qualified name.
    '''
    location = type_info.location
    context = new_context(location,
                          manifest=manifest,
                          extra_paths=extra_paths,
                          shared=shared)
    name = type_info.module_name
    # Reuse the host's loader for the same file, to keep assertion rewriting.
    host = sys.modules.get(name)
    spec = getattr(host, '__spec__', None)
    loader = None
    if spec is not None and spec.origin and Path(spec.origin).resolve() == location:
        loader = spec.loader
    module = context.load_from_path(name, location, loader=loader)
    isolated = context.get_type(module, type_info.type.__qualname__)
    trace('LOAD', f'{context.name}: isolated {type_info.full_name}')
    return IsolatedTypeHandle(isolated, module, context)
