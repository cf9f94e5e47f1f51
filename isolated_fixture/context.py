'''
Isolation contexts: private module tables for isolated test fixtures.

An `IsolationContext` loads a test module, and every module it imports from
within its dependency roots, afresh and independently of `sys.modules` and
of every other context. Module-level state lives in those private copies, so
one fixture's mutations can't be seen by another.

How imports are routed: each module loaded into a context is given a private
`__builtins__` mapping whose `__import__` is the context's `import_hook`.
Python looks up `__import__` in the executing frame's builtins for every
`import` statement, so all imports made by isolated code are routed to the
context, both at load time and later when the tests run. Modules the
context will not load are imported the normal way, which yields the host's
single shared copy.

`importlib.import_module()` calls bypass the context.
'''

from importlib import import_module
from importlib.util import module_from_spec, resolve_name, spec_from_file_location
from importlib.abc import Loader
from importlib.machinery import PathFinder
from inspect import currentframe
from pathlib import Path
from threading import RLock
from types import MappingProxyType, ModuleType
from typing import Any, Mapping, Optional, Sequence
from collections.abc import Iterable
from uuid import uuid4
import builtins

from isolated_fixture.aliasing import AliasRule, framework_rule
from isolated_fixture.resolver import DependencyManifest, DependencyResolver
from isolated_fixture.trace import trace
from isolated_fixture.types import (
    IsolatedTypeNotFoundError, ModuleName, UnitNotFoundError,
    _NO_VALUE,
)

_CONTEXT_KEY = '__isolation_context__'
'''
The key under which a context stores itself in its private builtins.
'''


def _package_of(globals: Mapping[str, Any]|None) -> str|None:
    '''
    The package relative imports are resolved against, as for `__import__`.
    '''
    if not globals:
        return None
    package = globals.get('__package__')
    if package is not None:
        return package
    spec = globals.get('__spec__')
    if spec is not None:
        return spec.parent
    name = globals.get('__name__', '')
    return name if '__path__' in globals else name.rpartition('.')[0]


class IsolationContext:
    '''
    A private, uniquely named scope modules are loaded into.

    One is created for every fixture suite build and never shared. It has no
    teardown. The suite node built from it holds the owning reference, and the
    modules it loaded stay alive as long as that node does.

    Loads are serialized by a per-context lock.
    '''

    __name: str
    @property
    def name(self) -> str:
        '''
        A unique name for diagnostics: `IsolationContext.<hex>`.
        '''
        return self.__name

    __seed: Path
    @property
    def seed(self) -> Path:
        return self.__seed

    __resolver: DependencyResolver
    @property
    def resolver(self) -> DependencyResolver:
        return self.__resolver

    __alias_rule: AliasRule
    @property
    def alias_rule(self) -> AliasRule:
        return self.__alias_rule

    __modules: dict[ModuleName, ModuleType]
    @property
    def modules(self) -> Mapping[ModuleName, ModuleType]:
        '''
        The modules loaded into this context, by name.
        '''
        return MappingProxyType(self.__modules)

    def __init__(self,
                 seed: Path|str,
                 resolver: DependencyResolver,
                 alias_rule: AliasRule,
                 ):
        self.__name = f'{type(self).__name__}.{uuid4().hex}'
        self.__seed = Path(seed).resolve()
        self.__resolver = resolver
        self.__alias_rule = alias_rule
        self.__modules = {}
        self.__lock = RLock()
        self.__builtins = dict(builtins.__dict__)
        self.__builtins['__import__'] = self.import_hook
        self.__builtins[_CONTEXT_KEY] = self

    def load(self, name: ModuleName) -> ModuleType:
        '''
        Get this context's own copy of a module, loading it if need be.

        RAISES
        ------
        UnitNotFoundError
            The module is shared with the host, or is not found in the
            dependency roots. The caller should use the host's copy.
        '''
        with self.__lock:
            module = self.__modules.get(name)
            if module is not None:
                return module
            if self.__alias_rule.should_alias(name):
                raise UnitNotFoundError(name, aliased=True)
            path = self.__resolver.resolve(name)
            if path is None:
                raise UnitNotFoundError(name)
            return self.load_from_path(name, path)

    def load_from_path(self,
                       name: ModuleName,
                       path: Path|str,
                       loader: Optional[Loader]=None,
                       ) -> ModuleType:
        '''
        Load a specific source file into this context as module `name`.

        PARAMETERS
        ----------
        name: ModuleName
            The module name, which also anchors its relative imports.
        path: Path|str
            The source file.
        loader: Optional[Loader]
            The loader to execute the module with. Defaults to a plain source
            loader. Passing the host's loader keeps any source rewriting
            it does, such as `pytest`'s assertion rewriting.
        '''
        with self.__lock:
            existing = self.__modules.get(name)
            if existing is not None:
                return existing
            path = Path(path).resolve()
            parent_name, _, child = name.rpartition('.')
            parent = self.import_module(parent_name) if parent_name else None
            # Importing a package can import its own submodules.
            existing = self.__modules.get(name)
            if existing is not None:
                return existing

            spec = spec_from_file_location(name, path, loader=loader)
            if spec is None or spec.loader is None:
                raise UnitNotFoundError(name)
            module = module_from_spec(spec)
            module.__builtins__ = self.__builtins # type: ignore[attr-defined]
            self.__modules[name] = module
            trace('LOAD', f'{self.__name}: loading {name} from {path}')
            try:
                spec.loader.exec_module(module)
            except BaseException:
                self.__modules.pop(name, None)
                raise
            if parent is not None and self.__modules.get(parent_name) is parent:
                setattr(parent, child, module)
            return module

    def import_module(self, name: ModuleName) -> ModuleType:
        '''
        Import a module as isolated code sees it: this context's copy if it
        has or can load one, otherwise the host's.
        '''
        with self.__lock:
            try:
                return self.load(name)
            except UnitNotFoundError as ex:
                if ex.name != name:
                    raise
            parent_name, _, child = name.rpartition('.')
            parent = self.__modules.get(parent_name)
            if parent is not None:
                # The host can't supply a submodule of a package it doesn't have.
                locations = getattr(parent, '__path__', None) or []
                if PathFinder.find_spec(name, list(locations)) is None:
                    raise ModuleNotFoundError(f'No module named {name!r}', name=name)
            trace('LOAD', f'{self.__name}: {name} deferred to host')
            module = import_module(name)
            if parent is not None and not hasattr(parent, child):
                setattr(parent, child, module)
            return module

    def import_hook(self,
                    name: str,
                    globals: Optional[Mapping[str, Any]]=None,
                    locals: Optional[Mapping[str, Any]]=None,
                    fromlist: Sequence[str]=(),
                    level: int=0,
                    ) -> ModuleType:
        '''
        The `__import__` seen by code loaded into this context.
        '''
        __tracebackhide__ = True
        if level > 0:
            absolute = resolve_name('.' * level + name, _package_of(globals))
        else:
            absolute = name
        module = self.import_module(absolute)
        if not fromlist:
            if level == 0:
                return self.import_module(name.partition('.')[0])
            if not name:
                return module
            # Only reachable by calling __import__ directly.
            cut_off = len(name) - len(name.partition('.')[0])
            return self.import_module(module.__name__[:len(module.__name__) - cut_off])
        if hasattr(module, '__path__'):
            self._handle_fromlist(module, fromlist)
        return module

    def _handle_fromlist(self, module: ModuleType, fromlist: Iterable[str]):
        for item in fromlist:
            if not isinstance(item, str):
                raise TypeError(f'Item in {module.__name__}.__all__ must be str, not {type(item).__name__}')
            if item == '*':
                names = getattr(module, '__all__', None)
                if names is not None:
                    self._handle_fromlist(module, [n for n in names if n != '*'])
            elif not hasattr(module, item):
                child = f'{module.__name__}.{item}'
                try:
                    self.import_module(child)
                except ModuleNotFoundError as ex:
                    # Not a submodule; the `from` import reports the missing name.
                    if ex.name == child:
                        continue
                    raise

    def get_type(self, module: ModuleType, qualname: str) -> type:
        '''
        Look up a class in a loaded module by its qualified name.

        RAISES
        ------
        IsolatedTypeNotFoundError
            No class by exactly that name exists in the module.
        '''
        obj: Any = module
        for part in qualname.split('.'):
            obj = getattr(obj, part, _NO_VALUE)
            if obj is _NO_VALUE:
                raise IsolatedTypeNotFoundError(module.__name__, qualname)
        if not isinstance(obj, type):
            raise IsolatedTypeNotFoundError(module.__name__, qualname)
        return obj

    def __contains__(self, name: ModuleName) -> bool:
        return name in self.__modules

    def __repr__(self) -> str:
        return f'<{self.__name} seed={str(self.__seed)!r} modules={len(self.__modules)}>'


def new_context(seed: Path|str, *,
                manifest: Optional[DependencyManifest]=None,
                extra_paths: Iterable[Path|str]=(),
                shared: Iterable[ModuleName]=(),
                ) -> IsolationContext:
    '''
    Create a fresh isolation context for the module at `seed`.

    PARAMETERS
    ----------
    seed: Path|str
        The source file of the module to be isolated.
    manifest: Optional[DependencyManifest]
        The dependency manifest. If `None`, it is discovered from the seed.
    extra_paths: Iterable[Path|str]
        Additional dependency roots.
    shared: Iterable[ModuleName]
        Additional modules to share with the host, on top of the framework
        and the manifest's `shared` list.
    '''
    resolver = DependencyResolver(seed, manifest, extra_paths)
    rule = framework_rule((*resolver.manifest.shared, *shared))
    context = IsolationContext(seed, resolver, rule)
    trace('LOAD', f'created {context.name} for {context.seed}')
    return context


def current_context() -> IsolationContext|None:
    '''
    The isolation context of the calling code, or `None` if it was not
    loaded into one.
    '''
    frame = currentframe()
    try:
        frame = frame.f_back if frame is not None else None
        while frame is not None:
            context = frame.f_builtins.get(_CONTEXT_KEY)
            if isinstance(context, IsolationContext):
                return context
            frame = frame.f_back
        return None
    finally:
        del frame
