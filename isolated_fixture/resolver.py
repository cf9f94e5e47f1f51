'''
Resolution of module names to the source files an isolation context loads.

A test module's *dependency roots* are the directories its own imports are
resolved against when it is isolated:

- the package root of the test module (the directory above its outermost
  enclosing package, or its own directory if it is not in a package);
- any `paths` listed in an `isolated-deps.yaml` manifest;
- any `isolated_paths` from the `pytest` configuration.

A module found under these roots is loaded afresh into each context. Anything
else (the standard library, installed distributions, C extensions) is
deferred to the host, which supplies its single shared copy.

The manifest is a small YAML file, found by walking up from the test module
to the project root:

```yaml
paths:                  # extra dependency roots, relative to this file
  - ../src
modules:                # explicit module-to-file entries
  counter: libs/counter.py
shared:                 # modules never isolated, even if found under a root
  - mylib.registry
```
'''

from importlib.machinery import PathFinder, ModuleSpec, SOURCE_SUFFIXES
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, NamedTuple, Optional
from collections.abc import Iterable

import yaml

from isolated_fixture.trace import trace
from isolated_fixture.types import ManifestError, ModuleName

MANIFEST_NAME = 'isolated-deps.yaml'
'''
The file name of a dependency manifest.
'''

PROJECT_MARKERS = ('pyproject.toml', 'setup.py', 'setup.cfg', '.git')
'''
Files or directories that mark the top of a project. Manifest discovery
does not search above a directory containing one of these.
'''

_MANIFEST_KEYS = frozenset({'paths', 'modules', 'shared'})


def package_root(seed: Path|str) -> Path:
    '''
    The directory a module's top-level package is imported from.

    For `tests/unit/test_x.py` with `tests/__init__.py` and
    `tests/unit/__init__.py` present, this is the directory holding `tests`.
    '''
    directory = Path(seed).resolve().parent
    while (directory / '__init__.py').is_file() and directory.parent != directory:
        directory = directory.parent
    return directory


def _str_list(path: Path, data: Mapping[str, Any], key: str) -> list[str]:
    value = data.get(key) or []
    match value:
        case str():
            return [value]
        case list() if all(isinstance(v, str) for v in value):
            return value
        case _:
            raise ManifestError(path, f'{key!r} must be a string or a list of strings')


class DependencyManifest(NamedTuple):
    '''
    The declared dependency closure of a test module.
    '''
    root: Path
    '''
    The directory relative entries were resolved against.
    '''
    paths: tuple[Path, ...] = ()
    modules: Mapping[ModuleName, Path] = MappingProxyType({})
    shared: tuple[ModuleName, ...] = ()
    source: Optional[Path] = None
    '''
    The manifest file, or `None` if there was none.
    '''

    @classmethod
    def load(cls, path: Path|str) -> 'DependencyManifest':
        '''
        Read a manifest file. A missing or empty file gives an empty manifest.

        RAISES
        ------
        ManifestError
            The file is not valid YAML, or does not have the expected shape.
        '''
        path = Path(path).resolve()
        root = path.parent
        if not path.is_file():
            return cls(root)
        with path.open(encoding='utf-8') as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as ex:
                raise ManifestError(path, f'invalid YAML: {ex}') from ex
        match data:
            case None:
                return cls(root, source=path)
            case dict():
                pass
            case _:
                raise ManifestError(path, 'expected a mapping at the top level')
        unknown = set(data) - _MANIFEST_KEYS
        if unknown:
            raise ManifestError(path, f'unknown keys: {", ".join(sorted(map(str, unknown)))}')

        modules = data.get('modules') or {}
        if not isinstance(modules, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in modules.items()
        ):
            raise ManifestError(path, "'modules' must map module names to file paths")

        return cls(
            root=root,
            paths=tuple((root / p).resolve() for p in _str_list(path, data, 'paths')),
            modules=MappingProxyType({
                name: (root / file).resolve()
                for name, file in modules.items()
            }),
            shared=tuple(_str_list(path, data, 'shared')),
            source=path,
        )

    @classmethod
    def discover(cls, seed: Path|str) -> 'DependencyManifest':
        '''
        Find the manifest that applies to a module, searching upward from
        its directory to the project root. Gives an empty manifest if none
        is found.
        '''
        seed = Path(seed).resolve()
        for directory in seed.parents:
            candidate = directory / MANIFEST_NAME
            if candidate.is_file():
                return cls.load(candidate)
            if any((directory / marker).exists() for marker in PROJECT_MARKERS):
                break
        return cls(seed.parent)


def _source_path(spec: ModuleSpec|None) -> Path|None:
    '''
    The source file for a spec, if it is one we can load into a context.
    '''
    if spec is None or spec.origin is None or not spec.has_location:
        return None
    path = Path(spec.origin)
    if path.suffix not in SOURCE_SUFFIXES:
        return None
    return path


class DependencyResolver:
    '''
    Maps module names to source files within a test module's dependency roots.

    `resolve()` returns `None` for anything outside them, meaning "defer
    to the host". Lookups only read the file system.
    '''

    __seed: Path
    @property
    def seed(self) -> Path:
        return self.__seed

    __manifest: DependencyManifest
    @property
    def manifest(self) -> DependencyManifest:
        return self.__manifest

    __roots: tuple[Path, ...]
    @property
    def roots(self) -> tuple[Path, ...]:
        '''
        The directories top-level modules are searched for in, in order.
        '''
        return self.__roots

    def __init__(self,
                 seed: Path|str,
                 manifest: Optional[DependencyManifest]=None,
                 extra_paths: Iterable[Path|str]=(),
                 ):
        '''
        PARAMETERS
        ----------
        seed: Path|str
            The source file of the test module being isolated.
        manifest: Optional[DependencyManifest]
            The manifest to use. If `None`, it is discovered from the seed.
        extra_paths: Iterable[Path|str]
            Additional dependency roots, searched last.
        '''
        self.__seed = Path(seed).resolve()
        if manifest is None:
            manifest = DependencyManifest.discover(self.__seed)
        self.__manifest = manifest
        roots = [
            package_root(self.__seed),
            *manifest.paths,
            *(Path(p).resolve() for p in extra_paths),
        ]
        self.__roots = tuple(dict.fromkeys(roots))

    def resolve(self, name: ModuleName) -> Path|None:
        '''
        The source file for a module, or `None` if the host must supply it.
        '''
        path = self._resolve(name)
        trace('RESOLVE', f'{name} -> {path if path is not None else "host"}')
        return path

    def _resolve(self, name: ModuleName) -> Path|None:
        modules = self.__manifest.modules
        explicit = modules.get(name)
        if explicit is not None:
            return explicit if explicit.is_file() else None

        parts = name.split('.')
        locations = [str(root) for root in self.__roots]
        spec: ModuleSpec|None = None
        for i in range(len(parts)):
            fullname = '.'.join(parts[:i + 1])
            last = i == len(parts) - 1
            explicit = modules.get(fullname)
            if explicit is not None and not last:
                # An explicitly listed parent must be a regular package.
                if explicit.name != '__init__.py' or not explicit.is_file():
                    return None
                locations = [str(explicit.parent)]
                continue
            spec = PathFinder.find_spec(fullname, locations)
            if spec is None:
                return None
            if not last:
                # Namespace packages and extension modules are never isolated,
                # and neither is anything beneath them.
                if _source_path(spec) is None or not spec.submodule_search_locations:
                    return None
                locations = list(spec.submodule_search_locations)
        return _source_path(spec)

    def __repr__(self) -> str:
        return f'{type(self).__name__}({str(self.__seed)!r}, roots={[str(r) for r in self.__roots]!r})'
