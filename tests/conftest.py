from contextlib import contextmanager
from pathlib import Path
from threading import RLock
from textwrap import dedent
from typing import Callable, TypeAlias
from collections.abc import Generator
import sys

import pytest

pytest_plugins = ['pytester']


ProjectWriter: TypeAlias = Callable[..., Path]

@pytest.fixture()
def f_project(tmp_path) -> ProjectWriter:
    '''
    Fixture to write a small tree of source files for a test.

    Usage:

    def test_it(f_project):
        root = f_project(**{
            'counter.py': 'value = 0',
            'pkg/__init__.py': '',
        })

    Keys are paths relative to the root, values are file contents, which
    are dedented. Returns the root directory.
    '''
    root = tmp_path / 'project'
    root.mkdir()
    def write(**files: str) -> Path:
        for name, text in files.items():
            path = root / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(dedent(text), encoding='utf-8')
        return root
    return write


modules_lock = RLock()
@pytest.fixture()
def f_sys_modules(monkeypatch):
    '''
    Fixture to import modules in the host from a directory, and unload them
    (and anything they loaded) afterwards.

    Usage:

    def test_it(f_project, f_sys_modules):
        root = f_project(**{'counter.py': 'value = 0'})
        with f_sys_modules(root):
            import counter
    '''
    with modules_lock:
        @contextmanager
        def modules(path: Path) -> Generator[None, None, None]:
            before = set(sys.modules)
            monkeypatch.syspath_prepend(str(path))
            try:
                yield
            finally:
                for name in set(sys.modules) - before:
                    del sys.modules[name]
        yield modules


@pytest.fixture()
def f_pytester(pytester: pytest.Pytester) -> pytest.Pytester:
    '''
    `pytester`, with the plugin enabled for the runs it makes.
    '''
    pytester.makeconftest("pytest_plugins = ['isolated_fixture.plugin']")
    return pytester


@pytest.fixture(autouse=True)
def f_debug_env(monkeypatch):
    monkeypatch.setenv("ISOLATED_TRACE_LOAD", "1")
    monkeypatch.setenv("ISOLATED_TRACE_RESOLVE", "1")
    monkeypatch.setenv("ISOLATED_TRACE_BUILD", "1")
