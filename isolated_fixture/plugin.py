'''
The `pytest` plugin: wires isolated fixtures into collection.

Loaded through the `pytest11` entry point, or with
`-p isolated_fixture.plugin`.

It provides:
- ini options `isolated_paths` and `isolated_shared`;
- the `isolated` and `category` markers;
- collection of `@isolated_fixture` classes from isolated copies;
- the `isolation_context` and `isolated_fixture_args` fixtures.
'''

from inspect import isclass
from typing import Any, NamedTuple

import pytest

from isolated_fixture.builder import IsolatedClass, build_all
from isolated_fixture.context import IsolationContext
from isolated_fixture.handle import TypeWrapper
from isolated_fixture.marker import fixture_builders
from isolated_fixture.settings import add_ini_options


class FixtureArguments(NamedTuple):
    '''
    The arguments an isolated fixture was declared with.
    '''
    arguments: tuple[Any, ...] = ()
    type_args: tuple[type, ...] = ()


def pytest_addoption(parser: pytest.Parser):
    add_ini_options(parser)


def pytest_configure(config: pytest.Config):
    config.addinivalue_line(
        'markers',
        'isolated: collected from a fresh copy of its module (applied by @isolated_fixture).',
    )
    config.addinivalue_line(
        'markers',
        'category(*names): the categories of an isolated fixture.',
    )


@pytest.hookimpl(tryfirst=True)
def pytest_pycollect_makeitem(collector: pytest.Module|pytest.Class, name: str, obj: object):
    '''
    Build the suites of a class marked with `@isolated_fixture`, in place of
    standard collection.
    '''
    if not isclass(obj):
        return None
    builders = fixture_builders(obj)
    if not builders:
        return None
    return build_all(builders, collector, TypeWrapper(obj))


@pytest.fixture
def isolation_context(request: pytest.FixtureRequest) -> IsolationContext|None:
    '''
    The isolation context the requesting test's class was loaded into, or
    `None` for a test that is not isolated.
    '''
    node = request.node.getparent(IsolatedClass)
    return node.isolation_context if node is not None else None


@pytest.fixture
def isolated_fixture_args(request: pytest.FixtureRequest) -> FixtureArguments:
    '''
    The arguments of the isolated fixture the requesting test belongs to.
    '''
    node = request.node.getparent(IsolatedClass)
    if node is None:
        return FixtureArguments()
    return FixtureArguments(node.descriptor.arguments, node.descriptor.type_args)
