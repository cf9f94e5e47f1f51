'''
Building `pytest` suites from type handles.

`PytestSuiteBuilder` is the standard "build a fixture suite from a type"
routine. It knows nothing about isolation: it builds from whatever
`TypeInfo` it is given, applies the fixture's metadata, and returns the
resulting node. The marker gets isolation simply by passing it an
`IsolatedTypeHandle` instead of the class collection found.
'''

from abc import abstractmethod
from inspect import isfunction
from pathlib import Path
from types import ModuleType
from typing import Any, Callable, Optional, Protocol, runtime_checkable
from collections.abc import Generator, Iterable

import pytest

from isolated_fixture.context import IsolationContext
from isolated_fixture.descriptor import FixtureDescriptor
from isolated_fixture.trace import trace
from isolated_fixture.types import PreFilter, RunState, TypeInfo


@runtime_checkable
class SuiteBuilder(Protocol):
    '''
    Builds suite nodes for a type under a parent collector.
    '''
    @abstractmethod
    def build_from(self,
                   parent: pytest.Collector,
                   type_info: TypeInfo,
                   pre_filter: PreFilter,
                   fixture_data: FixtureDescriptor,
                   ) -> list[pytest.Collector]: ...


class IsolatedClass(pytest.Class):
    '''
    A test class collected from the class a `TypeInfo` describes.

    When built from an `IsolatedTypeHandle`, this node owns the isolation
    context the class lives in.
    '''

    type_info: TypeInfo
    descriptor: FixtureDescriptor
    pre_filter: PreFilter

    def __init__(self, *args: Any,
                 type_info: TypeInfo,
                 descriptor: FixtureDescriptor,
                 pre_filter: PreFilter,
                 **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.type_info = type_info
        self.descriptor = descriptor
        self.pre_filter = pre_filter

    @property
    def isolation_context(self) -> IsolationContext|None:
        return getattr(self.type_info, 'context', None)

    def _getobj(self):
        return self.type_info.type

    def collect(self) -> list[pytest.Item|pytest.Collector]:
        module = getattr(self.type_info, 'module', None)
        if module is not None:
            self._register_module(module)
        cls = self.obj
        properties = list(self.descriptor.properties.items())
        collected: list[pytest.Item|pytest.Collector] = []
        for node in super().collect():
            if isinstance(node, pytest.Function):
                method = self.type_info.get_method(node.originalname)
                if method is not None and not self.pre_filter.match_method(cls, method):
                    continue
                node.user_properties.extend(properties)
            collected.append(node)
        return collected

    def _register_module(self, module: ModuleType):
        '''
        Make the isolated copy of the module supply this suite's module-level
        fixtures and `setup_module`/`teardown_module`, in place of the host's.

        Registered at this node, they are more specific than the host
        module's fixtures of the same names, autouse ones included, and so
        override them for this suite only.
        '''
        self.session._fixturemanager.parsefactories(holder=module, node=self)

        setup = _xunit_function(module, ('setUpModule', 'setup_module'))
        teardown = _xunit_function(module, ('tearDownModule', 'teardown_module'))
        if setup is None and teardown is None:
            return

        def isolated_setup_module() -> Generator[None, None, None]:
            if setup is not None:
                _call_with_module(setup, module)
            yield
            if teardown is not None:
                _call_with_module(teardown, module)

        # Same name as the host module's own xunit fixture, which it replaces.
        pytest.register_fixture(name=f'_xunit_setup_module_fixture_{module.__name__}',
                                func=isolated_setup_module,
                                node=self,
                                scope='class',
                                autouse=True)


def _xunit_function(module: ModuleType, names: Iterable[str]) -> Callable[..., Any]|None:
    '''
    The first of the named plain functions the module defines. Functions
    decorated as fixtures are not plain functions.
    '''
    for name in names:
        func = getattr(module, name, None)
        if isfunction(func):
            return func
    return None


def _call_with_module(func: Callable[..., Any], module: ModuleType):
    if func.__code__.co_argcount:
        func(module)
    else:
        func()


def _explicitly_selected(node: pytest.Collector) -> bool:
    '''
    True if a command-line argument names this node, as in `path::Name`.
    '''
    invocation_dir = node.config.invocation_params.dir
    for arg in node.config.args:
        path, sep, rest = arg.partition('::')
        if not sep:
            continue
        if (invocation_dir / path).resolve() != Path(node.path).resolve():
            continue
        if rest.split('::')[0] == node.name:
            return True
    return False


class PytestSuiteBuilder:
    '''
    Builds one `IsolatedClass` node per call.
    '''
    def build_from(self,
                   parent: pytest.Collector,
                   type_info: TypeInfo,
                   pre_filter: PreFilter,
                   fixture_data: FixtureDescriptor,
                   ) -> list[pytest.Collector]:
        '''
        Build the suite for `type_info` under `parent`.

        PARAMETERS
        ----------
        parent: pytest.Collector
            The collector the suite belongs to.
        type_info: TypeInfo
            The class to build from.
        pre_filter: PreFilter
            Selects the class and its test methods.
        fixture_data: FixtureDescriptor
            The fixture's name, run state, categories and other metadata.

        RETURNS
        -------
        list[pytest.Collector]
            The suite node, or nothing if the pre-filter rejects the class.
        '''
        cls = type_info.type
        if not pre_filter.match_type(cls):
            return []
        name = fixture_data.display_name(type_info.name)
        node = IsolatedClass.from_parent(parent,
                                         name=name,
                                         type_info=type_info,
                                         descriptor=fixture_data,
                                         pre_filter=pre_filter)
        # Pick up the class's own marks before adding ours.
        node.obj
        self._apply(node, fixture_data)
        trace('BUILD', f'built {node.nodeid} from {type_info!r}')
        return [node]

    def _apply(self, node: IsolatedClass, fixture_data: FixtureDescriptor):
        node.add_marker(pytest.mark.isolated)
        match fixture_data.run_state:
            case RunState.IGNORED:
                node.add_marker(pytest.mark.skip(reason=fixture_data.skip_reason or 'ignored'))
            case RunState.EXPLICIT if not _explicitly_selected(node):
                node.add_marker(pytest.mark.skip(reason='explicit fixture: select it by node id to run'))
        categories = fixture_data.categories
        if categories:
            node.add_marker(pytest.mark.category(*categories))
            node.extra_keyword_matches.update(categories)


def build_all(builders: Iterable[Any],
              parent: pytest.Collector,
              type_info: TypeInfo,
              pre_filter: Optional[PreFilter]=None,
              ) -> list[pytest.Collector]:
    '''
    The concatenated suites of several fixture builders for one class.
    '''
    nodes: list[pytest.Collector] = []
    for builder in builders:
        nodes.extend(builder.build_from(parent, type_info, pre_filter))
    return nodes
