'''
Rules for which modules an isolation context shares with the host.

A shared module is never loaded into a context. The context reports it as not
found, and the import falls back to the single copy already loaded in the
host. This keeps one identity for the test framework's own types
(`pytest.skip.Exception`, `pytest.fail.Exception`, marks, our own marker
classes) on both sides of the isolation boundary. Without that, an outcome
raised inside an isolated test would not be recognized by the host's runner.
'''

from abc import abstractmethod
from typing import Protocol, runtime_checkable
from collections.abc import Iterable

from isolated_fixture.types import ModuleName

FRAMEWORK_UNITS: tuple[ModuleName, ...] = ('pytest', '_pytest', 'pluggy', 'isolated_fixture')
'''
The host framework's core packages, always shared.
'''


@runtime_checkable
class AliasRule(Protocol):
    '''
    Decides whether a module must be shared with the host.
    '''
    @abstractmethod
    def should_alias(self, name: ModuleName, /) -> bool: ...


class NameAliasRule:
    '''
    Shares modules by name. A package name covers its submodules, so
    `_pytest` also shares `_pytest.python`.
    '''
    __names: frozenset[ModuleName]
    @property
    def names(self) -> frozenset[ModuleName]:
        return self.__names

    def __init__(self, names: Iterable[ModuleName]):
        self.__names = frozenset(names)

    def should_alias(self, name: ModuleName, /) -> bool:
        if name in self.__names:
            return True
        prefix, *rest = name.split('.')
        while rest:
            if prefix in self.__names:
                return True
            prefix = f'{prefix}.{rest.pop(0)}'
        return False

    def __repr__(self) -> str:
        return f'{type(self).__name__}({sorted(self.__names)!r})'


class AnyAliasRule:
    '''
    Shares a module if any of its rules does.
    '''
    __rules: tuple[AliasRule, ...]
    @property
    def rules(self) -> tuple[AliasRule, ...]:
        return self.__rules

    def __init__(self, *rules: AliasRule):
        self.__rules = rules

    def should_alias(self, name: ModuleName, /) -> bool:
        return any(rule.should_alias(name) for rule in self.__rules)

    def __repr__(self) -> str:
        return f'{type(self).__name__}{self.__rules!r}'


def framework_rule(extra: Iterable[ModuleName]=()) -> AliasRule:
    '''
    The default rule: the framework's packages, plus any extra names.
    '''
    return NameAliasRule((*FRAMEWORK_UNITS, *extra))
