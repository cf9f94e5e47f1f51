'''
Configuration read from the `pytest` ini file.

- `isolated_paths`: extra dependency roots, relative to the ini file.
- `isolated_shared`: modules to share with the host, one per line.
'''

from pathlib import Path
from typing import Any, NamedTuple

import pytest

from isolated_fixture.types import ModuleName

INI_PATHS = 'isolated_paths'
INI_SHARED = 'isolated_shared'


def add_ini_options(parser: pytest.Parser):
    parser.addini(INI_PATHS,
                  'Extra directories whose modules are isolated along with isolated fixtures.',
                  type='paths',
                  default=[])
    parser.addini(INI_SHARED,
                  'Modules never isolated: isolated fixtures share the host copy.',
                  type='linelist',
                  default=[])


class IsolationSettings(NamedTuple):
    paths: tuple[Path, ...] = ()
    shared: tuple[ModuleName, ...] = ()

    @classmethod
    def from_config(cls, config: Any) -> 'IsolationSettings':
        '''
        Read the settings from a `pytest.Config`. Gives the defaults if the
        options were never registered.
        '''
        try:
            paths = config.getini(INI_PATHS)
            shared = config.getini(INI_SHARED)
        except ValueError:
            return cls()
        return cls(
            paths=tuple(Path(p) for p in paths),
            shared=tuple(shared),
        )
