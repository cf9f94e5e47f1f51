'''
Diagnostic tracing, enabled per kind by environment variables:

- `ISOLATED_TRACE_LOAD`: context creation, module loads, and host fallbacks.
- `ISOLATED_TRACE_RESOLVE`: dependency resolver decisions.
- `ISOLATED_TRACE_BUILD`: fixture suite builds.

Messages go to `sys.stderr`.
'''
import os
import sys

from isolated_fixture.types import TraceKind


def tracing(kind: TraceKind) -> bool:
    '''
    True if tracing of the given kind is enabled.
    '''
    return bool(os.environ.get(f'ISOLATED_TRACE_{kind}'))

def trace(kind: TraceKind, message: str):
    if tracing(kind):
        print(f'[isolated:{kind.lower()}] {message}', file=sys.stderr)
