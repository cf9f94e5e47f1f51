"""
Isolated test fixtures for `pytest`.

A test class marked with `@isolated_fixture` is collected from a fresh copy
of its module, and of the modules it imports from its own project, loaded
into a private isolation context. Module-level state set up or mutated by
one fixture is never seen by another. The test framework itself is shared,
so outcomes, marks and fixtures work as usual.

See `isolated_fixture.marker` for usage.
"""

from isolated_fixture.types import (
    RunState,
    PreFilter,
    TypeInfo,
    IsolationException,
    UnitNotFoundError,
    IsolatedTypeNotFoundError,
    HomeUnitNotFoundError,
    ManifestError,
)
from isolated_fixture.aliasing import (
    AliasRule,
    NameAliasRule,
    AnyAliasRule,
    FRAMEWORK_UNITS,
    framework_rule,
)
from isolated_fixture.resolver import (
    DependencyManifest,
    DependencyResolver,
)
from isolated_fixture.context import (
    IsolationContext,
    new_context,
    current_context,
)
from isolated_fixture.handle import (
    TypeWrapper,
    IsolatedTypeHandle,
    isolate,
)
from isolated_fixture.descriptor import (
    FixtureDescriptor,
    PropertyBag,
    PropertyNames,
)
from isolated_fixture.marker import (
    IsolatedFixture,
    isolated_fixture,
    fixture_builders,
    EmptyFilter,
    MethodNameFilter,
)

__all__ = (
    "RunState",
    "PreFilter",
    "TypeInfo",
    "IsolationException",
    "UnitNotFoundError",
    "IsolatedTypeNotFoundError",
    "HomeUnitNotFoundError",
    "ManifestError",
    "AliasRule",
    "NameAliasRule",
    "AnyAliasRule",
    "FRAMEWORK_UNITS",
    "framework_rule",
    "DependencyManifest",
    "DependencyResolver",
    "IsolationContext",
    "new_context",
    "current_context",
    "TypeWrapper",
    "IsolatedTypeHandle",
    "isolate",
    "FixtureDescriptor",
    "PropertyBag",
    "PropertyNames",
    "IsolatedFixture",
    "isolated_fixture",
    "fixture_builders",
    "EmptyFilter",
    "MethodNameFilter",
)
