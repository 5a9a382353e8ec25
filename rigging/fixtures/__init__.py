"""
Rigging Fixture Engine.

Dependency injection and lifecycle management for test fixtures.
"""

from rigging.fixtures.activator import AutoFixtureActivator
from rigging.fixtures.builtins import SharedContext, builtin_fixtures, register_builtins
from rigging.fixtures.errors import (
    ConstructionFailedError,
    CyclicDependencyError,
    DuplicateConstructionError,
    DuplicateFixtureError,
    FixtureConfigurationError,
    FixtureError,
    FixtureNotFoundError,
    InvalidFixtureProtocolError,
    RegistryFrozenError,
    ScopeMismatchError,
    TeardownFailedError,
)
from rigging.fixtures.lifecycle import FixtureDriver, FixtureLifecycle
from rigging.fixtures.models import (
    CaseOutcome,
    CaseStatus,
    FixtureDefinition,
    FixtureScope,
    FixtureState,
    ResolvedInstance,
)
from rigging.fixtures.registry import FixtureRegistry, declare
from rigging.fixtures.resolver import FixtureResolver
from rigging.fixtures.store import ScopeStore

__all__ = [
    # Declaration model
    "FixtureDefinition",
    "FixtureScope",
    "FixtureState",
    "ResolvedInstance",
    "CaseOutcome",
    "CaseStatus",
    # Components
    "AutoFixtureActivator",
    "FixtureDriver",
    "FixtureLifecycle",
    "FixtureRegistry",
    "FixtureResolver",
    "ScopeStore",
    "declare",
    # Built-ins
    "SharedContext",
    "builtin_fixtures",
    "register_builtins",
    # Errors
    "ConstructionFailedError",
    "CyclicDependencyError",
    "DuplicateConstructionError",
    "DuplicateFixtureError",
    "FixtureConfigurationError",
    "FixtureError",
    "FixtureNotFoundError",
    "InvalidFixtureProtocolError",
    "RegistryFrozenError",
    "ScopeMismatchError",
    "TeardownFailedError",
]
