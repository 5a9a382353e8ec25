"""
Exception hierarchy for the fixture engine.

Configuration errors are detectable from declarations alone and are raised
before any fixture is constructed. Runtime errors carry the fixture name and
the phase (setup or teardown) they occurred in.
"""

from collections.abc import Sequence


class FixtureError(Exception):
    """Base class for every error raised by the fixture engine."""


# =============================================================================
# Configuration Errors
# =============================================================================


class FixtureConfigurationError(FixtureError):
    """Raised when fixture declarations are inconsistent.

    When raised by the startup validation pass, `problems` lists every issue
    found rather than only the first one.
    """

    def __init__(self, message: str, problems: Sequence[str] = ()) -> None:
        self.problems = list(problems)
        if self.problems:
            message = message + ":\n" + "\n".join(f"  - {p}" for p in self.problems)
        super().__init__(message)


class DuplicateFixtureError(FixtureConfigurationError, ValueError):
    """Raised when attempting to register a fixture with an existing name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Fixture '{name}' is already registered")


class RegistryFrozenError(FixtureConfigurationError):
    """Raised when mutating a registry after the engine has started."""

    def __init__(self, name: str | None = None) -> None:
        self.name = name
        if name is None:
            super().__init__("Fixture registry is frozen")
        else:
            super().__init__(f"Cannot register fixture '{name}': registry is frozen")


class FixtureNotFoundError(FixtureConfigurationError, KeyError):
    """Raised when a requested fixture or dependency does not exist."""

    def __init__(self, name: str, required_by: str | None = None) -> None:
        self.name = name
        self.required_by = required_by
        if required_by is None:
            super().__init__(f"Fixture '{name}' not found in registry")
        else:
            super().__init__(
                f"Fixture '{name}' not found in registry (required by '{required_by}')"
            )

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])


class CyclicDependencyError(FixtureConfigurationError, ValueError):
    """Raised when circular dependencies are detected in fixtures."""

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = cycle
        cycle_str = " -> ".join(cycle)
        super().__init__(f"Circular dependency detected: {cycle_str}")


class ScopeMismatchError(FixtureConfigurationError):
    """Raised when a run-scoped fixture depends on a case-scoped one."""

    def __init__(self, name: str, dependency: str) -> None:
        self.name = name
        self.dependency = dependency
        super().__init__(
            f"Run-scoped fixture '{name}' cannot depend on case-scoped fixture '{dependency}'"
        )


# =============================================================================
# Runtime Errors
# =============================================================================


class InvalidFixtureProtocolError(FixtureError):
    """Raised when a factory does not yield exactly once."""

    def __init__(self, name: str, phase: str, detail: str) -> None:
        self.name = name
        self.phase = phase
        super().__init__(f"Fixture '{name}' broke the yield protocol during {phase}: {detail}")


class ConstructionFailedError(FixtureError):
    """Raised when a factory raises before yielding its value.

    The original exception is chained as `__cause__`.
    """

    phase = "setup"

    def __init__(self, name: str, cause: BaseException) -> None:
        self.name = name
        self.cause = cause
        super().__init__(
            f"Fixture '{name}' failed during setup: {type(cause).__name__}: {cause}"
        )


class TeardownFailedError(FixtureError):
    """Raised after a teardown walk in which one or more cleanups raised.

    Every fixture was still resumed; `errors` holds (fixture name, exception)
    pairs in the order they occurred.
    """

    phase = "teardown"

    def __init__(self, errors: Sequence[tuple[str, BaseException]]) -> None:
        self.errors = list(errors)
        details = "; ".join(f"'{name}': {type(exc).__name__}: {exc}" for name, exc in self.errors)
        noun = "fixture" if len(self.errors) == 1 else "fixtures"
        super().__init__(f"Teardown failed for {len(self.errors)} {noun}: {details}")

    @property
    def names(self) -> list[str]:
        """Names of the fixtures whose cleanup raised."""
        return [name for name, _ in self.errors]


class DuplicateConstructionError(FixtureError):
    """Raised when an instance is recorded twice for the same scope.

    This indicates a bug in the engine, not in fixture declarations.
    """

    def __init__(self, scope: str, name: str) -> None:
        self.scope = scope
        self.name = name
        super().__init__(f"Fixture '{name}' was already constructed in scope '{scope}'")
