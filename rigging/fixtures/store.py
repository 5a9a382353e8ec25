"""
Per-scope cache of constructed fixture instances.

The store keeps one mapping per scope plus the order instances were recorded
in, so teardown can replay that order in reverse.
"""

from rigging.fixtures.errors import DuplicateConstructionError, FixtureError
from rigging.fixtures.models import FixtureScope, ResolvedInstance


class ScopeStore:
    """Holds ResolvedInstance records for the run and case scopes.

    The case mapping is replaced with an empty one between test cases by
    `drain_case()`. The run mapping lives for the whole process and is only
    drained once, at shutdown.

    Example:
        >>> store = ScopeStore()
        >>> store.record(FixtureScope.CASE, "page", instance)
        >>> store.get(FixtureScope.CASE, "page") is instance
        True
        >>> [i.name for i in store.drain_case()]
        ['page']
    """

    def __init__(self) -> None:
        """Initialize an empty store."""
        # Scope -> (name -> ResolvedInstance)
        self._instances: dict[FixtureScope, dict[str, ResolvedInstance]] = {
            FixtureScope.CASE: {},
            FixtureScope.RUN: {},
        }
        # Scope -> names in the order they were recorded
        self._order: dict[FixtureScope, list[str]] = {
            FixtureScope.CASE: [],
            FixtureScope.RUN: [],
        }
        # Run-scoped fixtures that failed before yielding; they stay failed for the process
        self._failures: dict[str, FixtureError] = {}

    def get(self, scope: FixtureScope, name: str) -> ResolvedInstance | None:
        """Return the instance recorded for (scope, name), or None if absent."""
        return self._instances[scope].get(name)

    def record(self, scope: FixtureScope, name: str, instance: ResolvedInstance) -> None:
        """Insert an instance and append it to the scope's construction order.

        Raises:
            DuplicateConstructionError: If (scope, name) already holds an instance.
        """
        if name in self._instances[scope]:
            raise DuplicateConstructionError(scope.value, name)
        self._instances[scope][name] = instance
        self._order[scope].append(name)

    def drain_case(self) -> list[ResolvedInstance]:
        """Take every case-scoped instance, in construction order.

        The case mapping is swapped for an empty one before returning, so the
        next test case cannot observe this one's instances.
        """
        return self._drain(FixtureScope.CASE)

    def drain_run(self) -> list[ResolvedInstance]:
        """Take every run-scoped instance, in construction order."""
        return self._drain(FixtureScope.RUN)

    def _drain(self, scope: FixtureScope) -> list[ResolvedInstance]:
        instances, order = self._instances[scope], self._order[scope]
        self._instances[scope] = {}
        self._order[scope] = []
        return [instances[name] for name in order]

    def record_failure(self, name: str, error: FixtureError) -> None:
        """Remember that a run-scoped fixture failed before yielding."""
        self._failures[name] = error

    def get_failure(self, name: str) -> FixtureError | None:
        """Return the recorded failure for a run-scoped fixture, re-raised on later requests."""
        return self._failures.get(name)

    def is_cached(self, name: str, scope: FixtureScope) -> bool:
        """Check if an instance is recorded for (scope, name)."""
        return name in self._instances[scope]

    def construction_order(self, scope: FixtureScope) -> list[str]:
        """Names recorded in the scope so far, oldest first (a copy)."""
        return list(self._order[scope])

    def __repr__(self) -> str:
        """Return a string representation of the store."""
        counts = {scope.value: len(cache) for scope, cache in self._instances.items()}
        return f"ScopeStore(cached={counts})"
