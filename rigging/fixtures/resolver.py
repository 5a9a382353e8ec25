"""
Fixture dependency resolution.

Computes a topologically valid construction order over a fixture's
transitive dependencies, detecting missing fixtures, cycles, and scope
mismatches before anything is constructed.
"""

from collections.abc import Iterable

from rigging.fixtures.errors import (
    CyclicDependencyError,
    FixtureNotFoundError,
    ScopeMismatchError,
)
from rigging.fixtures.models import FixtureScope
from rigging.fixtures.registry import FixtureRegistry


class FixtureResolver:
    """Resolves fixture dependencies and validates dependency graphs.

    Performs topological sorting to determine the correct fixture construction
    order and validates that all fixture dependencies exist, are free of
    circular references, and never make a run-scoped fixture depend on a
    case-scoped one.

    Note: This resolver does NOT implement scope management or value caching.
    Those concerns are handled by ScopeStore and FixtureLifecycle.

    Example:
        >>> resolver = FixtureResolver()
        >>> resolver.resolve("session", registry)
        ['db', 'session']
    """

    def resolve(self, name: str, registry: FixtureRegistry) -> list[str]:
        """Resolve a fixture's complete dependency chain in topological order.

        Performs depth-first search to build a topologically sorted list of
        fixture names, where dependencies appear before dependents.

        Args:
            name: The name of the fixture to resolve.
            registry: The fixture registry to look up definitions.

        Returns:
            List of fixture names in topologically sorted order (dependencies first).
            The requested fixture name appears last.

        Raises:
            FixtureNotFoundError: If the fixture or any dependency doesn't exist.
            CyclicDependencyError: If circular dependencies are detected.
            ScopeMismatchError: If a run-scoped fixture depends on a case-scoped one.
        """
        return self.resolve_many([name], registry)

    def resolve_many(self, names: Iterable[str], registry: FixtureRegistry) -> list[str]:
        """Resolve several fixtures into one merged construction order.

        Each name appears once; every name appears after all of its
        dependencies. Roots are visited in the order given, so a root that is
        also a dependency of an earlier root is not moved.

        Raises:
            FixtureNotFoundError: If any fixture or dependency doesn't exist.
            CyclicDependencyError: If circular dependencies are detected.
            ScopeMismatchError: If a run-scoped fixture depends on a case-scoped one.
        """
        result: list[str] = []
        visiting: set[str] = set()  # Currently in recursion stack (for cycle detection)
        visited: set[str] = set()  # Completely processed

        for name in names:
            if not registry.has(name):
                raise FixtureNotFoundError(name)
            self._resolve_recursive(name, registry, result, visiting, visited, [name])
        return result

    def _resolve_recursive(
        self,
        name: str,
        registry: FixtureRegistry,
        result: list[str],
        visiting: set[str],
        visited: set[str],
        path: list[str],
    ) -> None:
        """Recursively resolve dependencies using DFS.

        Args:
            name: Current fixture name being resolved.
            registry: The fixture registry.
            result: Accumulator for the topologically sorted result.
            visiting: Set of fixtures currently in the recursion stack.
            visited: Set of fixtures completely processed.
            path: Current path ending with `name`, for cycle error messages.
        """
        if name in visited:
            return

        if name in visiting:
            # path ends with the repeated name, so the slice is the closed cycle
            cycle_start = path.index(name)
            raise CyclicDependencyError(path[cycle_start:])

        visiting.add(name)

        definition = registry.get(name)
        for dep in definition.dependencies:
            if not registry.has(dep):
                raise FixtureNotFoundError(dep, required_by=name)
            if (
                definition.scope == FixtureScope.RUN
                and registry.get(dep).scope == FixtureScope.CASE
            ):
                raise ScopeMismatchError(name, dep)
            self._resolve_recursive(dep, registry, result, visiting, visited, path + [dep])

        visiting.remove(name)
        visited.add(name)
        result.append(name)

    def validate_dependencies(self, registry: FixtureRegistry) -> list[str]:
        """Validate that all fixtures in a registry have valid dependencies.

        Checks all fixtures for missing dependencies, scope mismatches and
        circular references. Collects all validation errors rather than
        stopping at the first one.

        Args:
            registry: The fixture registry to validate.

        Returns:
            List of validation error messages. Empty list if all valid.
        """
        errors: list[str] = []

        for fixture_name in registry:
            definition = registry.get(fixture_name)
            for dep in definition.dependencies:
                if not registry.has(dep):
                    errors.append(
                        f"Fixture '{fixture_name}' depends on non-existent fixture '{dep}'"
                    )
                elif (
                    definition.scope == FixtureScope.RUN
                    and registry.get(dep).scope == FixtureScope.CASE
                ):
                    errors.append(str(ScopeMismatchError(fixture_name, dep)))

        # Cycle detection walks the graph, so only run it on a complete one
        if not errors:
            reported: set[frozenset[str]] = set()
            for fixture_name in registry:
                try:
                    self.resolve(fixture_name, registry)
                except CyclicDependencyError as e:
                    members = frozenset(e.cycle)
                    if members not in reported:  # Same cycle seen from another entry point
                        reported.add(members)
                        errors.append(f"Circular dependency: {' -> '.join(e.cycle)}")

        return errors
