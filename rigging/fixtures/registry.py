"""
Fixture registry.

Holds every FixtureDefinition by name, in registration order. The registry is
built at process start and frozen once the lifecycle starts; from then on it
is read-only.
"""

import inspect
from collections.abc import Iterable, Iterator
from typing import Any

import yaml

from rigging.fixtures.errors import (
    DuplicateFixtureError,
    FixtureConfigurationError,
    FixtureNotFoundError,
    RegistryFrozenError,
)
from rigging.fixtures.models import FixtureDefinition, FixtureFactory, FixtureScope


class FixtureRegistry:
    """Central registry for managing FixtureDefinition instances.

    Provides a centralized mechanism for registering, looking up, and managing
    fixture definitions. Enforces uniqueness constraints to prevent duplicate
    registrations.

    Note: This registry does NOT implement dependency resolution or scope
    management. Those concerns are handled by FixtureResolver and ScopeStore.

    Example:
        >>> registry = FixtureRegistry()
        >>> @registry.fixture(scope=FixtureScope.RUN)
        ... def base_url():
        ...     yield "https://example.test"
        >>> registry.get("base_url").scope
        <FixtureScope.RUN: 'run'>
    """

    def __init__(self, definitions: Iterable[FixtureDefinition] = ()) -> None:
        """Initialize a registry, optionally pre-populated."""
        self._fixtures: dict[str, FixtureDefinition] = {}
        self._frozen = False
        for definition in definitions:
            self.register(definition)

    def register(self, definition: FixtureDefinition) -> None:
        """Register a fixture definition in the registry.

        Args:
            definition: The FixtureDefinition to register.

        Raises:
            DuplicateFixtureError: If a fixture with the same name is already registered.
            RegistryFrozenError: If the registry has been frozen.
        """
        if self._frozen:
            raise RegistryFrozenError(definition.name)
        if definition.name in self._fixtures:
            raise DuplicateFixtureError(definition.name)
        self._fixtures[definition.name] = definition

    def fixture(
        self,
        func: FixtureFactory | None = None,
        *,
        name: str | None = None,
        scope: FixtureScope | str = FixtureScope.CASE,
        dependencies: Iterable[str] | None = None,
        auto: bool = False,
        description: str | None = None,
    ) -> Any:
        """Decorator registering a generator function as a fixture.

        Dependencies default to the function's parameter names, so

            @registry.fixture
            def about_page_steps(about_page, assertion_helper):
                yield AboutPageSteps(about_page, assertion_helper)

        depends on `about_page` and `assertion_helper`. The decorated function
        is returned unchanged.
        """

        def decorator(f: FixtureFactory) -> FixtureFactory:
            self.register(
                declare(
                    f,
                    name=name,
                    scope=scope,
                    dependencies=dependencies,
                    auto=auto,
                    description=description,
                )
            )
            return f

        if func is not None:
            return decorator(func)
        return decorator

    def extend(
        self, *definitions: FixtureDefinition, override: bool = False
    ) -> "FixtureRegistry":
        """Create a new registry layered on this one.

        The new registry contains every definition of this one plus the given
        ones. Replacing an inherited fixture requires `override=True`; the
        original registry is left untouched.

        Raises:
            DuplicateFixtureError: If a name is already present and override is False.
        """
        extended = FixtureRegistry(self._fixtures.values())
        for definition in definitions:
            if definition.name in extended._fixtures and override:
                extended._fixtures[definition.name] = definition
            else:
                extended.register(definition)
        return extended

    def get(self, name: str) -> FixtureDefinition:
        """Retrieve a fixture definition by name.

        Raises:
            FixtureNotFoundError: If no fixture with the given name exists.
        """
        if name not in self._fixtures:
            raise FixtureNotFoundError(name)
        return self._fixtures[name]

    def has(self, name: str) -> bool:
        """Check if a fixture is registered."""
        return name in self._fixtures

    def list_all(self) -> list[FixtureDefinition]:
        """List all registered fixture definitions.

        Returns:
            A copy of the list of all registered FixtureDefinitions, in
            registration order. Modifications do not affect registry state.
        """
        return list(self._fixtures.values())

    def auto_fixtures(self) -> list[str]:
        """Names of fixtures flagged auto, in registration order."""
        return [d.name for d in self._fixtures.values() if d.auto]

    def validate(self) -> list[str]:
        """Run the static validation pass over every declaration.

        Returns:
            List of problems (missing dependencies, cycles, scope mismatches).
            Empty list if the registry is consistent.
        """
        from rigging.fixtures.resolver import FixtureResolver

        return FixtureResolver().validate_dependencies(self)

    def freeze(self) -> None:
        """Make the registry immutable. Freezing twice is harmless."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        """Whether the registry refuses further changes."""
        return self._frozen

    def clear(self) -> None:
        """Remove all registered fixtures from the registry.

        Raises:
            RegistryFrozenError: If the registry has been frozen.
        """
        if self._frozen:
            raise RegistryFrozenError()
        self._fixtures.clear()

    def to_yaml(self) -> str:
        """Serialize every declaration (without factories) to YAML."""
        data = []
        for definition in self._fixtures.values():
            entry = definition.model_dump(mode="json")
            entry["is_async"] = definition.is_async
            data.append(entry)
        result: str = yaml.dump(
            {"fixtures": data},
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )
        return result

    def __len__(self) -> int:
        """Return the number of registered fixtures."""
        return len(self._fixtures)

    def __contains__(self, name: object) -> bool:
        """Support 'in' operator for checking fixture existence."""
        return name in self._fixtures

    def __iter__(self) -> Iterator[str]:
        """Iterate over fixture names."""
        return iter(self._fixtures)

    def __repr__(self) -> str:
        """Return a string representation of the registry."""
        state = ", frozen" if self._frozen else ""
        return f"FixtureRegistry({len(self._fixtures)} fixtures{state})"


def declare(
    func: FixtureFactory,
    *,
    name: str | None = None,
    scope: FixtureScope | str = FixtureScope.CASE,
    dependencies: Iterable[str] | None = None,
    auto: bool = False,
    description: str | None = None,
) -> FixtureDefinition:
    """Build a FixtureDefinition from a generator function without registering it.

    Dependencies default to the names of the function's parameters and the
    description to the first line of its docstring.

    Raises:
        FixtureConfigurationError: If the function has positional-only
            parameters, since dependency values are passed by keyword.
    """
    parameters = inspect.signature(func).parameters.values()
    positional_only = [p.name for p in parameters if p.kind == p.POSITIONAL_ONLY]
    if positional_only:
        raise FixtureConfigurationError(
            f"Fixture '{name or func.__name__}' has positional-only parameters "
            f"({', '.join(positional_only)}); dependencies are passed by keyword"
        )

    if dependencies is None:
        deps = [p.name for p in parameters if p.kind in (p.POSITIONAL_OR_KEYWORD, p.KEYWORD_ONLY)]
    else:
        deps = list(dependencies)
    if description is None:
        description = (inspect.getdoc(func) or "").split("\n")[0]
    return FixtureDefinition(
        name=name or func.__name__,
        factory=func,
        scope=FixtureScope(scope),
        dependencies=deps,
        auto=auto,
        description=description,
    )
