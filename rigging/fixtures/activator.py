"""
Auto fixture activation.

Fixtures declared with `auto=True` (a console-error collector, a trace
recorder) are constructed for every test case even though nothing names them.
"""

from collections.abc import Iterable

from rigging.fixtures.registry import FixtureRegistry


class AutoFixtureActivator:
    """Unions auto fixtures into the names a test case requests.

    The registry is scanned once, when the activator is created, so activation
    does not depend on how a test happens to reference its fixtures. Create it
    after the registry is frozen.
    """

    def __init__(self, registry: FixtureRegistry) -> None:
        self._auto = tuple(registry.auto_fixtures())

    @property
    def auto_names(self) -> tuple[str, ...]:
        """Auto fixture names, in registration order."""
        return self._auto

    def expand(self, requested: Iterable[str]) -> list[str]:
        """Return auto fixtures followed by the requested names, without duplicates."""
        return list(dict.fromkeys([*self._auto, *requested]))
