"""
Built-in fixtures.

Opt-in fixtures most suites end up writing themselves:

- case_id: unique identifier of the running test case
- tmp_dir: fresh temporary directory, removed when the case ends
- shared_context: mutable scratch space shared by the steps of one case
"""

import itertools
import shutil
import tempfile
import uuid
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

from rigging.fixtures.models import FixtureDefinition, FixtureScope
from rigging.fixtures.registry import FixtureRegistry

BUILTIN_CASE_ID = "case_id"
BUILTIN_TMP_DIR = "tmp_dir"
BUILTIN_SHARED_CONTEXT = "shared_context"


class SharedContext(dict[str, Any]):
    """Mutable state shared between the steps of a single test case.

    Every fixture and step that receives the shared_context sees the same
    object, so a value stored by one step (a start time, an API payload, the
    page opened in a new tab) is visible to the next. Nothing is synchronized.
    """

    def __getattr__(self, key: str) -> Any:
        try:
            return self[key]
        except KeyError:
            raise AttributeError(key) from None

    def __setattr__(self, key: str, value: Any) -> None:
        self[key] = value


def _make_case_id() -> Callable[[], Iterator[str]]:
    counter = itertools.count(1)

    def case_id() -> Iterator[str]:
        """Unique identifier of the running test case."""
        # Format: case-<counter>-<short_uuid>
        short_uuid = str(uuid.uuid4())[:8]
        yield f"case-{next(counter):04d}-{short_uuid}"

    return case_id


def tmp_dir() -> Iterator[Path]:
    """Temporary directory removed when the case ends."""
    path = Path(tempfile.mkdtemp(prefix="rigging_case_"))
    try:
        yield path
    finally:
        if path.exists():
            shutil.rmtree(path)


def shared_context() -> Iterator[SharedContext]:
    """Mutable state shared by the steps of one case."""
    yield SharedContext()


def builtin_fixtures() -> list[FixtureDefinition]:
    """Create fresh built-in fixture declarations.

    Each call returns declarations with their own case counter.
    """
    return [
        FixtureDefinition(
            name=BUILTIN_CASE_ID,
            factory=_make_case_id(),
            scope=FixtureScope.CASE,
            description="Unique identifier of the running test case",
        ),
        FixtureDefinition(
            name=BUILTIN_TMP_DIR,
            factory=tmp_dir,
            scope=FixtureScope.CASE,
            description="Temporary directory removed when the case ends",
        ),
        FixtureDefinition(
            name=BUILTIN_SHARED_CONTEXT,
            factory=shared_context,
            scope=FixtureScope.CASE,
            description="Mutable state shared by the steps of one case",
        ),
    ]


def register_builtins(registry: FixtureRegistry) -> None:
    """Register every built-in fixture in the registry.

    Raises:
        DuplicateFixtureError: If the registry already defines one of the names.
    """
    for definition in builtin_fixtures():
        registry.register(definition)
