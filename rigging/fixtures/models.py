"""
Data models for the fixture engine.

This module provides the static declaration model (FixtureDefinition), the
per-scope runtime record (ResolvedInstance), and the result of running one
test case against the engine (CaseOutcome).
"""

import inspect
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import BaseModel, Field, field_validator

if TYPE_CHECKING:
    from rigging.fixtures.errors import TeardownFailedError


class FixtureScope(str, Enum):
    """Fixture lifetime scopes defining when fixtures are created/destroyed.

    - CASE: Created fresh for each test case, destroyed after it completes
    - RUN: Created once per process, shared across every test case
    """

    CASE = "case"
    RUN = "run"


class FixtureState(str, Enum):
    """Lifecycle state of one fixture within one scope instance.

    UNREQUESTED -> RESOLVING -> CONSTRUCTED -> TORN_DOWN, with the error path
    RESOLVING -> FAILED. FAILED and TORN_DOWN are terminal.
    """

    UNREQUESTED = "unrequested"
    RESOLVING = "resolving"
    CONSTRUCTED = "constructed"
    TORN_DOWN = "torn_down"
    FAILED = "failed"


FixtureFactory = Callable[..., Any]


class FixtureDefinition(BaseModel):
    """Pydantic model representing a fixture declaration.

    The factory is a generator (or async generator) function. It receives the
    values of its dependencies as keyword arguments, yields the fixture value
    exactly once, and runs its cleanup code when resumed at teardown.

    Example:
        >>> def db_session(db_engine):
        ...     session = db_engine.connect()
        ...     yield session
        ...     session.close()
        >>> fixture = FixtureDefinition(
        ...     name="db_session",
        ...     scope=FixtureScope.CASE,
        ...     dependencies=["db_engine"],
        ...     factory=db_session,
        ... )
    """

    model_config = {"frozen": True, "extra": "forbid"}

    name: str = Field(
        ...,
        description="Unique name identifying this fixture",
        min_length=1,
    )
    factory: FixtureFactory = Field(
        ...,
        description="Generator function that yields the fixture value once",
        exclude=True,
    )
    scope: FixtureScope = Field(
        default=FixtureScope.CASE,
        description="Fixture lifetime scope (case or run)",
    )
    description: str = Field(
        default="",
        description="Human-readable description of the fixture's purpose",
    )
    dependencies: list[str] = Field(
        default_factory=list,
        description="Names of other fixtures this fixture depends on",
    )
    auto: bool = Field(
        default=False,
        description="Construct for every test case even when nothing requests it",
    )

    @field_validator("name")
    @classmethod
    def name_is_valid(cls, v: str) -> str:
        """Validate that name is not empty or whitespace-only."""
        if not v.strip():
            raise ValueError("Fixture name must not be empty or whitespace-only")
        return v

    @field_validator("dependencies")
    @classmethod
    def dependencies_no_empty(cls, v: list[str]) -> list[str]:
        """Validate dependency names and collapse duplicates, keeping first order."""
        for dep in v:
            if not dep.strip():
                raise ValueError("Dependency names must not be empty")
        return list(dict.fromkeys(v))

    @property
    def is_async(self) -> bool:
        """Whether the factory is an async generator function."""
        return inspect.isasyncgenfunction(self.factory)

    @classmethod
    def constant(
        cls,
        name: str,
        value: Any,
        scope: FixtureScope = FixtureScope.RUN,
        description: str = "",
    ) -> "FixtureDefinition":
        """Declare a fixture that hands out a value supplied by the environment.

        Used for collaborators the surrounding runner already owns (a browser
        page, a base URL, an HTTP client). Nothing is released at teardown.
        """

        def provide() -> Any:
            yield value

        return cls(name=name, factory=provide, scope=scope, description=description)

    def to_yaml(self) -> str:
        """Serialize the declaration (without its factory) to YAML."""
        data = self.model_dump(mode="json")
        data["is_async"] = self.is_async
        result: str = yaml.dump(
            data,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )
        return result


@dataclass
class ResolvedInstance:
    """A fixture instance owned by the scope store.

    Dependents only ever receive `value`; `handle` is the driver that resumes
    the factory's cleanup code at teardown.
    """

    definition: FixtureDefinition
    value: Any = None
    state: FixtureState = FixtureState.RESOLVING
    handle: Any = field(default=None, repr=False)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def name(self) -> str:
        """Convenience accessor for the fixture name."""
        return self.definition.name

    @property
    def scope(self) -> FixtureScope:
        """Convenience accessor for the fixture scope."""
        return self.definition.scope

    @property
    def is_ready(self) -> bool:
        """Whether phase one completed and the value is safe to hand out."""
        return self.state == FixtureState.CONSTRUCTED


# =============================================================================
# Case Outcome
# =============================================================================


class CaseStatus(str, Enum):
    """Final status of one test case run through the engine."""

    PASSED = "passed"
    FAILED = "failed"
    ERROR = "error"


@dataclass
class CaseOutcome:
    """Result of running one test case with its fixtures.

    `error` is the primary failure (setup or body). Teardown problems are
    attached separately so they never mask the primary failure.
    """

    case_id: str
    status: CaseStatus
    requested: list[str] = field(default_factory=list)
    constructed: list[str] = field(default_factory=list)
    torn_down: list[str] = field(default_factory=list)
    error: BaseException | None = None
    teardown_error: "TeardownFailedError | None" = None
    duration_ms: int = 0

    @property
    def passed(self) -> bool:
        """Check if the case passed with a clean teardown."""
        return self.status == CaseStatus.PASSED

    def raise_for_status(self) -> None:
        """Re-raise the primary failure, or the teardown failure if it is the only one."""
        if self.error is not None:
            raise self.error
        if self.teardown_error is not None:
            raise self.teardown_error

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "case_id": self.case_id,
            "status": self.status.value,
            "passed": self.passed,
            "requested": list(self.requested),
            "constructed": list(self.constructed),
            "torn_down": list(self.torn_down),
            "error": str(self.error) if self.error is not None else None,
            "teardown_error": (
                str(self.teardown_error) if self.teardown_error is not None else None
            ),
            "duration_ms": self.duration_ms,
        }
