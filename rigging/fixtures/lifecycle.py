"""
Fixture lifecycle runner.

Drives fixture factories up to their single yield, hands the yielded values
to the test case, and resumes every constructed factory in reverse order when
the case (or, for run-scoped fixtures, the process) ends.

Factories are generator or async generator functions:

    @registry.fixture(scope="run")
    async def browser():
        browser = await launch()
        yield browser
        await browser.close()

Typical use from a test runner:

    async with FixtureLifecycle(registry) as engine:
        outcome = await engine.run_case(["home_page_steps"], scenario_body)
"""

import asyncio
import inspect
import time
from collections.abc import Callable, Iterable, Mapping
from types import MappingProxyType, TracebackType
from typing import Any

from rigging.config import RiggingSettings, get_settings
from rigging.fixtures.activator import AutoFixtureActivator
from rigging.fixtures.errors import (
    ConstructionFailedError,
    FixtureConfigurationError,
    FixtureError,
    InvalidFixtureProtocolError,
    TeardownFailedError,
)
from rigging.fixtures.models import (
    CaseOutcome,
    CaseStatus,
    FixtureDefinition,
    FixtureScope,
    FixtureState,
    ResolvedInstance,
)
from rigging.fixtures.registry import FixtureRegistry
from rigging.fixtures.resolver import FixtureResolver
from rigging.fixtures.store import ScopeStore
from rigging.logging import get_logger

log = get_logger(__name__)

# Plain or async callable receiving the fixture mapping
CaseBody = Callable[[Mapping[str, Any]], Any]


class FixtureDriver:
    """Steps one fixture factory through its single suspension point.

    `start()` runs the factory up to its yield and returns the yielded value.
    `finish()` resumes it after the yield so its cleanup code runs.
    """

    def __init__(self, definition: FixtureDefinition) -> None:
        self.definition = definition
        self._gen: Any = None
        self._agen: Any = None

    @property
    def name(self) -> str:
        return self.definition.name

    async def start(self, kwargs: dict[str, Any]) -> Any:
        """Run phase one and return the yielded value.

        Raises:
            ConstructionFailedError: If the factory raises before yielding.
            InvalidFixtureProtocolError: If the factory does not yield.
        """
        try:
            result = self.definition.factory(**kwargs)
        except Exception as e:
            raise ConstructionFailedError(self.name, e) from e

        if inspect.isasyncgen(result):
            self._agen = result
            try:
                return await result.__anext__()
            except StopAsyncIteration:
                self._agen = None
                raise InvalidFixtureProtocolError(
                    self.name, "setup", "factory finished without yielding a value"
                ) from None
            except Exception as e:
                self._agen = None
                raise ConstructionFailedError(self.name, e) from e

        if inspect.isgenerator(result):
            self._gen = result
            try:
                return next(result)
            except StopIteration:
                self._gen = None
                raise InvalidFixtureProtocolError(
                    self.name, "setup", "factory finished without yielding a value"
                ) from None
            except Exception as e:
                self._gen = None
                raise ConstructionFailedError(self.name, e) from e

        if inspect.iscoroutine(result):
            result.close()
        raise InvalidFixtureProtocolError(
            self.name,
            "setup",
            "factory must be a generator function that yields its value exactly once",
        )

    async def finish(self) -> None:
        """Run phase two: resume the factory after its yield.

        Exceptions raised by the cleanup code propagate unchanged.

        Raises:
            InvalidFixtureProtocolError: If the factory yields a second time.
        """
        if self._agen is not None:
            agen, self._agen = self._agen, None
            try:
                await agen.__anext__()
            except StopAsyncIteration:
                return
            await agen.aclose()
            raise InvalidFixtureProtocolError(
                self.name, "teardown", "factory yielded more than once"
            )

        if self._gen is not None:
            gen, self._gen = self._gen, None
            try:
                next(gen)
            except StopIteration:
                return
            gen.close()
            raise InvalidFixtureProtocolError(
                self.name, "teardown", "factory yielded more than once"
            )


class FixtureLifecycle:
    """Constructs fixtures for test cases and tears them down again.

    One instance serves one process (or worker). Call `init()` once before the
    first case (or use the instance as an async context manager), `setup()` /
    `teardown()` around every case (or `run_case()` for both), and
    `shutdown()` once at the end to release run-scoped fixtures.

    Cases run one at a time; the engine adds no locking of its own.
    """

    def __init__(
        self,
        registry: FixtureRegistry,
        settings: RiggingSettings | None = None,
        resolver: FixtureResolver | None = None,
        store: ScopeStore | None = None,
    ) -> None:
        self.registry = registry
        self.settings = settings or get_settings()
        self.resolver = resolver or FixtureResolver()
        self.store = store or ScopeStore()
        self._activator: AutoFixtureActivator | None = None
        self._states: dict[FixtureScope, dict[str, FixtureState]] = {
            FixtureScope.CASE: {},
            FixtureScope.RUN: {},
        }
        self._case_open = False
        self._case_constructed: list[str] = []
        self._case_counter = 0
        self._shut_down = False

    # -------------------------------------------------------------------------
    # Process lifecycle
    # -------------------------------------------------------------------------

    def init(self) -> None:
        """Freeze the registry and run the startup validation pass.

        Calling it again is a no-op.

        Raises:
            FixtureConfigurationError: Listing every problem in the registry.
        """
        if self._activator is not None:
            return
        self.registry.freeze()
        if self.settings.validate_on_init:
            problems = self.registry.validate()
            if problems:
                raise FixtureConfigurationError("Fixture registry is invalid", problems)
        self._activator = AutoFixtureActivator(self.registry)
        log.info(
            "fixture_engine_started",
            fixtures=len(self.registry),
            auto=list(self._activator.auto_names),
        )

    async def shutdown(self) -> list[str]:
        """Tear down run-scoped fixtures in reverse construction order.

        Runs once; later calls return an empty list. A case left open is torn
        down first, since its fixtures may depend on run-scoped ones.

        Returns:
            Names of the fixtures torn down, in teardown order.

        Raises:
            TeardownFailedError: If any cleanup raised. Every fixture is still resumed.
        """
        if self._shut_down:
            return []
        self._shut_down = True

        torn_down: list[str] = []
        errors: list[tuple[str, BaseException]] = []
        if self._case_open:
            torn_down, errors = await self._teardown_case()

        run_torn_down, run_errors = await self._unwind(self.store.drain_run())
        torn_down += run_torn_down
        errors += run_errors
        log.info("run_scope_shutdown", torn_down=run_torn_down, failed=len(run_errors))
        _raise_interrupts(errors)
        if errors:
            raise TeardownFailedError(errors)
        return torn_down

    async def __aenter__(self) -> "FixtureLifecycle":
        self.init()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        try:
            await self.shutdown()
        except TeardownFailedError as e:
            if exc_val is None:
                raise
            # The exception already in flight stays the primary one
            exc_val.add_note(str(e))

    # -------------------------------------------------------------------------
    # Per-case lifecycle
    # -------------------------------------------------------------------------

    async def setup(self, names: Iterable[str]) -> Mapping[str, Any]:
        """Construct the fixtures a test case needs.

        Auto fixtures are added to `names`. The whole construction order is
        resolved before any factory runs, so configuration errors leave
        nothing half-built. May be called more than once within a case;
        fixtures already present are reused.

        Returns:
            Read-only mapping of each requested and auto fixture name to its value.

        Raises:
            FixtureConfigurationError: Unknown fixture, cycle or scope mismatch.
            ConstructionFailedError: A factory raised before yielding.
            InvalidFixtureProtocolError: A factory did not yield.
        """
        activator = self._require_started()
        if self._shut_down:
            raise FixtureError("Fixture engine has been shut down")

        wanted = activator.expand(names)
        order = self.resolver.resolve_many(wanted, self.registry)

        if not self._case_open:
            self._case_open = True
            self._case_constructed = []
            self._states[FixtureScope.CASE] = {}

        values: dict[str, Any] = {}
        for name in order:
            values[name] = await self._provide(name, values)
        return MappingProxyType({name: values[name] for name in wanted})

    async def teardown(self) -> list[str]:
        """Tear down every case-scoped fixture of the current case.

        Cleanups run in the exact reverse of the order the fixtures were
        constructed in. A failing cleanup does not stop the others.

        Returns:
            Names of the fixtures torn down, in teardown order.

        Raises:
            TeardownFailedError: If any cleanup raised.
        """
        torn_down, errors = await self._teardown_case()
        _raise_interrupts(errors)
        if errors:
            raise TeardownFailedError(errors)
        return torn_down

    async def run_case(
        self,
        names: Iterable[str],
        body: CaseBody,
        *,
        case_id: str | None = None,
        timeout: float | None = None,
    ) -> CaseOutcome:
        """Run one test case end to end: setup, body, teardown.

        Teardown always runs. The body receives the fixture mapping and may be
        a plain or an async callable.

        Args:
            names: Fixtures the body needs.
            body: The test body.
            case_id: Identifier for logs and the outcome. Generated if omitted.
            timeout: Seconds for setup plus body. Defaults to the configured
                case_timeout.

        Returns:
            CaseOutcome. Setup errors give ERROR, body errors give FAILED, and a
            teardown error turns an otherwise passing case into FAILED. A
            teardown error never replaces an earlier error.

        Raises:
            FixtureError: If a case opened by `setup()` has not been torn down.
        """
        self._require_started()
        if self._case_open:
            raise FixtureError("A case is already open; call teardown() before run_case()")
        self._case_counter += 1
        case_id = case_id or f"case-{self._case_counter:04d}"
        requested = list(dict.fromkeys(names))
        if timeout is None:
            timeout = self.settings.case_timeout

        status = CaseStatus.PASSED
        error: BaseException | None = None
        interrupted: BaseException | None = None
        phase = "setup"
        started = time.perf_counter()
        log.info("case_started", case_id=case_id, requested=requested)

        timer = asyncio.timeout(timeout)
        try:
            async with timer:
                fixtures = await self.setup(requested)
                phase = "body"
                result = body(fixtures)
                if inspect.isawaitable(result):
                    await result
        except Exception as e:
            if isinstance(e, TimeoutError) and timer.expired():
                error = TimeoutError(f"Case '{case_id}' exceeded {timeout}s during {phase}")
                error.__cause__ = e
            else:
                error = e
            status = CaseStatus.ERROR if phase == "setup" else CaseStatus.FAILED
        except BaseException as e:
            interrupted = e
            raise
        finally:
            constructed = list(self._case_constructed)
            torn_down, teardown_errors = await self._teardown_case()
            if interrupted is not None and teardown_errors:
                # No outcome is returned, so the interrupt carries the teardown errors
                interrupted.add_note(str(TeardownFailedError(teardown_errors)))

        _raise_interrupts(teardown_errors)
        teardown_error = TeardownFailedError(teardown_errors) if teardown_errors else None
        if teardown_error is not None and status == CaseStatus.PASSED:
            status = CaseStatus.FAILED

        outcome = CaseOutcome(
            case_id=case_id,
            status=status,
            requested=requested,
            constructed=constructed,
            torn_down=torn_down,
            error=error,
            teardown_error=teardown_error,
            duration_ms=int((time.perf_counter() - started) * 1000),
        )
        log.info(
            "case_finished",
            case_id=case_id,
            status=status.value,
            phase=phase,
            error=str(error) if error is not None else None,
            teardown_errors=len(teardown_errors),
        )
        return outcome

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    def state_of(self, name: str, scope: FixtureScope | None = None) -> FixtureState:
        """Current lifecycle state of a fixture in the current scope instance."""
        if scope is None:
            scope = self.registry.get(name).scope
        return self._states[scope].get(name, FixtureState.UNREQUESTED)

    def __repr__(self) -> str:
        return (
            f"FixtureLifecycle(registry={self.registry!r}, store={self.store!r}, "
            f"shut_down={self._shut_down})"
        )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _require_started(self) -> AutoFixtureActivator:
        if self._activator is None:
            self.init()
        assert self._activator is not None
        return self._activator

    async def _provide(self, name: str, values: dict[str, Any]) -> Any:
        """Return the value for one fixture, constructing it if needed."""
        definition = self.registry.get(name)
        scope = definition.scope

        existing = self.store.get(scope, name)
        if existing is not None and existing.is_ready:
            log.debug("fixture_reused", fixture=name, scope=scope.value)
            return existing.value

        failure = self.store.get_failure(name) if scope == FixtureScope.RUN else None
        if failure is not None:
            raise failure

        # Dependencies precede `name` in the resolved order
        kwargs = {dep: values[dep] for dep in definition.dependencies}
        driver = FixtureDriver(definition)
        self._states[scope][name] = FixtureState.RESOLVING
        try:
            value = await driver.start(kwargs)
        except FixtureError as e:
            self._mark_failed(name, scope, e)
            log.warning(
                "fixture_construction_failed",
                fixture=name,
                scope=scope.value,
                error=str(e),
            )
            raise
        except BaseException as e:
            # Cancelled while suspended before the yield
            self._mark_failed(name, scope, ConstructionFailedError(name, e))
            raise

        self.store.record(
            scope,
            name,
            ResolvedInstance(
                definition=definition,
                value=value,
                state=FixtureState.CONSTRUCTED,
                handle=driver,
            ),
        )
        self._states[scope][name] = FixtureState.CONSTRUCTED
        self._case_constructed.append(name)
        log.debug("fixture_constructed", fixture=name, scope=scope.value)
        return value

    def _mark_failed(self, name: str, scope: FixtureScope, error: FixtureError) -> None:
        """Move a fixture to FAILED; a run-scoped failure holds for the rest of the process."""
        self._states[scope][name] = FixtureState.FAILED
        if scope == FixtureScope.RUN:
            self.store.record_failure(name, error)

    async def _teardown_case(self) -> tuple[list[str], list[tuple[str, BaseException]]]:
        instances = self.store.drain_case()
        self._case_open = False
        self._case_constructed = []
        return await self._unwind(instances)

    async def _unwind(
        self, instances: list[ResolvedInstance]
    ) -> tuple[list[str], list[tuple[str, BaseException]]]:
        """Resume each instance's cleanup, newest first, collecting errors."""
        torn_down: list[str] = []
        errors: list[tuple[str, BaseException]] = []
        for instance in reversed(instances):
            try:
                await instance.handle.finish()
            except BaseException as e:
                errors.append((instance.name, e))
                log.error(
                    "fixture_teardown_failed",
                    fixture=instance.name,
                    scope=instance.scope.value,
                    error=f"{type(e).__name__}: {e}",
                )
            else:
                log.debug("fixture_torn_down", fixture=instance.name, scope=instance.scope.value)
            instance.state = FixtureState.TORN_DOWN
            self._states[instance.scope][instance.name] = FixtureState.TORN_DOWN
            torn_down.append(instance.name)
        return torn_down, errors


def _raise_interrupts(errors: list[tuple[str, BaseException]]) -> None:
    """Re-raise the first non-Exception (interrupt, cancellation) seen during teardown."""
    for _, exc in errors:
        if not isinstance(exc, Exception):
            raise exc
