"""
Command queue: resolves one scenario's commands strictly in declaration order.

``locate`` and ``assert`` poll the page until they succeed or their retry budget
runs out; ``act`` works on the element found by the preceding ``locate`` and
re-locates it at most once when it has been detached in between. The first
failure stops the scenario and every later command is marked skipped.
"""
from __future__ import annotations
import logging
import time
from typing import Callable, Dict, List, Optional, TypeVar

from simrunner.actions import ACTION_REGISTRY, ASSERT_REGISTRY, Check
from simrunner.commands import (
    ACT, ASSERT, ERRORED, FAILED, LOCATE, NAVIGATE, PASSED, RESOLVED, SKIPPED, TIMED_OUT,
    Command, CommandResult, Outcome, Scenario,
)
from simrunner.config import RunConfig
from simrunner.exceptions import (
    ActionError, Cancelled, CommandAssertionError, ElementNotFoundError, NavigationError,
    RunnerError, StepValidationError, reason_of,
)
from simrunner.page import Element, ElementDetached, PageContext

log = logging.getLogger(__name__)

T = TypeVar("T")


def _state_for(err: BaseException) -> str:
    if isinstance(err, (ElementNotFoundError, CommandAssertionError)):
        return TIMED_OUT
    if isinstance(err, NavigationError) and err.timed_out:
        return TIMED_OUT
    return ERRORED


class CommandQueue:
    def __init__(self, scenario: Scenario, config: RunConfig, clock: Callable[[], float] = time.monotonic):
        self.scenario = scenario
        self.config = config
        self.clock = clock
        self._started = False

    def enqueue(self, command: Command) -> None:
        """Append a command. Nothing is resolved until run()."""
        if self._started:
            raise RunnerError(f"{self.scenario.id}: cannot enqueue after run() started")
        self.scenario.commands.append(command)

    def run(self, driver, deadline: Optional[float] = None) -> Outcome:
        """
        Resolve every command in order against pages opened through ``driver``.
        ``deadline`` is a ``clock()`` value; once passed, the scenario is cancelled
        at the next command boundary.
        """
        self._started = True
        results: List[CommandResult] = []
        failure: Optional[BaseException] = None
        context: Optional[PageContext] = None
        located: Dict[str, Element] = {}
        run_started = self.clock()

        for idx, cmd in enumerate(self.scenario.commands, start=1):
            desc = cmd.describe()
            if failure is None and deadline is not None and self.clock() >= deadline:
                failure = Cancelled(f"Run timeout reached before step {idx} ({desc})")
                log.warning("%s: cancelled before step %d", self.scenario.id, idx)
            if failure is not None:
                results.append(CommandResult(idx, desc, cmd.kind, SKIPPED))
                continue

            started = self.clock()
            try:
                if cmd.kind == NAVIGATE:
                    located.clear()
                    context = driver.open(cmd.url, timeout_ms=cmd.timeout_ms)
                elif context is None:
                    raise NavigationError(f"{desc}: no page loaded yet (add a navigate step first)")
                elif cmd.kind == LOCATE:
                    located[cmd.selector] = self._locate(cmd, context)
                elif cmd.kind == ACT:
                    self._act(cmd, context, located)
                elif cmd.kind == ASSERT:
                    self._assert(cmd, context)
            except Exception as e:  # any command error fails this scenario only
                failure = e
                elapsed = (self.clock() - started) * 1000
                results.append(CommandResult(idx, desc, cmd.kind, _state_for(e), elapsed, str(e)))
                log.info("%s: step %d failed (%s): %s", self.scenario.id, idx, reason_of(e), e)
                continue

            elapsed = (self.clock() - started) * 1000
            results.append(CommandResult(idx, desc, cmd.kind, RESOLVED, elapsed))
            log.debug("%s: step %d resolved in %.0fms: %s", self.scenario.id, idx, elapsed, desc)

        self.scenario.status = FAILED if failure is not None else PASSED
        return Outcome(
            scenario_id=self.scenario.id,
            status=self.scenario.status,
            reason=reason_of(failure) if failure is not None else None,
            message=str(failure) if failure is not None else None,
            elapsed_ms=(self.clock() - run_started) * 1000,
            commands=tuple(results),
        )

    # ---------- resolution ----------

    def _budget(self, cmd: Command):
        return (cmd.timeout_ms or self.config.timeout_ms,
                cmd.retry_interval_ms or self.config.retry_interval_ms)

    def _poll(self, probe: Callable[[], Optional[T]], cmd: Command, context: PageContext):
        """Call ``probe`` until it returns something truthy or the budget is spent."""
        budget_ms, interval_ms = self._budget(cmd)
        started = self.clock()
        while True:
            result = probe()
            elapsed = (self.clock() - started) * 1000
            if result:
                return result, elapsed
            if elapsed >= budget_ms:
                return None, elapsed
            context.pause(min(interval_ms, budget_ms - elapsed))

    def _locate(self, cmd: Command, context: PageContext) -> Element:
        el, elapsed = self._poll(lambda: context.query(cmd.selector), cmd, context)
        if el is None:
            raise ElementNotFoundError(cmd.selector, elapsed)
        return el

    def _act(self, cmd: Command, context: PageContext, located: Dict[str, Element]) -> None:
        el = located.get(cmd.selector)
        if el is None:
            raise ActionError(f"{cmd.action} {cmd.selector!r} requires a preceding locate of the same selector",
                              selector=cmd.selector, action=cmd.action)
        fn = ACTION_REGISTRY.get(cmd.action)
        if fn is None:
            raise ActionError(f"Unknown action: {cmd.action}", selector=cmd.selector, action=cmd.action)

        budget_ms, _ = self._budget(cmd)
        relocated = False
        while True:
            try:
                if not el.is_attached():
                    raise ElementDetached(cmd.selector)
                fn(el, value=cmd.value, timeout_ms=budget_ms)
                return
            except ElementDetached:
                if relocated:
                    raise ActionError(f"{cmd.action} failed: {cmd.selector!r} detached again after re-locating",
                                      selector=cmd.selector, action=cmd.action)
                relocated = True
                el.dispose()
                el = context.query(cmd.selector)
                if el is None:
                    raise ActionError(f"{cmd.action} failed: {cmd.selector!r} detached and is no longer on the page",
                                      selector=cmd.selector, action=cmd.action)
                located[cmd.selector] = el
                log.debug("re-located detached element %r", cmd.selector)
            except RunnerError:
                raise
            except Exception as e:
                raise ActionError(f"{cmd.action} {cmd.selector!r} failed: {e}",
                                  selector=cmd.selector, action=cmd.action) from e

    def _assert(self, cmd: Command, context: PageContext) -> None:
        predicate = ASSERT_REGISTRY.get(cmd.action)
        if predicate is None:
            raise StepValidationError(f"Unknown assertion: {cmd.action}")
        last: List[Check] = []

        def probe():
            chk = predicate(context, selector=cmd.selector, value=cmd.value)
            last[:] = [chk]
            return chk.ok

        ok, elapsed = self._poll(probe, cmd, context)
        if not ok:
            chk = last[-1]
            target = f" {cmd.selector!r}" if cmd.selector else ""
            raise CommandAssertionError(f"assert {cmd.action}{target} never became true",
                                        expected=chk.expected, observed=chk.observed, elapsed_ms=elapsed)
