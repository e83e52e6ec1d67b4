# simrunner/runner.py
from __future__ import annotations
import logging
import time
from concurrent.futures import ProcessPoolExecutor
from dataclasses import replace
from itertools import chain
from typing import Callable, Iterable, List, Optional

from simrunner.browser import launch_browser
from simrunner.command_queue import CommandQueue
from simrunner.commands import FAILED, SKIPPED, CommandResult, Outcome, Scenario, ScenarioGroup
from simrunner.config import RunConfig
from simrunner.exceptions import HookError
from simrunner.hooks import HookRegistry, load_hooks
from simrunner.loader import discover
from simrunner.logging_config import get_logger, setup_logging
from simrunner.navigation import NavigationDriver, UnreachableDriver, probe_base_url
from simrunner.reporting import ResultReporter

log = logging.getLogger(__name__)


def _failed_before_start(scenario: Scenario, reason: str, message: str) -> Outcome:
    scenario.status = FAILED
    return Outcome(
        scenario_id=scenario.id, status=FAILED, reason=reason, message=message,
        commands=tuple(CommandResult(i, c.describe(), c.kind, SKIPPED)
                       for i, c in enumerate(scenario.commands, start=1)),
    )


def _failed_to_load(group: ScenarioGroup) -> Outcome:
    return Outcome(scenario_id=group.name, status=FAILED, reason=group.load_reason, message=group.load_error)


def _emit_run_hook(hooks: HookRegistry, event: str, *args) -> None:
    try:
        hooks.emit(event, *args)
    except Exception as e:
        raise HookError(f"{event} hook failed: {e}") from e


def run_scenario(scenario: Scenario, driver, reporter: ResultReporter, hooks: HookRegistry,
                 deadline: Optional[float] = None) -> Outcome:
    """Run one scenario inside its own browsing context and record its outcome."""
    with driver.scenario_scope(scenario.id):
        try:
            hooks.emit("before:scenario", scenario)
        except Exception as e:
            log.error("before:scenario hook failed for %s: %s", scenario.id, e)
            outcome = _failed_before_start(scenario, HookError.reason, f"before:scenario hook failed: {e}")
        else:
            outcome = CommandQueue(scenario, reporter.config).run(driver, deadline=deadline)
        outcome = reporter.attach_failure_artifacts(outcome, driver.current)

    try:
        hooks.emit("after:scenario", scenario, outcome)
    except Exception as e:
        log.error("after:scenario hook failed for %s: %s", scenario.id, e)
        scenario.status = FAILED
        outcome = replace(outcome, status=FAILED, reason=HookError.reason,
                          message=f"after:scenario hook failed: {e}")
    return reporter.record(outcome, video_path=driver.last_video)


def run_groups(groups: Iterable[ScenarioGroup], driver, reporter: ResultReporter, hooks: HookRegistry,
               deadline: Optional[float] = None) -> None:
    for group in groups:
        reporter.echo(f"\n=== {group.name} ({group.path}) ===")
        if group.load_error is not None:
            reporter.record(_failed_to_load(group))
            continue
        for scenario in group.scenarios:
            run_scenario(scenario, driver, reporter, hooks, deadline=deadline)


def _run_serial(groups, config: RunConfig, reporter, hooks, deadline, unreachable: Optional[str],
                browser_factory) -> None:
    if unreachable:
        run_groups(groups, UnreachableDriver(config, unreachable), reporter, hooks, deadline)
        return
    with browser_factory(config) as browser:
        run_groups(groups, NavigationDriver(config, browser), reporter, hooks, deadline)


def _worker(group: ScenarioGroup, config: RunConfig, unreachable: Optional[str],
            wall_deadline: Optional[float], log_level: int, browser_factory: Callable) -> List[Outcome]:
    # scenario hooks come from config.setup_hooks; in-process registries do not cross processes
    setup_logging(logging.getLevelName(log_level))
    hooks = load_hooks(config)
    reporter = ResultReporter(config)
    deadline = None
    if wall_deadline is not None:
        deadline = time.monotonic() + (wall_deadline - time.time())
    _run_serial([group], config, reporter, hooks, deadline, unreachable, browser_factory)
    return reporter.outcomes


def _run_parallel(groups, config: RunConfig, reporter: ResultReporter, unreachable: Optional[str],
                  browser_factory: Callable) -> None:
    """One scenario file per task. ``browser_factory`` must be picklable (module level)."""
    wall_deadline = time.time() + config.run_timeout_ms / 1000.0 if config.run_timeout_ms else None
    level = get_logger().getEffectiveLevel()
    with ProcessPoolExecutor(max_workers=config.workers) as pool:
        tasks = []
        for g in groups:
            fut = None
            if g.load_error is None:
                fut = pool.submit(_worker, g, config, unreachable, wall_deadline, level, browser_factory)
            tasks.append((g, fut))
        for group, fut in tasks:
            if fut is None:
                reporter.record(_failed_to_load(group))
                continue
            try:
                reporter.merge(fut.result())
            except Exception as e:
                log.error("worker for %s crashed: %s", group.path, e)
                for sc in group.scenarios:
                    reporter.record(_failed_before_start(sc, type(e).__name__, f"worker crashed: {e}"))


def run(config: RunConfig, hooks: Optional[HookRegistry] = None,
        browser_factory: Callable = launch_browser, echo=print) -> int:
    """
    Discover, run and report every scenario. Returns the process exit status:
    0 when every scenario passed, 1 otherwise.

    The summary files are written even when the run is aborted part way.
    A failing ``before:run`` or ``after:run`` hook raises HookError.
    """
    reporter = ResultReporter(config, echo=echo)
    hooks = hooks if hooks is not None else load_hooks(config)

    groups = discover(config)
    first = next(groups, None)
    all_groups = chain([first], groups) if first is not None else iter(())

    _emit_run_hook(hooks, "before:run", config)

    deadline = time.monotonic() + config.run_timeout_ms / 1000.0 if config.run_timeout_ms else None
    unreachable = probe_base_url(config) if config.preflight else None

    try:
        if config.workers > 1:
            _run_parallel(all_groups, config, reporter, unreachable, browser_factory)
        else:
            _run_serial(all_groups, config, reporter, hooks, deadline, unreachable, browser_factory)
    finally:
        reporter.finalize()

    _emit_run_hook(hooks, "after:run", list(reporter.outcomes))
    return reporter.exit_code()
