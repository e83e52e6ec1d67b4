import time

import pytest

from simrunner.command_queue import CommandQueue
from simrunner.commands import (
    ACT, ASSERT, ERRORED, FAILED, LOCATE, NAVIGATE, PASSED, RESOLVED, SKIPPED, TIMED_OUT,
    Command, Scenario,
)
from simrunner.exceptions import RunnerError

from conftest import SHELL, PageSpec


def _run(config, driver, *commands, deadline=None):
    scenario = Scenario(id="t > case", name="case")
    queue = CommandQueue(scenario, config)
    for c in commands:
        queue.enqueue(c)
    with driver.scenario_scope(scenario.id):
        outcome = queue.run(driver, deadline=deadline)
    return scenario, outcome


def nav(url=SHELL, **kw):
    return Command(NAVIGATE, url=url, **kw)


def locate(sel, **kw):
    return Command(LOCATE, selector=sel, **kw)


def act(sel, action="click", value=None, **kw):
    return Command(ACT, selector=sel, action=action, value=value, **kw)


def check(action, sel=None, value=None, **kw):
    return Command(ASSERT, selector=sel, action=action, value=value, **kw)


def test_btn3_click_passes(config, driver, site):
    scenario, outcome = _run(config, driver, nav(), locate("#btn3"), act("#btn3"))

    assert outcome.status == PASSED
    assert scenario.status == PASSED
    assert outcome.reason is None
    assert outcome.count(SKIPPED) == 0
    assert [c.state for c in outcome.commands] == [RESOLVED, RESOLVED, RESOLVED]
    assert site.last_page.elements["#btn3"].actions == ["click"]


def test_commands_resolve_in_declaration_order(config, driver, site):
    site.pages["/form.html"] = PageSpec(elements={"#a": {}, "#b": {}, "#c": {}})
    _, outcome = _run(
        config, driver, nav("/form.html"),
        locate("#a"), act("#a"),
        locate("#b"), act("#b", "fill", "hello"),
        locate("#c"), act("#c", "press", "Enter"),
    )

    assert outcome.passed
    assert site.last_page.log == [("click", "#a"), ("fill", "#b"), ("press", "#c")]
    assert [c.index for c in outcome.commands] == list(range(1, 8))


def test_missing_selector_times_out_within_budget(config, driver):
    started = time.monotonic()
    _, outcome = _run(config, driver, nav(), locate("#missing", timeout_ms=500))
    wall = (time.monotonic() - started) * 1000

    assert outcome.status == FAILED
    assert outcome.reason == "ElementNotFoundError"
    failed = outcome.commands[1]
    assert failed.state == TIMED_OUT
    assert 500 <= failed.elapsed_ms < 1000
    assert "#missing" in outcome.message
    assert wall < 2000


def test_element_appearing_later_is_found(config, driver, site):
    site.pages["/slow.html"] = PageSpec(elements={"#late": {"delay": 0.2}})
    _, outcome = _run(config, driver, nav("/slow.html"), locate("#late", timeout_ms=2000), act("#late"))

    assert outcome.passed
    assert outcome.commands[1].elapsed_ms >= 150
    assert site.last_page.elements["#late"].actions == ["click"]


def test_failure_skips_remaining_commands(config, driver, site):
    _, outcome = _run(config, driver, nav(), locate("#missing"), locate("#btn3"), act("#btn3"))

    assert outcome.status == FAILED
    assert [c.state for c in outcome.commands] == [RESOLVED, TIMED_OUT, SKIPPED, SKIPPED]
    assert site.last_page.elements["#btn3"].actions == []


def test_navigation_timeout_stops_scenario(config, driver, site):
    site.pages["/never.html"] = PageSpec(hang=True)
    _, outcome = _run(config, driver, nav("/never.html"), locate("#btn3"), act("#btn3"))

    assert outcome.status == FAILED
    assert outcome.reason == "NavigationError"
    assert [c.state for c in outcome.commands] == [TIMED_OUT, SKIPPED, SKIPPED]
    assert "domcontentloaded" in outcome.message


def test_unreachable_server_is_navigation_error(config, driver, site):
    site.pages["/down.html"] = PageSpec(refuse=True)
    _, outcome = _run(config, driver, nav("/down.html"), locate("#btn3"))

    assert outcome.reason == "NavigationError"
    assert outcome.commands[0].state == ERRORED
    assert outcome.commands[1].state == SKIPPED


def test_http_error_status_is_navigation_error(config, driver):
    _, outcome = _run(config, driver, nav("/no-such-page.html"))

    assert outcome.reason == "NavigationError"
    assert "404" in outcome.message


def test_locate_before_navigate_fails(config, driver):
    _, outcome = _run(config, driver, locate("#btn3"))
    assert outcome.reason == "NavigationError"


def test_act_requires_prior_locate(config, driver, site):
    _, outcome = _run(config, driver, nav(), act("#btn3"))

    assert outcome.reason == "ActionError"
    assert outcome.commands[1].state == ERRORED
    assert site.last_page.elements["#btn3"].actions == []


def test_navigation_discards_earlier_lookups(config, driver, site):
    site.pages["/other.html"] = PageSpec(elements={"#btn3": {}})
    _, outcome = _run(config, driver, nav(), locate("#btn3"), nav("/other.html"), act("#btn3"))

    assert outcome.reason == "ActionError"


def test_detached_element_is_relocated_once(config, driver, site):
    fresh = []

    def on_load(page):
        page.elements["#btn3"].before_check = lambda el: fresh.append(page.rerender("#btn3"))

    site.pages[SHELL].on_load = on_load
    _, outcome = _run(config, driver, nav(), locate("#btn3"), act("#btn3"))

    assert outcome.passed
    assert len(fresh) == 1
    assert fresh[0].actions == ["click"]


def test_element_detached_twice_is_action_error(config, driver, site):
    def keep_rerendering(el):
        new = el.page.rerender("#btn3")
        new.before_check = keep_rerendering

    def on_load(page):
        page.elements["#btn3"].before_check = keep_rerendering

    site.pages[SHELL].on_load = on_load
    _, outcome = _run(config, driver, nav(), locate("#btn3"), act("#btn3"))

    assert outcome.reason == "ActionError"
    assert "detached" in outcome.message


def test_not_attached_error_while_acting_relocates_once(config, driver, site):
    def on_load(page):
        page.elements["#btn3"].act_errors.append("Element is not attached to the DOM")

    site.pages[SHELL].on_load = on_load
    _, outcome = _run(config, driver, nav(), locate("#btn3"), act("#btn3"))

    btn = site.last_page.elements["#btn3"]
    assert outcome.passed
    assert btn.actions == ["click"]
    assert btn.disposed == 1


def test_other_playwright_error_while_acting_is_action_error(config, driver, site):
    def on_load(page):
        page.elements["#btn3"].act_errors.append("Timeout 500ms exceeded")

    site.pages[SHELL].on_load = on_load
    _, outcome = _run(config, driver, nav(), locate("#btn3"), act("#btn3"))

    assert outcome.reason == "ActionError"
    assert "Timeout 500ms exceeded" in outcome.message
    assert [c.state for c in outcome.commands] == [RESOLVED, RESOLVED, ERRORED]


def test_assertion_waits_for_condition(config, driver, site):
    site.pages["/clock.html"] = PageSpec(elements={"#display": {"text": "12:00", "text_later": ("12:01", 0.2)}})
    _, outcome = _run(config, driver, nav("/clock.html"),
                      check("text", "#display", "12:01", timeout_ms=2000))

    assert outcome.passed


def test_assertion_polls_release_their_handles(config, driver, site):
    site.pages["/clock.html"] = PageSpec(elements={"#display": {"text": "12:00", "text_later": ("12:01", 0.2)}})
    _, outcome = _run(config, driver, nav("/clock.html"),
                      check("text", "#display", "12:01", timeout_ms=2000))

    page = site.last_page
    assert outcome.passed
    assert page.queries > 1
    assert page.elements["#display"].disposed == page.queries


def test_assertion_failure_reports_expected_and_observed(config, driver):
    _, outcome = _run(config, driver, nav(), check("text", "#display", "13:37"), locate("#btn3"))

    assert outcome.reason == "AssertionError"
    assert "13:37" in outcome.message
    assert "12:00" in outcome.message
    assert [c.state for c in outcome.commands] == [RESOLVED, TIMED_OUT, SKIPPED]


def test_url_assertion(config, driver):
    _, outcome = _run(config, driver, nav(), check("url", value="shell.html"), check("not_exists", "#missing"))
    assert outcome.passed


def test_run_timeout_cancels_at_next_boundary(config, driver, site):
    site.pages["/slow.html"] = PageSpec(elements={"#late": {"delay": 0.3}})
    deadline = time.monotonic() + 0.15
    _, outcome = _run(config, driver, nav("/slow.html"), locate("#late", timeout_ms=2000), act("#late"),
                      deadline=deadline)

    assert outcome.reason == "Cancelled"
    assert [c.state for c in outcome.commands] == [RESOLVED, RESOLVED, SKIPPED]
    assert site.last_page.elements["#late"].actions == []


def test_enqueue_after_run_is_rejected(config, driver):
    scenario = Scenario(id="x", name="x")
    queue = CommandQueue(scenario, config)
    queue.enqueue(nav())
    with driver.scenario_scope():
        queue.run(driver)
    with pytest.raises(RunnerError):
        queue.enqueue(locate("#btn3"))


def test_enqueue_does_not_resolve(config, driver, site):
    scenario = Scenario(id="x", name="x")
    queue = CommandQueue(scenario, config)
    queue.enqueue(nav())
    queue.enqueue(locate("#btn3"))

    assert site.contexts == []
    assert len(scenario.commands) == 2
