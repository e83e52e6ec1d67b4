from playwright.sync_api import Error as PlaywrightError

from simrunner.page import Element

# ===============================================================
#  ACTIONS: performed on a located element
# ===============================================================


def action_click(el: Element, *, timeout_ms=4000, **_):
    el.call("click", timeout=timeout_ms)


def action_dblclick(el: Element, *, timeout_ms=4000, **_):
    el.call("dblclick", timeout=timeout_ms)


def action_hover(el: Element, *, timeout_ms=4000, **_):
    el.call("hover", timeout=timeout_ms)


def action_fill(el: Element, *, value, timeout_ms=4000, **_):
    el.call("fill", str(value), timeout=timeout_ms)


def action_press(el: Element, *, value, timeout_ms=4000, **_):
    el.call("press", str(value), timeout=timeout_ms)


def action_select_option(el: Element, *, value, timeout_ms=4000, **_):
    """
    Selects by value first, then by visible label.
    """
    try:
        el.call("select_option", value=str(value), timeout=timeout_ms)
    except PlaywrightError:
        el.call("select_option", label=str(value), timeout=timeout_ms)


def action_check(el: Element, *, timeout_ms=4000, **_):
    el.call("check", timeout=timeout_ms)


def action_uncheck(el: Element, *, timeout_ms=4000, **_):
    el.call("uncheck", timeout=timeout_ms)
