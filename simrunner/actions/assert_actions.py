"""
Assertion predicates.

Each predicate inspects the page once, releasing any element handle it took,
and returns a :class:`Check`; the command queue keeps calling it until ``ok``
is true or the retry budget runs out.
"""
from __future__ import annotations
from typing import Any, NamedTuple


class Check(NamedTuple):
    ok: bool
    expected: Any
    observed: Any


def _normalize(s: str) -> str:
    return " ".join((s or "").split())


def assert_visible(ctx, *, selector, **_) -> Check:
    with ctx.lookup(selector) as el:
        if el is None:
            return Check(False, "visible", "missing")
        vis = el.is_visible()
    return Check(vis, "visible", "visible" if vis else "hidden")


def assert_not_visible(ctx, *, selector, **_) -> Check:
    with ctx.lookup(selector) as el:
        if el is None:
            return Check(True, "not visible", "missing")
        vis = el.is_visible()
    return Check(not vis, "not visible", "visible" if vis else "hidden")


def assert_exists(ctx, *, selector, **_) -> Check:
    with ctx.lookup(selector) as el:
        found = el is not None
    return Check(found, "present", "present" if found else "missing")


def assert_not_exists(ctx, *, selector, **_) -> Check:
    with ctx.lookup(selector) as el:
        found = el is not None
    return Check(not found, "missing", "present" if found else "missing")


def assert_text(ctx, *, selector, value, **_) -> Check:
    """Exact match after whitespace normalization."""
    with ctx.lookup(selector) as el:
        if el is None:
            return Check(False, str(value), None)
        actual = _normalize(el.text())
    return Check(actual == _normalize(str(value)), str(value), actual)


def assert_contains(ctx, *, selector, value, **_) -> Check:
    with ctx.lookup(selector) as el:
        if el is None:
            return Check(False, f"contains {value!r}", None)
        actual = _normalize(el.text())
    return Check(str(value) in actual, f"contains {value!r}", actual)


def assert_url(ctx, *, value, **_) -> Check:
    current = ctx.url
    return Check(str(value) in (current or ""), f"url contains {value!r}", current)
