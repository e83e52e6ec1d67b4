from __future__ import annotations
import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from playwright.sync_api import Error as PlaywrightError

log = logging.getLogger(__name__)


class ElementDetached(Exception):
    """The element handle no longer belongs to the live DOM."""


def _is_detached_error(e: Exception) -> bool:
    msg = str(e).lower()
    return "not attached" in msg or "detached" in msg


def _is_context_destroyed(e: Exception) -> bool:
    msg = str(e).lower()
    return "execution context was destroyed" in msg or "navigating" in msg


class Element:
    """One lookup result. Never reused across navigations."""

    def __init__(self, handle, selector: str, owner: "PageContext"):
        self.handle = handle
        self.selector = selector
        self.owner = owner

    def is_attached(self) -> bool:
        if not self.owner.ready:
            return False
        try:
            return bool(self.handle.evaluate("el => el.isConnected"))
        except PlaywrightError:
            return False

    def is_visible(self) -> bool:
        try:
            return bool(self.handle.is_visible())
        except PlaywrightError as e:
            if _is_detached_error(e): return False
            raise

    def text(self) -> str:
        try:
            return self.handle.inner_text() or ""
        except PlaywrightError as e:
            if _is_detached_error(e): return ""
            raise

    def call(self, method: str, *args, **kwargs) -> Any:
        """Invoke a Playwright ElementHandle method, reporting detachment as ElementDetached."""
        try:
            return getattr(self.handle, method)(*args, **kwargs)
        except PlaywrightError as e:
            if _is_detached_error(e):
                raise ElementDetached(self.selector) from e
            raise

    def dispose(self) -> None:
        try:
            self.handle.dispose()
        except PlaywrightError as e:
            log.debug("dispose %r: %s", self.selector, e)


class PageContext:
    """A loaded page. ``ready`` is set by the navigation driver once loading succeeded."""

    def __init__(self, page, requested_url: str):
        self.page = page
        self.requested_url = requested_url
        self.ready = False

    @property
    def url(self) -> str:
        return self.page.url

    def query(self, selector: str) -> Optional[Element]:
        try:
            handle = self.page.query_selector(selector)
        except PlaywrightError as e:
            # page is mid-navigation: treat as "not there yet"
            if _is_context_destroyed(e):
                log.debug("query %r during navigation: %s", selector, e)
                return None
            raise
        return Element(handle, selector, self) if handle else None

    @contextmanager
    def lookup(self, selector: str) -> Iterator[Optional[Element]]:
        """Query once for an inspection; the handle is released afterwards."""
        el = self.query(selector)
        try:
            yield el
        finally:
            if el is not None:
                el.dispose()

    def pause(self, ms: float) -> None:
        # lets the driver service page events while we wait
        self.page.wait_for_timeout(ms)

    def screenshot(self, path: str) -> None:
        self.page.screenshot(path=path, full_page=True)
