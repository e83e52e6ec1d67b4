from __future__ import annotations
import logging
import time
from contextlib import contextmanager
from typing import Iterator, Optional

import requests
from playwright.sync_api import Error as PlaywrightError, TimeoutError as PWTimeoutError

from simrunner.browser import context_options
from simrunner.config import RunConfig, resolve_url
from simrunner.exceptions import NavigationError
from simrunner.page import PageContext

log = logging.getLogger(__name__)


class NavigationDriver:
    """
    Owns the browsing context of the running scenario.

    ``scenario_scope()`` creates a fresh context and closes it on every exit path;
    ``open(url)`` loads a page in it and blocks until the ``load`` event fires.
    """

    def __init__(self, config: RunConfig, browser):
        self.config = config
        self.browser = browser
        self.current: Optional[PageContext] = None
        self.last_video: Optional[str] = None
        self._ctx = None
        self._page = None
        self._load_state: Optional[str] = None

    @contextmanager
    def scenario_scope(self, scenario_id: str = "") -> Iterator["NavigationDriver"]:
        self.current = None
        self.last_video = None
        self._page = None
        self._ctx = self.browser.new_context(**context_options(self.config))
        log.debug("browsing context opened for %s", scenario_id)
        try:
            yield self
        finally:
            if self.current is not None:
                self.current.ready = False
            self.last_video = self._video_path()
            try:
                self._ctx.close()
            except PlaywrightError as e:
                log.warning("closing browsing context for %s failed: %s", scenario_id, e)
            self._ctx = None
            self._page = None

    def open(self, url: str, timeout_ms: Optional[int] = None) -> PageContext:
        if self._ctx is None:
            raise RuntimeError("open() called outside scenario_scope()")
        full = resolve_url(self.config.base_url, url)
        timeout = int(timeout_ms or self.config.navigation_timeout_ms)

        if self._page is None:
            self._page = self._ctx.new_page()
            self._page.on("domcontentloaded", lambda *_: self._set_state("domcontentloaded"))
            self._page.on("load", lambda *_: self._set_state("load"))
        if self.current is not None:
            self.current.ready = False

        self._load_state = "requested"
        started = time.monotonic()
        try:
            resp = self._page.goto(full, wait_until="load", timeout=timeout)
        except PWTimeoutError as e:
            elapsed = (time.monotonic() - started) * 1000
            raise NavigationError(
                f"Timed out after {elapsed:.0f}ms loading {full} (last load state: {self._load_state})",
                url=full, elapsed_ms=elapsed, load_state=self._load_state, timed_out=True,
            ) from e
        except PlaywrightError as e:
            elapsed = (time.monotonic() - started) * 1000
            raise NavigationError(
                f"Failed to load {full}: {e}",
                url=full, elapsed_ms=elapsed, load_state=self._load_state,
            ) from e

        elapsed = (time.monotonic() - started) * 1000
        if resp is not None and resp.status >= 400:
            raise NavigationError(
                f"{full} answered HTTP {resp.status}",
                url=full, elapsed_ms=elapsed, load_state=self._load_state,
            )

        ctx = PageContext(self._page, full)
        ctx.ready = True
        self.current = ctx
        log.info("loaded %s in %.0fms", full, elapsed)
        return ctx

    def _set_state(self, state: str) -> None:
        self._load_state = state

    def _video_path(self) -> Optional[str]:
        video = getattr(self._page, "video", None) if self._page is not None else None
        if not video:
            return None
        try:
            return str(video.path())
        except PlaywrightError as e:
            log.warning("video path unavailable: %s", e)
            return None


class UnreachableDriver:
    """Stands in for the driver when the base URL failed the preflight probe."""

    def __init__(self, config: RunConfig, message: str):
        self.config = config
        self.message = message
        self.current: Optional[PageContext] = None
        self.last_video: Optional[str] = None

    @contextmanager
    def scenario_scope(self, scenario_id: str = "") -> Iterator["UnreachableDriver"]:
        yield self

    def open(self, url: str, timeout_ms: Optional[int] = None) -> PageContext:
        raise NavigationError(self.message, url=resolve_url(self.config.base_url, url), load_state="unreachable")


def probe_base_url(config: RunConfig) -> Optional[str]:
    """
    One HTTP request against ``base_url``. Returns an error message when the
    server cannot be reached at all; any HTTP answer counts as reachable.
    """
    timeout = min(config.navigation_timeout_ms / 1000.0, 10.0)
    try:
        requests.get(config.base_url, timeout=timeout)
    except requests.RequestException as e:
        log.error("base URL %s unreachable: %s", config.base_url, e)
        return f"Base URL unreachable: {config.base_url} ({e})"
    return None
