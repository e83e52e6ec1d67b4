"""
In-memory stand-ins for the slice of the Playwright sync API the runner uses
(Browser.new_context, BrowserContext.new_page/close, Page.goto/query_selector/
wait_for_timeout/screenshot/on, ElementHandle actions).
"""
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional
from urllib.parse import urlparse

import pytest
from playwright.sync_api import Error as PlaywrightError, TimeoutError as PWTimeoutError

from simrunner.config import RunConfig
from simrunner.navigation import NavigationDriver

SHELL = "/watch-library/simulator/shell.html"


@dataclass
class PageSpec:
    elements: Dict[str, dict] = field(default_factory=dict)
    status: int = 200
    hang: bool = False
    refuse: bool = False
    on_load: Optional[Callable] = None


class FakeResponse:
    def __init__(self, status):
        self.status = status


class FakeElement:
    def __init__(self, page, selector, text="", visible=True, appear_at=0.0, text_later=None):
        self.page = page
        self.selector = selector
        self._text = text
        self.visible = visible
        self.appear_at = appear_at
        self.text_later = text_later  # (text, monotonic time)
        self.attached = True
        self.before_check = None
        self.act_errors = []  # messages raised by the next actions, one each
        self.disposed = 0
        self.actions = []

    def evaluate(self, expression):
        assert "isConnected" in expression
        if self.before_check is not None:
            cb, self.before_check = self.before_check, None
            cb(self)
        return self.attached

    def _require_attached(self):
        if not self.attached:
            raise PlaywrightError("Element is not attached to the DOM")

    def is_visible(self):
        self._require_attached()
        return self.visible

    def inner_text(self):
        self._require_attached()
        if self.text_later and time.monotonic() >= self.text_later[1]:
            return self.text_later[0]
        return self._text

    def dispose(self):
        self.disposed += 1

    def _act(self, name, *args, **kwargs):
        self._require_attached()
        if self.act_errors:
            raise PlaywrightError(self.act_errors.pop(0))
        self.actions.append(name)
        self.page.log.append((name, self.selector))

    def click(self, **kw): self._act("click", **kw)
    def dblclick(self, **kw): self._act("dblclick", **kw)
    def hover(self, **kw): self._act("hover", **kw)
    def check(self, **kw): self._act("check", **kw)
    def uncheck(self, **kw): self._act("uncheck", **kw)
    def fill(self, value, **kw): self._act("fill", value, **kw)
    def press(self, key, **kw): self._act("press", key, **kw)
    def select_option(self, **kw): self._act("select_option", **kw)


class FakePage:
    def __init__(self, site):
        self.site = site
        self.url = "about:blank"
        self.elements: Dict[str, FakeElement] = {}
        self.listeners = {}
        self.log = []
        self.queries = 0
        self.video = None

    def on(self, event, fn):
        self.listeners.setdefault(event, []).append(fn)

    def _emit(self, event):
        for fn in self.listeners.get(event, []):
            fn(self)

    def goto(self, url, wait_until="load", timeout=30000):
        spec = self.site.pages.get(urlparse(url).path) or PageSpec(status=404)
        if spec.refuse:
            raise PlaywrightError(f"net::ERR_CONNECTION_REFUSED at {url}")
        if spec.hang:
            self._emit("domcontentloaded")
            time.sleep(timeout / 1000.0)
            raise PWTimeoutError(f"Timeout {timeout}ms exceeded.")
        for old in self.elements.values():
            old.attached = False
        self.url = url
        now = time.monotonic()
        self.elements = {}
        for sel, opts in spec.elements.items():
            opts = dict(opts)
            delay = opts.pop("delay", 0.0)
            later = opts.pop("text_later", None)
            self.elements[sel] = FakeElement(
                self, sel, appear_at=now + delay,
                text_later=(later[0], now + later[1]) if later else None, **opts,
            )
        self._emit("domcontentloaded")
        self._emit("load")
        if spec.on_load:
            spec.on_load(self)
        return FakeResponse(spec.status)

    def rerender(self, selector):
        """Detach the current element for ``selector`` and put a fresh one in its place."""
        old = self.elements[selector]
        old.attached = False
        new = FakeElement(self, selector, text=old._text, visible=old.visible)
        self.elements[selector] = new
        return new

    def query_selector(self, selector):
        self.queries += 1
        el = self.elements.get(selector)
        if el is None or not el.attached or time.monotonic() < el.appear_at:
            return None
        return el

    def wait_for_timeout(self, ms):
        time.sleep(ms / 1000.0)

    def screenshot(self, path, full_page=False):
        if self.site.screenshot_fails:
            raise PlaywrightError("Target page, context or browser has been closed")
        with open(path, "wb") as f:
            f.write(b"\x89PNG fake")


class FakeContext:
    def __init__(self, site, options):
        self.site = site
        self.options = options
        self.pages = []
        self.closed = False

    def new_page(self):
        p = FakePage(self.site)
        self.pages.append(p)
        return p

    def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, site):
        self.site = site

    def new_context(self, **options):
        ctx = FakeContext(self.site, options)
        self.site.contexts.append(ctx)
        return ctx


class FakeSite:
    def __init__(self, pages=None):
        self.pages: Dict[str, PageSpec] = pages or {}
        self.contexts = []
        self.screenshot_fails = False

    @property
    def last_page(self) -> FakePage:
        return self.site_pages()[-1]

    def site_pages(self):
        return [p for c in self.contexts for p in c.pages]

    def browser_factory(self):
        @contextmanager
        def factory(config):
            yield FakeBrowser(self)
        return factory


def shell_pages():
    return {SHELL: PageSpec(elements={"#btn3": {"text": "MODE"}, "#display": {"text": "12:00"}})}


@contextmanager
def shell_browser(config):
    """Module-level browser factory, so worker processes can unpickle it."""
    yield FakeBrowser(FakeSite(shell_pages()))


@pytest.fixture
def site():
    return FakeSite(shell_pages())


@pytest.fixture
def make_config(tmp_path):
    def _make(**kw):
        opts = dict(
            base_url="http://sim.test",
            root_dir=str(tmp_path),
            preflight=False,
            timeout_ms=500,
            retry_interval_ms=20,
            navigation_timeout_ms=300,
            reports_dir=str(tmp_path / "reports"),
        )
        opts.update(kw)
        return RunConfig(**opts)
    return _make


@pytest.fixture
def config(make_config):
    return make_config()


@pytest.fixture
def driver(config, site):
    return NavigationDriver(config, FakeBrowser(site))
