from __future__ import annotations
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Sequence, Dict, Any, Iterator
from playwright.sync_api import sync_playwright, Playwright, Browser

from simrunner.config import RunConfig


def _normalize_viewport(viewport: Optional[Sequence[int]]) -> Optional[Dict[str, int]]:
    if not viewport:
        return None
    w, h = int(viewport[0]), int(viewport[1])
    if w > 0 and h > 0:
        return {"width": w, "height": h}
    return None


def _browser_ctor(p: Playwright, name: str):
    name = (name or "chromium").strip().lower()
    if name in ("chromium", "chrome"): return p.chromium
    if name in ("firefox", "ff"):       return p.firefox
    if name in ("webkit", "safari"):    return p.webkit
    return p.chromium


def context_options(config: RunConfig) -> Dict[str, Any]:
    """Keyword arguments for ``browser.new_context`` (one fresh context per scenario)."""
    vp = _normalize_viewport(config.viewport)
    kwargs: Dict[str, Any] = {}
    if vp:
        kwargs["viewport"] = vp
    if config.video:
        video_dir = config.reports_path / "video"
        Path(video_dir).mkdir(parents=True, exist_ok=True)
        kwargs["record_video_dir"] = str(video_dir)
        if vp:
            kwargs["record_video_size"] = {"width": vp["width"], "height": vp["height"]}
    return kwargs


@contextmanager
def launch_browser(config: RunConfig) -> Iterator[Browser]:
    p = sync_playwright().start()
    try:
        launch_kwargs: Dict[str, Any] = {"headless": not bool(config.headful)}
        if config.slow_mo > 0:
            launch_kwargs["slow_mo"] = config.slow_mo
        browser: Browser = _browser_ctor(p, config.browser).launch(**launch_kwargs)
        try:
            yield browser
        finally:
            browser.close()
    finally:
        p.stop()
