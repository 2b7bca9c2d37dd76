"""
Playwright-backed host: captures layout trees from a live Chromium page and
forwards the page's readiness, resize and scroll events to Python.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import structlog
from playwright.async_api import Frame, Page, async_playwright

from cogload.config.config import BrowserConfig, Config
from cogload.errors import ensure_supported_resource
from cogload.host import ListenerRegistry
from cogload.metrics.tree import LayoutDocument, LayoutTreeView
from cogload.protocols import HostEvent, ReadyState

logger = structlog.get_logger(__name__)

NOTIFY_BINDING = "__cogloadNotify"

# Serializes the element tree under <body> with viewport-relative rectangles.
# Only the attributes the interactive classification reads are kept.
LAYOUT_SCRIPT = """
() => {
  const keep = ["href", "role", "type"];
  const toNode = (el) => {
    const r = el.getBoundingClientRect();
    const attributes = {};
    for (const name of keep) {
      if (el.hasAttribute(name)) attributes[name] = el.getAttribute(name);
    }
    return {
      tag: el.tagName.toLowerCase(),
      attributes,
      rect: { top: r.top, left: r.left, bottom: r.bottom, right: r.right, width: r.width, height: r.height },
      children: Array.from(el.children, toNode),
    };
  };
  return {
    url: window.location.href,
    ready_state: document.readyState,
    viewport: { width: window.innerWidth, height: window.innerHeight },
    root: document.body ? toNode(document.body) : null,
  };
}
"""

LISTENER_SCRIPT = f"""
(() => {{
  if (window.__cogloadListening) return;
  window.__cogloadListening = true;
  const notify = (kind) => window.{NOTIFY_BINDING}(kind, document.readyState);
  window.addEventListener("resize", () => notify("resize"));
  window.addEventListener("scroll", () => notify("scroll"), {{ passive: true }});
  document.addEventListener("readystatechange", () => notify("readystate"));
}})();
"""


class PlaywrightHost(ListenerRegistry):
    """``HostEnvironment`` for one Playwright page. Create with ``attach``."""

    def __init__(self, page: Page) -> None:
        super().__init__()
        self.page = page
        self._ready_state = ReadyState.LOADING

    @classmethod
    async def attach(cls, page: Page) -> PlaywrightHost:
        """Install the event bridge; call before navigating the page."""
        host = cls(page)
        await page.expose_function(NOTIFY_BINDING, host._on_page_event)
        await page.add_init_script(LISTENER_SCRIPT)
        page.on("framenavigated", host._on_frame_navigated)
        return host

    @property
    def location(self) -> str:
        return self.page.url

    @property
    def ready_state(self) -> ReadyState:
        return self._ready_state

    async def capture_view(self) -> LayoutTreeView:
        document = LayoutDocument.model_validate(await self.page.evaluate(LAYOUT_SCRIPT))
        return LayoutTreeView(document)

    def _on_frame_navigated(self, frame: Frame) -> None:
        if frame == self.page.main_frame:
            self._ready_state = ReadyState.LOADING

    def _on_page_event(self, kind: str, ready_state: str) -> None:
        if kind == "readystate":
            was_ready = self._ready_state.is_ready
            self._ready_state = ReadyState(ready_state)
            if self._ready_state.is_ready and not was_ready:
                self.dispatch(HostEvent.READY)
        elif kind == "resize":
            self.dispatch(HostEvent.RESIZE)
        elif kind == "scroll":
            self.dispatch(HostEvent.SCROLL)
        else:
            logger.debug("Ignoring unknown page event", kind=kind)


@asynccontextmanager
async def open_page(config: BrowserConfig) -> AsyncIterator[Page]:
    """Launch Chromium with the configured viewport and yield a fresh page."""
    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=config.headless)
        try:
            context = await browser.new_context(
                viewport={"width": config.viewport_width, "height": config.viewport_height}
            )
            page = await context.new_page()
            page.set_default_navigation_timeout(config.navigation_timeout_ms)
            yield page
        finally:
            await browser.close()


async def capture_layout(url: str, config: Config) -> LayoutDocument:
    """
    Load ``url`` and capture its layout once it has settled.

    Waits ``trigger.initial_delay_ms`` after the load event, the same grace
    period the coordinator gives late-rendering content.

    Raises:
        UnsupportedResourceError: If the url is not http, https or file.
    """
    ensure_supported_resource(url)
    async with open_page(config.browser) as page:
        await page.goto(url, wait_until="load")
        await page.wait_for_timeout(config.trigger.initial_delay_ms)
        data: Any = await page.evaluate(LAYOUT_SCRIPT)
        logger.info("Layout captured", url=url)
        return LayoutDocument.model_validate(data)
