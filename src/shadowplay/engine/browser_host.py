"""Shadowplay Browser Host -- Playwright lifecycle and input capture for the host page.

Launches Chromium with the configured viewport and locale, opens the host
interface at ``base_url`` and exposes the page to the engine:

- PlaywrightCaptureSurface: capture-phase DOM listeners forwarding clicks,
  key downs and wheel events to the recorder through an exposed binding.

Playwright's sync API only delivers binding callbacks while Python is inside
a Playwright call, so recording loops call ``pump()`` to let events through.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from shadowplay.config import ShadowplayConfig
from shadowplay.engine.protocols import CaptureCallback
from shadowplay.models import ELEMENT_ATTRIBUTE_WHITELIST, ELEMENT_TEXT_LIMIT

if TYPE_CHECKING:
    from playwright.sync_api import Page

logger = logging.getLogger("shadowplay.engine.browser_host")

_BINDING_NAME = "__shadowplayCapture"

# Installs listeners on window in the capture phase so page handlers that
# stop propagation cannot hide events from the recorder.
_INSTALL_JS = """
([binding, marker, attrs, textLimit]) => {
  if (window.__shadowplayListeners) return;
  const describe = (target) => {
    const el = target instanceof Element ? target : null;
    if (!el) return null;
    const attributes = {};
    for (const name of attrs) {
      const value = el.getAttribute(name);
      if (value !== null) attributes[name] = value;
    }
    return {
      tag: el.tagName.toLowerCase(),
      id: el.id || null,
      classes: typeof el.className === 'string' ? el.className.split(/\\s+/).filter(Boolean) : [],
      text: (el.innerText || el.textContent || '').trim().slice(0, textLimit),
      attributes,
    };
  };
  const own = (target) =>
    target instanceof Element && target.closest('[' + marker + ']') !== null;
  const send = (kind, e, extra) => {
    window[binding](kind, Object.assign({
      element: describe(e.target),
      own_surface: own(e.target),
    }, extra));
  };
  const listeners = {
    click: (e) => send('pointer', e, {x: e.clientX, y: e.clientY, button: e.button, click_count: e.detail || 1}),
    contextmenu: (e) => send('pointer', e, {x: e.clientX, y: e.clientY, button: 2, click_count: 1}),
    keydown: (e) => send('key', e, {key: e.key, code: e.code}),
    wheel: (e) => send('wheel', e, {delta_y: e.deltaY, x: e.clientX, y: e.clientY}),
  };
  for (const [type, fn] of Object.entries(listeners)) {
    window.addEventListener(type, fn, {capture: true, passive: true});
  }
  window.__shadowplayListeners = listeners;
}
"""

_REMOVE_JS = """
() => {
  const listeners = window.__shadowplayListeners;
  if (!listeners) return;
  for (const [type, fn] of Object.entries(listeners)) {
    window.removeEventListener(type, fn, {capture: true});
  }
  delete window.__shadowplayListeners;
}
"""


class PlaywrightCaptureSurface:
    """CaptureSurface over a Playwright page."""

    def __init__(self, page: Page, training_marker: str) -> None:
        self._page = page
        self._marker = training_marker
        self._callback: CaptureCallback | None = None
        self._bound = False

    def attach(self, callback: CaptureCallback) -> None:
        self._callback = callback
        if not self._bound:
            # Bindings cannot be removed; detach() just drops the callback.
            self._page.expose_binding(_BINDING_NAME, self._on_binding)
            self._bound = True
        self._page.evaluate(
            _INSTALL_JS,
            [_BINDING_NAME, self._marker, list(ELEMENT_ATTRIBUTE_WHITELIST), ELEMENT_TEXT_LIMIT],
        )
        logger.debug("Capture listeners installed")

    def detach(self) -> None:
        self._callback = None
        try:
            self._page.evaluate(_REMOVE_JS)
        except Exception as exc:
            # Page already closed; nothing left to unregister
            logger.debug("Capture listener removal skipped: %s", exc)

    def _on_binding(self, source: Any, kind: str, payload: dict[str, Any]) -> None:
        if self._callback is not None:
            self._callback(kind, payload or {})


class BrowserHost:
    """Owns the Playwright browser, context and host page."""

    def __init__(self, config: ShadowplayConfig, headless: bool | None = None) -> None:
        self._config = config
        self._headless = config.headless if headless is None else headless

        # Managed browser lifecycle -- set by start()/stop()
        self._playwright: Any = None
        self._browser: Any = None
        self._context: Any = None
        self._page: Any = None

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("Browser host is not started; call start() first")
        return self._page

    def start(self) -> Page:
        """Launch Chromium and open the host interface."""
        from playwright.sync_api import sync_playwright

        width, height = self._config.viewport
        self._playwright = sync_playwright().start()
        self._browser = self._playwright.chromium.launch(headless=self._headless)
        self._context = self._browser.new_context(
            viewport={"width": width, "height": height},
            screen={"width": width, "height": height},
            locale=self._config.locale,
        )
        self._page = self._context.new_page()
        if self._config.base_url:
            logger.info("Opening host interface: %s", self._config.base_url)
            self._page.goto(self._config.base_url, wait_until="domcontentloaded", timeout=30_000)
        return self._page

    def stop(self) -> None:
        """Close the browser and Playwright."""
        for resource in (self._context, self._browser):
            try:
                if resource is not None:
                    resource.close()
            except Exception as exc:
                logger.debug("Close failed: %s", exc)
        try:
            if self._playwright is not None:
                self._playwright.stop()
        except Exception as exc:
            logger.debug("Playwright stop failed: %s", exc)
        self._context = None
        self._browser = None
        self._playwright = None
        self._page = None

    def __enter__(self) -> BrowserHost:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def capture_surface(self) -> PlaywrightCaptureSurface:
        return PlaywrightCaptureSurface(self.page, self._config.training_marker)

    def pump(self, ms: int) -> None:
        """Let the page run (and deliver capture events) for *ms*."""
        self.page.wait_for_timeout(ms)

    @property
    def is_closed(self) -> bool:
        return self._page is None or self._page.is_closed()
