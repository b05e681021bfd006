"""Playwright adapters for the resolver, interpreter and window ports.

- PlaywrightUITree: element snapshots of the rendered DOM (zero-area
  elements are dropped in the page).
- PlaywrightInputInjector: real mouse/keyboard input through ``page.mouse``
  and ``page.keyboard``; typing and drags are staged with page-side waits.
- PageWindowManager: delegates window lifecycle to a JS host object the
  page exposes (``openApp``, ``closeWindow``, ``focusWindow``, ``moveWindow``).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from shadowplay.engine.protocols import ElementSnapshot
from shadowplay.models import ELEMENT_ATTRIBUTE_WHITELIST

if TYPE_CHECKING:
    from playwright.sync_api import Page

logger = logging.getLogger("shadowplay.engine.browser_adapters")

_SNAPSHOT_ATTRIBUTES = list(ELEMENT_ATTRIBUTE_WHITELIST) + ["name", "title"]

# Shared by snapshot() and query_selector(); index is document order.
_DESCRIBE_FN = """
const __describe = (el, index, attrs) => {
  const rect = el.getBoundingClientRect();
  const attributes = {};
  for (const name of attrs) {
    const value = el.getAttribute(name);
    if (value !== null) attributes[name] = value;
  }
  const icons = [];
  if (el.getAttribute('data-icon')) icons.push(el.getAttribute('data-icon'));
  for (const icon of el.querySelectorAll('[data-icon]')) icons.push(icon.getAttribute('data-icon'));
  return {
    index,
    tag: el.tagName.toLowerCase(),
    text: (el.innerText || el.textContent || '').trim().slice(0, 500),
    element_id: el.id || '',
    classes: typeof el.className === 'string' ? el.className.split(/\\s+/).filter(Boolean) : [],
    role: el.getAttribute('role') || '',
    attributes,
    icons,
    x: rect.left, y: rect.top, width: rect.width, height: rect.height,
  };
};
"""

_SNAPSHOT_JS = (
    "(attrs) => {"
    + _DESCRIBE_FN
    + """
  const out = [];
  document.querySelectorAll('*').forEach((el, i) => {
    const rect = el.getBoundingClientRect();
    if (rect.width > 0 && rect.height > 0) out.push(__describe(el, i, attrs));
  });
  return out;
}"""
)

_DESCRIBE_ONE_JS = (
    "(el, attrs) => {"
    + _DESCRIBE_FN
    + """
  return __describe(el, Array.prototype.indexOf.call(document.querySelectorAll('*'), el), attrs);
}"""
)

_FOCUS_JS = """
([index, x, y]) => {
  let el = document.querySelectorAll('*')[index];
  if (!el || !el.isConnected) el = document.elementFromPoint(x, y);
  if (el && typeof el.focus === 'function') el.focus();
}
"""

_WINDOW_CALL_JS = """
([globalName, method, args]) => {
  const host = window[globalName];
  if (!host || typeof host[method] !== 'function') {
    throw new Error('Window manager ' + globalName + '.' + method + ' is not available');
  }
  return host[method](...args);
}
"""


def _to_snapshot(data: dict[str, Any]) -> ElementSnapshot:
    return ElementSnapshot(
        index=int(data.get("index", -1)),
        tag=str(data.get("tag", "")),
        text=str(data.get("text", "")),
        element_id=str(data.get("element_id", "")),
        classes=list(data.get("classes", [])),
        role=str(data.get("role", "")),
        attributes=dict(data.get("attributes", {})),
        icons=list(data.get("icons", [])),
        x=float(data.get("x", 0)),
        y=float(data.get("y", 0)),
        width=float(data.get("width", 0)),
        height=float(data.get("height", 0)),
    )


class PlaywrightUITree:
    """UITree over the page DOM."""

    def __init__(self, page: Page) -> None:
        self._page = page

    def query_selector(self, selector: str) -> ElementSnapshot | None:
        try:
            handle = self._page.query_selector(selector)
        except Exception as exc:
            # Invalid selector syntax is a miss, not a failure
            logger.debug("Selector %r rejected: %s", selector, exc)
            return None
        if handle is None:
            return None
        return _to_snapshot(handle.evaluate(_DESCRIBE_ONE_JS, _SNAPSHOT_ATTRIBUTES))

    def snapshot(self) -> list[ElementSnapshot]:
        return [_to_snapshot(item) for item in self._page.evaluate(_SNAPSHOT_JS, _SNAPSHOT_ATTRIBUTES)]


class PlaywrightInputInjector:
    """InputInjector through Playwright's mouse and keyboard."""

    def __init__(self, page: Page) -> None:
        self._page = page

    def move(self, x: float, y: float) -> None:
        self._page.mouse.move(x, y)

    def click(self, x: float, y: float, button: str = "left", click_count: int = 1) -> None:
        self._page.mouse.click(x, y, button=button, click_count=click_count)

    def scroll(self, x: float, y: float, delta_y: float) -> None:
        self._page.mouse.move(x, y)
        self._page.mouse.wheel(0, delta_y)

    def drag(
        self,
        start: tuple[float, float],
        end: tuple[float, float],
        steps: int,
        step_delay_ms: int,
        checkpoint: Callable[[], None] | None = None,
    ) -> None:
        mouse = self._page.mouse
        mouse.move(*start)
        mouse.down()
        try:
            for i in range(1, steps + 1):
                if checkpoint is not None:
                    checkpoint()
                mouse.move(
                    start[0] + (end[0] - start[0]) * i / steps,
                    start[1] + (end[1] - start[1]) * i / steps,
                )
                self._page.wait_for_timeout(step_delay_ms)
        finally:
            mouse.up()

    def type_text(self, text: str, delay_ms: int, checkpoint: Callable[[], None] | None = None) -> None:
        for i, char in enumerate(text):
            if checkpoint is not None:
                checkpoint()
            if i and delay_ms:
                self._page.wait_for_timeout(delay_ms)
            self._page.keyboard.type(char)

    def press_key(self, key: str) -> None:
        self._page.keyboard.press(key)

    def key_combo(self, modifiers: list[str], key: str) -> None:
        self._page.keyboard.press("+".join([*modifiers, key]))

    def focus(self, element: ElementSnapshot) -> None:
        x, y = element.center
        self._page.evaluate(_FOCUS_JS, [element.index, x, y])

    def pause(self, ms: int) -> None:
        self._page.wait_for_timeout(ms)


class PageWindowManager:
    """WindowManager backed by a JS object on the host page."""

    def __init__(self, page: Page, global_name: str = "__shadowplayHost") -> None:
        self._page = page
        self._global = global_name

    def _call(self, method: str, *args: Any) -> Any:
        logger.debug("Window manager call: %s%s", method, args)
        return self._page.evaluate(_WINDOW_CALL_JS, [self._global, method, list(args)])

    def open(self, app_id: str) -> None:
        self._call("openApp", app_id)

    def close(self, window_id: str) -> None:
        self._call("closeWindow", window_id)

    def focus(self, window_id: str) -> None:
        self._call("focusWindow", window_id)

    def move(self, window_id: str, x: float, y: float) -> None:
        self._call("moveWindow", window_id, x, y)
