"""Unit tests for the Playwright adapters, driven through mocked pages."""

from __future__ import annotations

from unittest.mock import MagicMock, call

import pytest

from fakes import element

from shadowplay.config import ShadowplayConfig
from shadowplay.engine.browser_adapters import PageWindowManager, PlaywrightInputInjector, PlaywrightUITree
from shadowplay.engine.browser_host import BrowserHost, PlaywrightCaptureSurface
from shadowplay.engine.protocols import CaptureSurface, InputInjector, UITree, WindowManager


@pytest.fixture
def page() -> MagicMock:
    return MagicMock()


# ---------------------------------------------------------------------------
# 1. UI tree
# ---------------------------------------------------------------------------

class TestPlaywrightUITree:

    def test_snapshot_converts_payloads(self, page: MagicMock):
        page.evaluate.return_value = [
            {"index": 3, "tag": "button", "text": "Save", "role": "button", "x": 10, "y": 20, "width": 80, "height": 24}
        ]
        tree = PlaywrightUITree(page)
        assert isinstance(tree, UITree)
        [snap] = tree.snapshot()
        assert snap.index == 3
        assert snap.center == (50.0, 32.0)
        assert snap.has_area

    def test_query_selector_miss(self, page: MagicMock):
        page.query_selector.return_value = None
        assert PlaywrightUITree(page).query_selector("#nope") is None

    def test_invalid_selector_is_a_miss(self, page: MagicMock):
        page.query_selector.side_effect = RuntimeError("Unexpected token")
        assert PlaywrightUITree(page).query_selector("##") is None

    def test_query_selector_hit(self, page: MagicMock):
        handle = MagicMock()
        handle.evaluate.return_value = {"index": 1, "tag": "input", "width": 5, "height": 5}
        page.query_selector.return_value = handle
        snap = PlaywrightUITree(page).query_selector("input")
        assert snap.tag == "input"
        assert snap.is_text_input


# ---------------------------------------------------------------------------
# 2. Input injector
# ---------------------------------------------------------------------------

class TestPlaywrightInputInjector:

    def test_is_an_input_injector(self, page: MagicMock):
        assert isinstance(PlaywrightInputInjector(page), InputInjector)

    def test_click_and_scroll(self, page: MagicMock):
        injector = PlaywrightInputInjector(page)
        injector.click(1, 2, button="right", click_count=1)
        injector.scroll(5, 6, -120)
        page.mouse.click.assert_called_once_with(1, 2, button="right", click_count=1)
        page.mouse.move.assert_called_once_with(5, 6)
        page.mouse.wheel.assert_called_once_with(0, -120)

    def test_type_text_paces_between_characters(self, page: MagicMock):
        checkpoints = []
        PlaywrightInputInjector(page).type_text("abc", 30, checkpoint=lambda: checkpoints.append(1))
        assert page.keyboard.type.call_args_list == [call("a"), call("b"), call("c")]
        assert page.wait_for_timeout.call_count == 2
        assert len(checkpoints) == 3

    def test_drag_interpolates_and_always_releases(self, page: MagicMock):
        injector = PlaywrightInputInjector(page)
        injector.drag((0, 0), (100, 50), steps=2, step_delay_ms=5)
        assert page.mouse.move.call_args_list == [call(0, 0), call(50.0, 25.0), call(100.0, 50.0)]
        page.mouse.down.assert_called_once()
        page.mouse.up.assert_called_once()

        page.reset_mock()

        def stop():
            raise KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            injector.drag((0, 0), (10, 10), steps=3, step_delay_ms=0, checkpoint=stop)
        page.mouse.up.assert_called_once()

    def test_keys(self, page: MagicMock):
        injector = PlaywrightInputInjector(page)
        injector.press_key("Enter")
        injector.key_combo(["Control", "Shift"], "s")
        assert page.keyboard.press.call_args_list == [call("Enter"), call("Control+Shift+s")]

    def test_focus_passes_index_and_center(self, page: MagicMock):
        PlaywrightInputInjector(page).focus(element(7, "input", x=0, y=0, width=20, height=10))
        args = page.evaluate.call_args[0]
        assert args[1] == [7, 10.0, 5.0]


# ---------------------------------------------------------------------------
# 3. Window manager
# ---------------------------------------------------------------------------

class TestPageWindowManager:

    def test_calls_host_object(self, page: MagicMock):
        wm = PageWindowManager(page, "__host")
        assert isinstance(wm, WindowManager)
        wm.open("notes")
        wm.move("w1", 10, 20)
        payloads = [c[0][1] for c in page.evaluate.call_args_list]
        assert payloads == [["__host", "openApp", ["notes"]], ["__host", "moveWindow", ["w1", 10, 20]]]


# ---------------------------------------------------------------------------
# 4. Capture surface and host
# ---------------------------------------------------------------------------

class TestCaptureSurface:

    def test_binding_exposed_once_and_forwards(self, page: MagicMock):
        surface = PlaywrightCaptureSurface(page, "data-training-interface")
        assert isinstance(surface, CaptureSurface)
        received = []
        surface.attach(lambda kind, payload: received.append((kind, payload)))
        surface.detach()
        surface.attach(lambda kind, payload: received.append((kind, payload)))
        assert page.expose_binding.call_count == 1

        binding = page.expose_binding.call_args[0][1]
        binding(None, "key", {"key": "a"})
        assert received == [("key", {"key": "a"})]

    def test_detached_surface_drops_events(self, page: MagicMock):
        surface = PlaywrightCaptureSurface(page, "marker")
        received = []
        surface.attach(lambda kind, payload: received.append(kind))
        binding = page.expose_binding.call_args[0][1]
        surface.detach()
        binding(None, "key", {"key": "a"})
        assert received == []

    def test_detach_survives_closed_page(self, page: MagicMock):
        page.evaluate.side_effect = RuntimeError("Target closed")
        PlaywrightCaptureSurface(page, "marker").detach()


class TestBrowserHost:

    def test_page_requires_start(self):
        host = BrowserHost(ShadowplayConfig())
        with pytest.raises(RuntimeError):
            host.page
        assert host.is_closed

    def test_stop_is_safe_when_never_started(self):
        BrowserHost(ShadowplayConfig()).stop()
