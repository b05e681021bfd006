"""Shadowplay environment ports.

These protocols define the contract between the environment-agnostic engine
(recorder, pattern learner, resolver, interpreter, knowledge store) and the
adapters that touch a real interface or persistence substrate.

BrowserHost / the browser adapters implement them on top of Playwright;
the unit tests implement them with in-memory fakes.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

# Callback a capture surface invokes for every raw input event:
# ``(kind, payload)`` where kind is "pointer", "key" or "wheel".
CaptureCallback = Callable[[str, dict[str, Any]], None]


@dataclasses.dataclass
class ElementSnapshot:
    """One rendered element of the live UI tree, as seen by the resolver."""

    index: int  # Document order
    tag: str
    text: str = ""
    element_id: str = ""
    classes: list[str] = dataclasses.field(default_factory=list)
    role: str = ""
    attributes: dict[str, str] = dataclasses.field(default_factory=dict)
    icons: list[str] = dataclasses.field(default_factory=list)  # data-icon names of nested svg/img
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def has_area(self) -> bool:
        return self.width > 0 and self.height > 0

    @property
    def center(self) -> tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2

    @property
    def is_text_input(self) -> bool:
        return self.tag in ("input", "textarea")


@runtime_checkable
class CaptureSurface(Protocol):
    """Source of real user input events in the host interface.

    ``attach`` must install listeners at the earliest event phase so the
    host application cannot suppress capture.  ``detach`` must be safe to
    call repeatedly.
    """

    def attach(self, callback: CaptureCallback) -> None: ...

    def detach(self) -> None: ...


@runtime_checkable
class UITree(Protocol):
    """Read-only view of the currently rendered interface."""

    def query_selector(self, selector: str) -> ElementSnapshot | None: ...

    def snapshot(self) -> list[ElementSnapshot]: ...


@runtime_checkable
class InputInjector(Protocol):
    """Synthesizes platform input events.

    Every method returns only after its last synthetic event has fired.
    Staged methods (``type_text``, ``drag``) call ``checkpoint`` between
    stages so a replay can be cancelled mid-action.
    """

    def move(self, x: float, y: float) -> None: ...

    def click(self, x: float, y: float, button: str = "left", click_count: int = 1) -> None: ...

    def scroll(self, x: float, y: float, delta_y: float) -> None: ...

    def drag(
        self,
        start: tuple[float, float],
        end: tuple[float, float],
        steps: int,
        step_delay_ms: int,
        checkpoint: Callable[[], None] | None = None,
    ) -> None: ...

    def type_text(self, text: str, delay_ms: int, checkpoint: Callable[[], None] | None = None) -> None: ...

    def press_key(self, key: str) -> None: ...

    def key_combo(self, modifiers: list[str], key: str) -> None: ...

    def focus(self, element: ElementSnapshot) -> None: ...

    def pause(self, ms: int) -> None: ...


@runtime_checkable
class WindowManager(Protocol):
    """External window manager of the host application."""

    def open(self, app_id: str) -> None: ...

    def close(self, window_id: str) -> None: ...

    def focus(self, window_id: str) -> None: ...

    def move(self, window_id: str, x: float, y: float) -> None: ...


@runtime_checkable
class KeyValueStore(Protocol):
    """String key-value persistence substrate (localStorage analogue)."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...
