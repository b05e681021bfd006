"""Shadowplay Action Recorder -- captures a demonstration as an observation session.

Listens to a ``CaptureSurface`` (pointer clicks, key downs and wheel events
from the host interface) for the duration of one attempt and seals the
captured events into an immutable ``ObservationSession``.

Events raised inside the recorder's own training interface are dropped so a
behavior is never learned from the training UI itself.
"""

from __future__ import annotations

import contextlib
import logging
import time
import uuid
from collections.abc import Callable, Iterator
from typing import Any

from shadowplay.engine.observation import ACTION_KINDS, ElementDescriptor, ObservationSession, RawAction
from shadowplay.engine.protocols import CaptureSurface

logger = logging.getLogger("shadowplay.engine.recorder")


class CaptureError(Exception):
    """Raised when the capture surface refuses to install its listeners."""

    pass


class ActionRecorder:
    """Records one observation session at a time.

    Usage::

        recorder = ActionRecorder(surface)
        with recorder.recording("Open settings", attempt_number=1):
            ...  # user demonstrates the task
        session = recorder.last_session

    The single-session guard is a plain boolean: the engine runs on one
    thread and capture callbacks are delivered on that same thread.
    """

    def __init__(
        self,
        surface: CaptureSurface,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Args:
            surface: Event source for the host interface.
            clock: Monotonic clock used for ``offset_ms`` (seconds).
            wall_clock: Epoch clock used for session start/end stamps.
        """
        self._surface = surface
        self._clock = clock
        self._wall_clock = wall_clock

        self._recording = False
        self._task_name = ""
        self._attempt_number = 0
        self._session_id = ""
        self._start_mono = 0.0
        self._start_wall = 0.0
        self._last_offset_ms = 0
        self._actions: list[RawAction] = []
        self.last_session: ObservationSession | None = None

    # -- Status --------------------------------------------------------------

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def action_count(self) -> int:
        return len(self._actions)

    @property
    def elapsed_ms(self) -> int:
        if not self._recording:
            return 0
        return round((self._clock() - self._start_mono) * 1000)

    # -- Lifecycle -----------------------------------------------------------

    def start(self, task_name: str, attempt_number: int) -> None:
        """Begin a session.  A no-op (with a warning) while one is active."""
        if self._recording:
            logger.warning(
                "Already recording '%s' (attempt %d); ignoring start for '%s'",
                self._task_name,
                self._attempt_number,
                task_name,
            )
            return

        self._recording = True
        self._task_name = task_name
        self._attempt_number = attempt_number
        self._session_id = str(uuid.uuid4())
        self._actions = []
        self._last_offset_ms = 0
        self._start_mono = self._clock()
        self._start_wall = self._wall_clock()

        try:
            self._surface.attach(self._on_event)
        except Exception as exc:
            self._recording = False
            self._actions = []
            raise CaptureError(f"Could not attach capture listeners: {exc}") from exc

        logger.info("Started recording: %s (attempt %d)", task_name, attempt_number)

    def stop(self) -> ObservationSession | None:
        """Seal and return the active session, or None when idle.

        Listeners are always detached, even when no session is active.
        """
        try:
            self._surface.detach()
        except Exception as exc:
            logger.warning("Detaching capture listeners failed: %s", exc)

        if not self._recording:
            logger.warning("stop() called while not recording")
            return None

        self._recording = False
        session = ObservationSession(
            session_id=self._session_id,
            task_name=self._task_name,
            attempt_number=self._attempt_number,
            start_time=self._start_wall,
            end_time=self._wall_clock(),
            actions=tuple(self._actions),
        )
        self._actions = []
        self.last_session = session

        logger.info("Stopped recording: %d actions captured", len(session.actions))
        return session

    @contextlib.contextmanager
    def recording(self, task_name: str, attempt_number: int) -> Iterator[ActionRecorder]:
        """Record for the duration of the block; always stops on exit."""
        self.start(task_name, attempt_number)
        try:
            yield self
        finally:
            self.stop()

    # -- Capture -------------------------------------------------------------

    def _on_event(self, kind: str, payload: dict[str, Any]) -> None:
        if not self._recording:
            return
        if kind not in ACTION_KINDS:
            logger.debug("Ignoring unsupported event kind: %s", kind)
            return
        if payload.get("own_surface"):
            return

        # Offsets are relative to the session start and never go backwards
        offset_ms = max(round((self._clock() - self._start_mono) * 1000), self._last_offset_ms)
        self._last_offset_ms = offset_ms

        action = RawAction(kind=kind, offset_ms=offset_ms, payload=self._normalize_payload(kind, payload))
        self._actions.append(action)
        logger.debug("Captured %s at +%dms: %s", kind, offset_ms, action.payload)

    @staticmethod
    def _normalize_payload(kind: str, payload: dict[str, Any]) -> dict[str, Any]:
        element = ElementDescriptor.from_dict(payload.get("element"))
        element_dict = element.to_dict() if element else None

        if kind == "pointer":
            return {
                "x": float(payload.get("x") or 0),
                "y": float(payload.get("y") or 0),
                "button": "right" if payload.get("button") in (2, "right") else "left",
                "click_count": int(payload.get("click_count") or 1),
                "element": element_dict,
            }
        if kind == "key":
            key = str(payload.get("key") or "")
            return {
                "key": key,
                "code": str(payload.get("code") or ""),
                # Only single printable characters count as literal text
                "text": key if len(key) == 1 else None,
                "element": element_dict,
            }
        return {
            "delta_y": float(payload.get("delta_y") or 0),
            "x": float(payload.get("x") or 0),
            "y": float(payload.get("y") or 0),
            "element": element_dict,
        }
