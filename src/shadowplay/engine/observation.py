"""Observation data model -- raw actions and recorded sessions.

A session is one timestamped recording of a user performing a task once.
Actions keep the order they were captured in; ``offset_ms`` is relative to
the session start so attempts recorded at different times stay comparable.
"""

from __future__ import annotations

import dataclasses
import json
from pathlib import Path
from typing import Any

from shadowplay.config import ShadowplayConfigError
from shadowplay.models import ELEMENT_ATTRIBUTE_WHITELIST, ELEMENT_TEXT_LIMIT

ACTION_KINDS = ("pointer", "key", "wheel")


@dataclasses.dataclass(frozen=True)
class ElementDescriptor:
    """Identity of an event target, used only for matching."""

    tag: str
    element_id: str | None = None
    classes: tuple[str, ...] = ()
    text: str | None = None
    attributes: tuple[tuple[str, str], ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ElementDescriptor | None:
        if not data:
            return None
        text = (data.get("text") or "").strip()[:ELEMENT_TEXT_LIMIT]
        raw_classes = data.get("classes") or data.get("className") or ()
        if isinstance(raw_classes, str):
            raw_classes = raw_classes.split()
        attrs = data.get("attributes") or {}
        kept = tuple(sorted((k, str(v)) for k, v in attrs.items() if k in ELEMENT_ATTRIBUTE_WHITELIST))
        return cls(
            tag=str(data.get("tag") or data.get("tagName") or "").lower(),
            element_id=data.get("element_id") or data.get("id") or None,
            classes=tuple(str(c) for c in raw_classes),
            text=text or None,
            attributes=kept,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "tag": self.tag,
            "element_id": self.element_id,
            "classes": list(self.classes),
            "text": self.text,
            "attributes": dict(self.attributes),
        }


@dataclasses.dataclass(frozen=True)
class RawAction:
    """A single captured input event.

    ``payload`` keys by kind:
      - pointer: x, y, button, click_count, element
      - key: key, code, text (only for single printable characters), element
      - wheel: delta_y, x, y, element
    """

    kind: str  # pointer, key, wheel
    offset_ms: int
    payload: dict[str, Any] = dataclasses.field(default_factory=dict)

    @property
    def element(self) -> ElementDescriptor | None:
        el = self.payload.get("element")
        if isinstance(el, ElementDescriptor):
            return el
        return ElementDescriptor.from_dict(el)

    @property
    def x(self) -> float:
        return float(self.payload.get("x") or 0)

    @property
    def y(self) -> float:
        return float(self.payload.get("y") or 0)

    @property
    def button(self) -> str:
        return self.payload.get("button") or "left"

    @property
    def text(self) -> str | None:
        return self.payload.get("text") or None

    @property
    def key(self) -> str | None:
        return self.payload.get("key") or None

    @property
    def delta_y(self) -> float:
        return float(self.payload.get("delta_y") or 0)

    def to_dict(self) -> dict[str, Any]:
        payload = dict(self.payload)
        el = payload.get("element")
        if isinstance(el, ElementDescriptor):
            payload["element"] = el.to_dict()
        return {"kind": self.kind, "offset_ms": self.offset_ms, "payload": payload}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RawAction:
        return cls(
            kind=str(data["kind"]),
            offset_ms=int(data["offset_ms"]),
            payload=dict(data.get("payload") or {}),
        )


@dataclasses.dataclass(frozen=True)
class ObservationSession:
    """One sealed recording of a task attempt."""

    session_id: str
    task_name: str
    attempt_number: int
    start_time: float  # epoch seconds
    end_time: float
    actions: tuple[RawAction, ...] = ()

    @property
    def duration_ms(self) -> int:
        return max(0, int(round((self.end_time - self.start_time) * 1000)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "task_name": self.task_name,
            "attempt_number": self.attempt_number,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "actions": [a.to_dict() for a in self.actions],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ObservationSession:
        return cls(
            session_id=str(data["session_id"]),
            task_name=str(data["task_name"]),
            attempt_number=int(data.get("attempt_number", 1)),
            start_time=float(data.get("start_time", 0.0)),
            end_time=float(data.get("end_time", 0.0)),
            actions=tuple(RawAction.from_dict(a) for a in data.get("actions", [])),
        )

    def save(self, path: Path) -> Path:
        """Write the session as JSON, creating parent directories."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2), encoding="utf-8")
        return path

    @classmethod
    def load(cls, path: Path) -> ObservationSession:
        """Read a saved session.

        Raises:
            ShadowplayConfigError: the file is not a readable session.
        """
        try:
            return cls.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise ShadowplayConfigError(
                f"Corrupt session file: {path}: {exc}\n\nTo fix: delete it or record the attempt again"
            ) from exc


def load_sessions(directory: Path) -> list[ObservationSession]:
    """Load every ``*.json`` session in *directory*, ordered by attempt number."""
    if not directory.is_dir():
        return []
    sessions = [ObservationSession.load(p) for p in sorted(directory.glob("*.json"))]
    return sorted(sessions, key=lambda s: (s.attempt_number, s.start_time))
