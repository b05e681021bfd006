"""Shadowplay Command Interpreter -- replays a command sequence against the live UI.

Grammar: ``verb (":" arg)*``

    MOUSE_MOVE:x:y          CLICK            RIGHT_CLICK       DOUBLE_CLICK
    SCROLL:up|down:amount   DRAG:x1:y1:x2:y2
    TYPE:<text>             PRESS_KEY:<key>  KEY_COMBO:<mod+mod+key>
    BACKSPACE[:count]       FOCUS_ELEMENT:<locator>            WAIT[:ms]
    OPEN_APP:<id>           CLOSE_WINDOW:<id>                  FOCUS_WINDOW:<id>
    MOVE_WINDOW:<id>[:x:y]  FINISHED

TYPE, PRESS_KEY, KEY_COMBO and FOCUS_ELEMENT take the rest of the line as
their single argument, so literal text may contain colons.

A plan entry may chain commands with `` then `` (``FOCUS_ELEMENT:Save then
CLICK``); the chain runs in order and a failing link skips the rest of it.
``{name}`` slots are filled from the ``variables`` mapping given to
``execute``; ``{{`` and ``}}`` are literal braces.

Commands run strictly one after another.  Staged actions (typing, drag,
waits) return only after their last synthetic event, and a cancellation
token is checked between commands and between stages.  Per-command failures
are logged and skipped; the sequence carries on.
"""

from __future__ import annotations

import dataclasses
import logging
import re
import threading
import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from shadowplay.engine.element_resolver import ElementResolver, Locator
from shadowplay.engine.protocols import InputInjector, WindowManager
from shadowplay.models import (
    DEFAULT_WAIT_MS,
    DRAG_STEP_DELAY_MS,
    DRAG_STEPS,
    TYPING_DELAY_MS,
    WAIT_SLICE_MS,
)

logger = logging.getLogger("shadowplay.engine.interpreter")


class CommandParseError(ValueError):
    """Raised for an unknown verb or malformed arguments."""

    pass


class ElementNotFoundError(Exception):
    """Raised when a command's target element cannot be resolved."""

    pass


class ReplayCancelled(Exception):
    """Raised inside a replay once its CancelToken is cancelled."""

    pass


class CancelToken:
    """Thread-safe stop signal for an in-flight replay."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ReplayCancelled("Replay cancelled")


# verb -> (min args, max args); None max means "rest of line as one argument"
_ARITY: dict[str, tuple[int, int | None]] = {
    "MOUSE_MOVE": (2, 2),
    "CLICK": (0, 0),
    "RIGHT_CLICK": (0, 0),
    "DOUBLE_CLICK": (0, 0),
    "SCROLL": (2, 2),
    "DRAG": (4, 4),
    "TYPE": (1, None),
    "PRESS_KEY": (1, None),
    "KEY_COMBO": (1, None),
    "BACKSPACE": (0, 1),
    "FOCUS_ELEMENT": (1, None),
    "WAIT": (0, 1),
    "OPEN_APP": (1, 1),
    "CLOSE_WINDOW": (1, 1),
    "FOCUS_WINDOW": (1, 1),
    "MOVE_WINDOW": (1, 3),
    "FINISHED": (0, 0),
}

_MODIFIERS = {
    "ctrl": "Control",
    "control": "Control",
    "alt": "Alt",
    "option": "Alt",
    "shift": "Shift",
    "meta": "Meta",
    "cmd": "Meta",
    "command": "Meta",
}

_KEY_ALIASES = {
    "enter": "Enter",
    "return": "Enter",
    "esc": "Escape",
    "escape": "Escape",
    "tab": "Tab",
    "space": " ",
    "backspace": "Backspace",
    "delete": "Delete",
    "up": "ArrowUp",
    "down": "ArrowDown",
    "left": "ArrowLeft",
    "right": "ArrowRight",
    "home": "Home",
    "end": "End",
}

_COMPOUND_SPLIT = re.compile(r" then (?=[A-Z_]+(?::|$))")
_SLOT = re.compile(r"\{\{|\}\}|\{(\w+)\}")
_COMMAND_TAG = re.compile(r"\[COMMAND:(.+?)\]")


@dataclasses.dataclass(frozen=True)
class Command:
    verb: str
    args: tuple[str, ...] = ()
    raw: str = ""


def parse_command(text: str) -> Command:
    """Parse one command string.

    Raises:
        CommandParseError: unknown verb, wrong arity or a malformed number.
    """
    line = text.lstrip().rstrip("\r\n")
    verb, sep, rest = line.partition(":")
    verb = verb.strip().upper()
    if verb not in _ARITY:
        raise CommandParseError(f"Unknown command: {verb or text!r}")

    low, high = _ARITY[verb]
    if high is None:
        # TYPE keeps whitespace-only text such as a single space
        keep = bool(rest) if verb == "TYPE" else bool(rest.strip())
        args: tuple[str, ...] = (rest,) if sep and keep else ()
    else:
        args = tuple(a.strip() for a in rest.split(":")) if sep else ()

    if not (low <= len(args) <= (high if high is not None else 1)):
        raise CommandParseError(f"{verb} takes {low}-{high if high is not None else 1} argument(s), got {len(args)}")
    if verb == "MOVE_WINDOW" and len(args) == 2:
        raise CommandParseError("MOVE_WINDOW takes an id and optionally both x and y")

    command = Command(verb=verb, args=args, raw=line)
    _validate(command)
    return command


def _validate(command: Command) -> None:
    verb, args = command.verb, command.args
    if verb in ("MOUSE_MOVE", "DRAG") or (verb == "MOVE_WINDOW" and len(args) == 3):
        numeric = args if verb != "MOVE_WINDOW" else args[1:]
        for value in numeric:
            _to_float(value, verb)
    elif verb == "SCROLL":
        if args[0].lower() not in ("up", "down"):
            raise CommandParseError(f"SCROLL direction must be up or down, got {args[0]!r}")
        _to_int(args[1], verb)
    elif verb in ("BACKSPACE", "WAIT") and args:
        _to_int(args[0], verb)
    elif verb == "KEY_COMBO":
        parse_key_combo(args[0])


def _to_float(value: str, verb: str) -> float:
    try:
        return float(value)
    except ValueError:
        raise CommandParseError(f"{verb}: not a number: {value!r}") from None


def _to_int(value: str, verb: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise CommandParseError(f"{verb}: not a whole number: {value!r}") from None
    if number < 0:
        raise CommandParseError(f"{verb}: must not be negative: {number}")
    return number


def parse_key_combo(combo: str) -> tuple[list[str], str]:
    """Split ``ctrl+shift+s`` into (["Control", "Shift"], "s")."""
    parts = [p.strip() for p in combo.split("+")]
    key = parts[-1]
    if not key:
        raise CommandParseError(f"KEY_COMBO without a key: {combo!r}")
    modifiers = []
    for part in parts[:-1]:
        modifier = _MODIFIERS.get(part.lower())
        if modifier is None:
            raise CommandParseError(f"Unknown modifier {part!r} in {combo!r}")
        modifiers.append(modifier)
    return modifiers, normalize_key(key)


def normalize_key(key: str) -> str:
    return _KEY_ALIASES.get(key.lower(), key) if len(key) > 1 else key


def split_compound(entry: str) -> list[str]:
    return _COMPOUND_SPLIT.split(entry)


def fill_slots(entry: str, variables: Mapping[str, Any] | None) -> tuple[str, list[str]]:
    """Substitute ``{name}`` slots.  Returns (text, names left unfilled).

    ``{{`` and ``}}`` stand for literal braces.
    """
    missing: list[str] = []

    def _sub(match: re.Match[str]) -> str:
        name = match.group(1)
        if name is None:
            return match.group(0)[0]
        if variables is not None and name in variables:
            return str(variables[name])
        missing.append(name)
        return match.group(0)

    return _SLOT.sub(_sub, entry), missing


def extract_commands(text: str) -> list[str]:
    """Commands from free-form instruction text.

    ``[COMMAND:...]`` tags win when present; otherwise every non-blank line
    that is not a ``#`` comment is a command.
    """
    tagged = _COMMAND_TAG.findall(text)
    if tagged:
        return tagged
    return [line.strip() for line in text.splitlines() if line.strip() and not line.lstrip().startswith("#")]


@dataclasses.dataclass
class ReplayResult:
    """Outcome of one ``execute`` call."""

    executed: list[str] = dataclasses.field(default_factory=list)
    skipped: list[tuple[str, str]] = dataclasses.field(default_factory=list)  # (command, reason)
    entries: list[tuple[str, str, str]] = dataclasses.field(default_factory=list)  # (entry, "ok"|"skip", note)
    finished: bool = False
    cancelled: bool = False
    duration_ms: float = 0.0
    log_lines: list[str] = dataclasses.field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.cancelled and not self.skipped

    @property
    def failure_reason(self) -> str | None:
        if self.cancelled:
            return "cancelled"
        if self.skipped:
            command, reason = self.skipped[0]
            return f"{command}: {reason}"
        return None


class CommandInterpreter:
    """Executes command sequences through the resolver, injector and window manager."""

    def __init__(
        self,
        resolver: ElementResolver,
        injector: InputInjector,
        window_manager: WindowManager | None = None,
        typing_delay_ms: int = TYPING_DELAY_MS,
        drag_steps: int = DRAG_STEPS,
        drag_step_delay_ms: int = DRAG_STEP_DELAY_MS,
        command_delay_ms: int = 0,
        on_log: Callable[[str], None] | None = None,
        on_cursor: Callable[[float, float], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._resolver = resolver
        self._injector = injector
        self._window_manager = window_manager
        self._typing_delay_ms = typing_delay_ms
        self._drag_steps = drag_steps
        self._drag_step_delay_ms = drag_step_delay_ms
        self._command_delay_ms = command_delay_ms
        self._on_log = on_log
        self._on_cursor = on_cursor
        self._clock = clock

        self._cursor: tuple[float, float] = (0.0, 0.0)
        self._token = CancelToken()
        self._result = ReplayResult()

    @classmethod
    def from_config(cls, config: Any, resolver: ElementResolver, injector: InputInjector, **kwargs: Any) -> CommandInterpreter:
        """Build an interpreter with the pacing values of a ShadowplayConfig."""
        return cls(
            resolver,
            injector,
            typing_delay_ms=config.typing_delay_ms,
            drag_steps=config.drag_steps,
            drag_step_delay_ms=config.drag_step_delay_ms,
            command_delay_ms=config.command_delay_ms,
            **kwargs,
        )

    @property
    def cursor(self) -> tuple[float, float]:
        return self._cursor

    # -- Execution -----------------------------------------------------------

    def execute(
        self,
        commands: Sequence[str],
        variables: Mapping[str, Any] | None = None,
        cancel_token: CancelToken | None = None,
    ) -> ReplayResult:
        """Run *commands* in order and report what happened.

        Never raises for a failing command or a cancellation; both are
        reflected in the returned ReplayResult.
        """
        self._token = cancel_token or CancelToken()
        self._result = result = ReplayResult()
        started = self._clock()
        logger.info("Replay started: %d commands", len(commands))

        try:
            for entry in commands:
                self._token.raise_if_cancelled()
                self._run_entry(entry, variables)
                if result.finished:
                    break
                if self._command_delay_ms:
                    self._wait(self._command_delay_ms)
        except ReplayCancelled:
            result.cancelled = True
            self._log("Replay cancelled.")

        result.duration_ms = (self._clock() - started) * 1000
        logger.info(
            "Replay finished: %d executed, %d skipped%s",
            len(result.executed),
            len(result.skipped),
            " (cancelled)" if result.cancelled else "",
        )
        return result

    def _run_entry(self, entry: str, variables: Mapping[str, Any] | None) -> None:
        filled, missing = fill_slots(entry, variables)
        if missing:
            reason = f"unfilled slot(s): {', '.join(missing)}"
            self._skip(entry, reason)
            self._result.entries.append((entry, "skip", reason))
            return

        for raw in split_compound(filled):
            self._token.raise_if_cancelled()
            try:
                command = parse_command(raw)
                self._log(f"Executing: {command.raw}")
                self._dispatch(command)
            except ReplayCancelled:
                raise
            except (CommandParseError, ElementNotFoundError) as exc:
                reason = str(exc)
            except Exception as exc:
                logger.error("Command failed: %s", raw, exc_info=True)
                reason = f"{type(exc).__name__}: {exc}"
            else:
                self._result.executed.append(command.raw)
                if command.verb == "FINISHED":
                    self._result.finished = True
                    break
                continue
            self._skip(raw, reason)
            self._result.entries.append((entry, "skip", reason))
            return

        self._result.entries.append((entry, "ok", ""))

    def _dispatch(self, command: Command) -> None:
        verb, args = command.verb, command.args
        inj = self._injector

        if verb == "MOUSE_MOVE":
            x, y = float(args[0]), float(args[1])
            inj.move(x, y)
            self._set_cursor(x, y)
        elif verb in ("CLICK", "RIGHT_CLICK", "DOUBLE_CLICK"):
            x, y = self._cursor
            inj.click(
                x,
                y,
                button="right" if verb == "RIGHT_CLICK" else "left",
                click_count=2 if verb == "DOUBLE_CLICK" else 1,
            )
        elif verb == "SCROLL":
            amount = int(args[1])
            x, y = self._cursor
            inj.scroll(x, y, amount if args[0].lower() == "down" else -amount)
        elif verb == "DRAG":
            x1, y1, x2, y2 = (float(a) for a in args)
            self._set_cursor(x1, y1)
            inj.drag(
                (x1, y1),
                (x2, y2),
                steps=self._drag_steps,
                step_delay_ms=self._drag_step_delay_ms,
                checkpoint=self._token.raise_if_cancelled,
            )
            self._set_cursor(x2, y2)
        elif verb == "TYPE":
            inj.type_text(args[0], self._typing_delay_ms, checkpoint=self._token.raise_if_cancelled)
        elif verb == "PRESS_KEY":
            inj.press_key(normalize_key(args[0].strip() or args[0]))
        elif verb == "KEY_COMBO":
            modifiers, key = parse_key_combo(args[0])
            inj.key_combo(modifiers, key)
        elif verb == "BACKSPACE":
            for _ in range(int(args[0]) if args else 1):
                self._token.raise_if_cancelled()
                inj.press_key("Backspace")
        elif verb == "FOCUS_ELEMENT":
            self._focus_element(args[0])
        elif verb == "WAIT":
            self._wait(int(args[0]) if args else DEFAULT_WAIT_MS)
        elif verb == "FINISHED":
            self._log("Goal completed.")
        else:
            self._dispatch_window(verb, args)

    def _dispatch_window(self, verb: str, args: tuple[str, ...]) -> None:
        if self._window_manager is None:
            raise RuntimeError("No window manager attached")
        wm = self._window_manager
        if verb == "OPEN_APP":
            wm.open(args[0])
        elif verb == "CLOSE_WINDOW":
            wm.close(args[0])
        elif verb == "FOCUS_WINDOW":
            wm.focus(args[0])
        elif verb == "MOVE_WINDOW":
            x, y = (float(args[1]), float(args[2])) if len(args) == 3 else self._cursor
            wm.move(args[0], x, y)

    def _focus_element(self, raw_locator: str) -> None:
        element = self._resolver.resolve(Locator.parse(raw_locator))
        if element is None:
            logger.warning("Element not found: %s", raw_locator)
            raise ElementNotFoundError(f"element not found: {raw_locator.strip()}")
        x, y = element.center
        self._injector.move(x, y)
        self._set_cursor(x, y)
        self._injector.focus(element)
        if element.is_text_input:
            self._injector.click(x, y)
        self._log(f"Focused <{element.tag}> at [{round(x)}, {round(y)}]")

    def _wait(self, ms: int) -> None:
        remaining = ms
        while remaining > 0:
            self._token.raise_if_cancelled()
            chunk = min(remaining, WAIT_SLICE_MS)
            self._injector.pause(chunk)
            remaining -= chunk
        self._token.raise_if_cancelled()

    # -- Output --------------------------------------------------------------

    def _set_cursor(self, x: float, y: float) -> None:
        self._cursor = (x, y)
        if self._on_cursor is not None:
            self._on_cursor(x, y)

    def _skip(self, command: str, reason: str) -> None:
        self._result.skipped.append((command, reason))
        logger.warning("Skipped %s: %s", command, reason)
        self._log(f"Skipped: {command} ({reason})")

    def _log(self, line: str) -> None:
        self._result.log_lines.append(line)
        logger.debug(line)
        if self._on_log is not None:
            self._on_log(line)
