"""Unit tests for shadowplay.engine.interpreter -- parsing and replaying commands."""

from __future__ import annotations

import pytest

from fakes import FakeClock, FakeInjector, FakeUITree, FakeWindowManager, element

from shadowplay.config import ShadowplayConfig
from shadowplay.engine.element_resolver import ElementResolver
from shadowplay.engine.interpreter import (
    CancelToken,
    CommandInterpreter,
    CommandParseError,
    ReplayResult,
    extract_commands,
    fill_slots,
    parse_command,
    parse_key_combo,
    split_compound,
)


def _interpreter(injector: FakeInjector, elements=(), window_manager=None, **kwargs) -> CommandInterpreter:
    resolver = ElementResolver(FakeUITree(list(elements)))
    kwargs.setdefault("typing_delay_ms", 0)
    return CommandInterpreter(resolver, injector, window_manager=window_manager, **kwargs)


# ---------------------------------------------------------------------------
# 1. Parsing
# ---------------------------------------------------------------------------

class TestParseCommand:

    def test_positional_arguments(self):
        command = parse_command("MOUSE_MOVE:120:40")
        assert command.verb == "MOUSE_MOVE"
        assert command.args == ("120", "40")

    def test_verb_is_case_insensitive(self):
        assert parse_command("click").verb == "CLICK"

    def test_rest_of_line_arguments_keep_colons(self):
        assert parse_command("TYPE:time: 10:30").args == ("time: 10:30",)
        assert parse_command("FOCUS_ELEMENT:sig:role=button").args == ("sig:role=button",)

    def test_type_keeps_whitespace(self):
        assert parse_command("TYPE: ").args == (" ",)

    def test_optional_arguments(self):
        assert parse_command("WAIT").args == ()
        assert parse_command("BACKSPACE:3").args == ("3",)
        assert parse_command("MOVE_WINDOW:notes").args == ("notes",)
        assert parse_command("MOVE_WINDOW:notes:10:20").args == ("notes", "10", "20")

    @pytest.mark.parametrize(
        "text",
        [
            "JUMP",
            "CLICK:now",
            "MOUSE_MOVE:1",
            "MOUSE_MOVE:a:b",
            "SCROLL:sideways:10",
            "SCROLL:down:lots",
            "WAIT:-5",
            "TYPE",
            "FOCUS_ELEMENT:   ",
            "MOVE_WINDOW:notes:10",
            "KEY_COMBO:hyper+s",
            "KEY_COMBO:ctrl+",
        ],
    )
    def test_malformed_commands(self, text: str):
        with pytest.raises(CommandParseError):
            parse_command(text)


class TestHelpers:

    def test_key_combo(self):
        assert parse_key_combo("ctrl+shift+s") == (["Control", "Shift"], "s")
        assert parse_key_combo("cmd+enter") == (["Meta"], "Enter")

    def test_split_compound_only_before_a_verb(self):
        assert split_compound("FOCUS_ELEMENT:Settings then CLICK") == ["FOCUS_ELEMENT:Settings", "CLICK"]
        assert split_compound("TYPE:now and then some") == ["TYPE:now and then some"]
        assert split_compound("MOUSE_MOVE:1:2 then WAIT:10 then CLICK") == ["MOUSE_MOVE:1:2", "WAIT:10", "CLICK"]

    def test_fill_slots(self):
        assert fill_slots("TYPE:{name}", {"name": "Ada"}) == ("TYPE:Ada", [])
        assert fill_slots("TYPE:{name} {age}", {"name": "Ada"}) == ("TYPE:Ada {age}", ["age"])
        assert fill_slots("TYPE:{x}", None) == ("TYPE:{x}", ["x"])

    def test_fill_slots_doubled_braces_are_literal(self):
        assert fill_slots("TYPE:{{name}} {{{name}}}", {"name": "Ada"}) == ("TYPE:{name} {Ada}", [])
        assert fill_slots("FOCUS_ELEMENT:text={{draft}}", None) == ("FOCUS_ELEMENT:text={draft}", [])

    def test_extract_commands_prefers_tags(self):
        text = "First I will click.\n[COMMAND:MOUSE_MOVE:1:2] then [COMMAND:CLICK]\nDone."
        assert extract_commands(text) == ["MOUSE_MOVE:1:2", "CLICK"]

    def test_extract_commands_from_lines(self):
        text = "# open settings\nFOCUS_ELEMENT:Settings\n\n  CLICK  \n"
        assert extract_commands(text) == ["FOCUS_ELEMENT:Settings", "CLICK"]


# ---------------------------------------------------------------------------
# 2. Pointer and keyboard execution
# ---------------------------------------------------------------------------

class TestExecution:

    def test_click_at_cursor(self, injector: FakeInjector):
        result = _interpreter(injector).execute(["MOUSE_MOVE:10:20", "CLICK", "RIGHT_CLICK", "DOUBLE_CLICK"])
        assert injector.calls == [
            ("move", 10.0, 20.0),
            ("click", 10.0, 20.0, "left", 1),
            ("click", 10.0, 20.0, "right", 1),
            ("click", 10.0, 20.0, "left", 2),
        ]
        assert result.executed == ["MOUSE_MOVE:10:20", "CLICK", "RIGHT_CLICK", "DOUBLE_CLICK"]
        assert result.succeeded

    def test_scroll_direction(self, injector: FakeInjector):
        _interpreter(injector).execute(["MOUSE_MOVE:5:5", "SCROLL:up:200", "SCROLL:down:50"])
        assert injector.calls[1:] == [("scroll", 5.0, 5.0, -200), ("scroll", 5.0, 5.0, 50)]

    def test_drag_updates_cursor(self, injector: FakeInjector):
        interpreter = _interpreter(injector, drag_steps=3, drag_step_delay_ms=0)
        interpreter.execute(["DRAG:0:0:100:50"])
        assert injector.names() == ["drag_step"] * 3 + ["drag"]
        assert interpreter.cursor == (100.0, 50.0)

    def test_typing_and_keys(self, injector: FakeInjector):
        _interpreter(injector, typing_delay_ms=25).execute(
            ["TYPE:hi", "PRESS_KEY:enter", "KEY_COMBO:ctrl+a", "BACKSPACE:2"]
        )
        assert ("type", "hi", 25) in injector.calls
        assert ("press", "Enter") in injector.calls
        assert ("combo", ["Control"], "a") in injector.calls
        assert injector.calls[-2:] == [("press", "Backspace"), ("press", "Backspace")]

    def test_wait_is_sliced(self, injector: FakeInjector):
        _interpreter(injector).execute(["WAIT:250"])
        assert injector.calls == [("pause", 100), ("pause", 100), ("pause", 50)]

    def test_default_wait(self, injector: FakeInjector):
        _interpreter(injector).execute(["WAIT"])
        assert sum(c[1] for c in injector.calls) == 1000

    def test_cursor_callback(self, injector: FakeInjector):
        seen = []
        _interpreter(injector, on_cursor=lambda x, y: seen.append((x, y))).execute(["MOUSE_MOVE:3:4"])
        assert seen == [(3.0, 4.0)]

    def test_from_config_uses_pacing(self, injector: FakeInjector):
        config = ShadowplayConfig(typing_delay_ms=7, drag_steps=2)
        interpreter = CommandInterpreter.from_config(config, ElementResolver(FakeUITree()), injector)
        interpreter.execute(["TYPE:a", "DRAG:0:0:1:1"])
        assert ("type", "a", 7) in injector.calls
        assert injector.names().count("drag_step") == 2


# ---------------------------------------------------------------------------
# 3. Elements, compound entries and slots
# ---------------------------------------------------------------------------

class TestElementsAndEntries:

    def test_focus_element_then_click(self, injector: FakeInjector):
        settings = element(4, "button", "Settings", x=100, y=40, width=80, height=20)
        result = _interpreter(injector, [settings]).execute(["FOCUS_ELEMENT:Settings then CLICK"])
        assert injector.calls == [
            ("move", 140.0, 50.0),
            ("focus", 4),
            ("click", 140.0, 50.0, "left", 1),
        ]
        assert "Focused <button> at [140, 50]" in result.log_lines
        assert result.entries == [("FOCUS_ELEMENT:Settings then CLICK", "ok", "")]

    def test_focusing_a_text_input_clicks_it(self, injector: FakeInjector):
        field = element(0, "input", "", x=0, y=0, width=10, height=10, attributes={"placeholder": "Name"})
        _interpreter(injector, [field]).execute(["FOCUS_ELEMENT:sig:attr=placeholder:Name"])
        assert injector.names() == ["move", "focus", "click"]

    def test_missing_element_skips_rest_of_entry_only(self, injector: FakeInjector):
        result = _interpreter(injector).execute(["FOCUS_ELEMENT:Nowhere then CLICK", "MOUSE_MOVE:1:1"])
        assert injector.calls == [("move", 1.0, 1.0)]
        assert result.skipped == [("FOCUS_ELEMENT:Nowhere", "element not found: Nowhere")]
        assert "Skipped: FOCUS_ELEMENT:Nowhere (element not found: Nowhere)" in result.log_lines
        assert result.entries[0][1] == "skip"
        assert result.entries[1] == ("MOUSE_MOVE:1:1", "ok", "")
        assert not result.succeeded
        assert result.failure_reason == "FOCUS_ELEMENT:Nowhere: element not found: Nowhere"

    def test_parse_error_is_skipped(self, injector: FakeInjector):
        result = _interpreter(injector).execute(["JUMP:1", "CLICK"])
        assert result.executed == ["CLICK"]
        assert result.skipped[0][0] == "JUMP:1"

    def test_injector_failure_is_skipped(self, injector: FakeInjector):
        injector.fail_on.add("click")
        result = _interpreter(injector).execute(["CLICK", "PRESS_KEY:Tab"])
        assert result.skipped[0][1] == "RuntimeError: click failed"
        assert ("press", "Tab") in injector.calls

    def test_slots_filled(self, injector: FakeInjector):
        _interpreter(injector).execute(["TYPE:Hello {name}"], variables={"name": "Ada"})
        assert ("type", "Hello Ada", 0) in injector.calls

    def test_unfilled_slot_skips_entry(self, injector: FakeInjector):
        result = _interpreter(injector).execute(["TYPE:{name}", "CLICK"])
        assert result.skipped == [("TYPE:{name}", "unfilled slot(s): name")]
        assert injector.names() == ["click"]

    def test_escaped_braces_type_literally(self, injector: FakeInjector):
        result = _interpreter(injector).execute(["TYPE:{{id}}"])
        assert result.skipped == []
        assert ("type", "{id}", 0) in injector.calls

    def test_finished_stops_the_sequence(self, injector: FakeInjector):
        result = _interpreter(injector).execute(["CLICK", "FINISHED", "CLICK"])
        assert result.finished
        assert injector.names() == ["click"]
        assert "Goal completed." in result.log_lines
        assert len(result.entries) == 2

    def test_log_callback(self, injector: FakeInjector):
        lines: list[str] = []
        _interpreter(injector, on_log=lines.append).execute(["CLICK"])
        assert lines == ["Executing: CLICK"]


# ---------------------------------------------------------------------------
# 4. Window commands
# ---------------------------------------------------------------------------

class TestWindowCommands:

    def test_window_manager_calls(self, injector: FakeInjector, window_manager: FakeWindowManager):
        _interpreter(injector, window_manager=window_manager).execute(
            ["OPEN_APP:notes", "FOCUS_WINDOW:w1", "MOVE_WINDOW:w1:10:20", "MOUSE_MOVE:5:6", "MOVE_WINDOW:w1", "CLOSE_WINDOW:w1"]
        )
        assert window_manager.calls == [
            ("open", "notes"),
            ("focus", "w1"),
            ("move", "w1", 10.0, 20.0),
            ("move", "w1", 5.0, 6.0),
            ("close", "w1"),
        ]

    def test_without_window_manager_is_skipped(self, injector: FakeInjector):
        result = _interpreter(injector).execute(["OPEN_APP:notes"])
        assert result.skipped == [("OPEN_APP:notes", "RuntimeError: No window manager attached")]


# ---------------------------------------------------------------------------
# 5. Cancellation
# ---------------------------------------------------------------------------

class TestCancellation:

    def test_cancelled_before_start(self, injector: FakeInjector):
        token = CancelToken()
        token.cancel()
        result = _interpreter(injector).execute(["CLICK"], cancel_token=token)
        assert result.cancelled
        assert injector.calls == []
        assert result.log_lines == ["Replay cancelled."]
        assert result.failure_reason == "cancelled"

    def test_cancel_mid_typing(self, injector: FakeInjector):
        token = CancelToken()

        class CancellingInjector(FakeInjector):
            def _record(self, name, *args):
                super()._record(name, *args)
                if name == "char" and len(self.calls) == 2:
                    token.cancel()

        inj = CancellingInjector()
        result = _interpreter(inj).execute(["TYPE:hello", "CLICK"], cancel_token=token)
        assert result.cancelled
        assert inj.names() == ["char", "char"]
        assert result.executed == []

    def test_cancel_during_wait(self, injector: FakeInjector):
        token = CancelToken()

        class CancellingInjector(FakeInjector):
            def pause(self, ms):
                super().pause(ms)
                token.cancel()

        inj = CancellingInjector()
        result = _interpreter(inj).execute(["WAIT:5000"], cancel_token=token)
        assert result.cancelled
        assert inj.calls == [("pause", 100)]

    def test_duration_uses_clock(self, injector: FakeInjector):
        clock = FakeClock()

        class SlowInjector(FakeInjector):
            def click(self, x, y, button="left", click_count=1):
                clock.advance_ms(40)
                super().click(x, y, button, click_count)

        result = _interpreter(SlowInjector(), clock=clock).execute(["CLICK", "CLICK"])
        assert result.duration_ms == pytest.approx(80)


class TestReplayResult:

    def test_success_and_reason(self):
        assert ReplayResult().succeeded
        assert ReplayResult().failure_reason is None
        assert not ReplayResult(skipped=[("CLICK", "x")]).succeeded
