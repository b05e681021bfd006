"""Unit tests for shadowplay.engine.report_generator -- Markdown replay report generation."""

from __future__ import annotations

import pytest

from shadowplay.engine.interpreter import ReplayResult
from shadowplay.engine.report_generator import ReplayReport, ReplayReportGenerator


def _make_report(result: ReplayResult, commands: list[str] | None = None) -> ReplayReport:
    return ReplayReport(
        run_id="SP-20261019-120000-abc123",
        behavior_name="Open settings",
        behavior_id="b-1",
        confidence=0.9,
        start_time="2026-10-19T12:00:00+00:00",
        commands=commands if commands is not None else ["FOCUS_ELEMENT:Settings then CLICK", "PRESS_KEY:Enter"],
        result=result,
    )


@pytest.fixture
def generator() -> ReplayReportGenerator:
    return ReplayReportGenerator()


# ---------------------------------------------------------------------------
# 1. Header and verdict
# ---------------------------------------------------------------------------

class TestHeader:

    def test_pass(self, generator: ReplayReportGenerator):
        result = ReplayResult(
            executed=["FOCUS_ELEMENT:Settings", "CLICK", "PRESS_KEY:Enter"],
            entries=[("FOCUS_ELEMENT:Settings then CLICK", "ok", ""), ("PRESS_KEY:Enter", "ok", "")],
            duration_ms=1534,
        )
        md = generator.generate(_make_report(result))
        assert md.startswith("# Shadowplay Replay: Open settings\n")
        assert "**Run ID:** SP-20261019-120000-abc123" in md
        assert "**Confidence:** 0.90" in md
        assert "**Verdict:** PASS" in md
        assert "- Commands: 2 planned, 3 executed, 0 skipped" in md
        assert "- Duration: 1.5s" in md

    def test_fail(self, generator: ReplayReportGenerator):
        result = ReplayResult(skipped=[("CLICK", "boom")], entries=[("CLICK", "skip", "boom")])
        assert "**Verdict:** FAIL" in generator.generate(_make_report(result, ["CLICK"]))

    def test_cancelled(self, generator: ReplayReportGenerator):
        result = ReplayResult(cancelled=True)
        assert "**Verdict:** CANCELLED" in generator.generate(_make_report(result))


# ---------------------------------------------------------------------------
# 2. Commands table
# ---------------------------------------------------------------------------

class TestCommandsTable:

    def test_rows_reflect_entry_outcomes(self, generator: ReplayReportGenerator):
        result = ReplayResult(
            skipped=[("FOCUS_ELEMENT:Settings", "element not found: Settings")],
            entries=[("FOCUS_ELEMENT:Settings then CLICK", "skip", "element not found: Settings")],
            cancelled=True,
        )
        md = generator.generate(_make_report(result))
        assert "| 1 | `FOCUS_ELEMENT:Settings then CLICK` | SKIP | element not found: Settings |" in md
        assert "| 2 | `PRESS_KEY:Enter` | NOT RUN |  |" in md

    def test_long_notes_are_truncated(self, generator: ReplayReportGenerator):
        note = "x" * 120
        result = ReplayResult(skipped=[("CLICK", note)], entries=[("CLICK", "skip", note)])
        md = generator.generate(_make_report(result, ["CLICK"]))
        assert "x" * 77 + "..." in md
        assert "x" * 78 not in md

    def test_empty_plan(self, generator: ReplayReportGenerator):
        md = generator.generate(_make_report(ReplayResult(), []))
        assert "No commands in plan." in md


# ---------------------------------------------------------------------------
# 3. Log section
# ---------------------------------------------------------------------------

class TestLogSection:

    def test_log_lines_in_code_block(self, generator: ReplayReportGenerator):
        result = ReplayResult(log_lines=["Executing: CLICK", "Goal completed."], finished=True)
        md = generator.generate(_make_report(result))
        assert "## Log\n\n```\nExecuting: CLICK\nGoal completed.\n```" in md
        assert "- Finished: yes" in md

    def test_no_log_lines(self, generator: ReplayReportGenerator):
        assert "No log lines." in generator.generate(_make_report(ReplayResult()))
