"""Shadowplay Report Generator -- Produces replay report artifacts in markdown format.

Generates a markdown report for one replay of a learned behavior: verdict,
summary counts, the per-command outcome table and the interpreter's log.
"""

from __future__ import annotations

import dataclasses

from shadowplay.engine.interpreter import ReplayResult


@dataclasses.dataclass
class ReplayReport:
    """Everything the report needs about one replay."""

    run_id: str
    behavior_name: str
    behavior_id: str
    confidence: float
    start_time: str
    commands: list[str]
    result: ReplayResult


class ReplayReportGenerator:
    """Generates markdown reports from replay results."""

    def generate(self, report: ReplayReport) -> str:
        """Generate a complete report in markdown format.

        Args:
            report: The ReplayReport to render.

        Returns:
            Complete markdown report as a string.
        """
        sections = [
            self._header(report),
            self._summary(report),
            self._commands_table(report),
            self._log_section(report),
        ]
        return "\n\n".join(s for s in sections if s) + "\n"

    @staticmethod
    def _verdict(r: ReplayReport) -> str:
        if r.result.cancelled:
            return "CANCELLED"
        return "PASS" if r.result.succeeded else "FAIL"

    def _header(self, r: ReplayReport) -> str:
        return (
            f"# Shadowplay Replay: {r.behavior_name}\n"
            f"\n"
            f"**Run ID:** {r.run_id}\n"
            f"**Behavior:** {r.behavior_id}\n"
            f"**Confidence:** {r.confidence:.2f}\n"
            f"**Date:** {r.start_time}\n"
            f"**Verdict:** {self._verdict(r)}"
        )

    def _summary(self, r: ReplayReport) -> str:
        res = r.result
        return (
            f"## Summary\n"
            f"- Commands: {len(r.commands)} planned, {len(res.executed)} executed, {len(res.skipped)} skipped\n"
            f"- Finished: {'yes' if res.finished else 'no'}\n"
            f"- Duration: {res.duration_ms / 1000:.1f}s"
        )

    def _commands_table(self, r: ReplayReport) -> str:
        if not r.commands:
            return "## Commands\n\nNo commands in plan."
        lines = [
            "## Commands",
            "| # | Command | Result | Notes |",
            "|---|---------|--------|-------|",
        ]
        outcomes = r.result.entries
        for idx, entry in enumerate(r.commands, start=1):
            if idx <= len(outcomes):
                _, status, notes = outcomes[idx - 1]
                result_str = "OK" if status == "ok" else "SKIP"
            else:
                result_str, notes = "NOT RUN", ""
            if len(notes) > 80:
                notes = notes[:77] + "..."
            lines.append(f"| {idx} | `{entry}` | {result_str} | {notes} |")
        return "\n".join(lines)

    def _log_section(self, r: ReplayReport) -> str:
        if not r.result.log_lines:
            return "## Log\n\nNo log lines."
        lines = ["## Log", "", "```"]
        lines.extend(r.result.log_lines)
        lines.append("```")
        return "\n".join(lines)
