"""Shadowplay Pattern Learner -- generalizes repeated demonstrations into a plan.

Takes every recorded attempt of one task, aligns the attempts step by step,
decides which steps are stable (invariants) and which differ between
attempts (variants), and synthesizes a replayable command sequence from the
invariant steps.

Alignment is positional: the i-th action of every session is taken to be the
same logical step.  Sessions shorter than the longest one simply contribute
nothing to the trailing steps.

Classification of one aligned group, first match wins:

1. Members of different kinds -> variant ("mixed").
2. Pointer: differing mouse buttons -> choice variant;
   identical non-empty target text -> text-anchored click;
   coordinate spread under the position threshold on both axes ->
   position-anchored click at the centroid; otherwise a position variant.
3. Key: identical literal text -> type it; differing text -> choice variant;
   no text but identical key -> press it; otherwise a generic keyboard step.
4. Wheel: delta spread under the scroll threshold -> scroll by the average;
   otherwise a position variant that keeps the average.
"""

from __future__ import annotations

import dataclasses
import logging
import math
import statistics
import uuid
from collections import Counter
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from shadowplay.engine.knowledge_store import KnowledgeRecord
from shadowplay.engine.observation import ObservationSession, RawAction
from shadowplay.models import (
    CONFIDENCE_BASE,
    CONFIDENCE_CEILING,
    CONFIDENCE_PER_ATTEMPT,
    DEFAULT_SUCCESS_CRITERIA,
    POSITION_STDDEV_THRESHOLD,
    SCROLL_STDDEV_THRESHOLD,
)

logger = logging.getLogger("shadowplay.engine.pattern_learner")

GENERIC_KEYBOARD_MARKER = "KEYBOARD_ACTION"


class InsufficientDataError(ValueError):
    """Raised when there are no sessions to learn from."""

    pass


class SessionMismatchError(ValueError):
    """Raised when one analysis batch mixes sessions of different tasks."""

    pass


@dataclasses.dataclass
class InvariantStep:
    """A step judged stable across every observed attempt."""

    step: int
    description: str
    action_kind: str  # click, type, keypress, keyboard, scroll
    element_identifier: str  # "text:Settings", "position:120,40", "KEYBOARD_ACTION" or ""


@dataclasses.dataclass
class VariantStep:
    """A step that differs meaningfully between attempts."""

    step: int
    description: str
    variation_kind: str  # position, timing, choice
    sampled_values: list[Any]
    average: float | None = None


@dataclasses.dataclass
class FallbackEntry:
    """Primary command for a step plus secondary resolution approaches."""

    step: int
    primary_strategy: str
    fallback_strategies: list[str] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class ExtractedPattern:
    """Generalized plan derived from a batch of sessions."""

    task_name: str
    total_attempts: int
    invariants: list[InvariantStep] = dataclasses.field(default_factory=list)
    variants: list[VariantStep] = dataclasses.field(default_factory=list)
    command_sequence: list[str] = dataclasses.field(default_factory=list)
    fallback_strategies: list[FallbackEntry] = dataclasses.field(default_factory=list)
    success_criteria: str = DEFAULT_SUCCESS_CRITERIA

    def fallback_for(self, step: int) -> FallbackEntry | None:
        for entry in self.fallback_strategies:
            if entry.step == step:
                return entry
        return None

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExtractedPattern:
        return cls(
            task_name=data["task_name"],
            total_attempts=int(data["total_attempts"]),
            invariants=[InvariantStep(**i) for i in data.get("invariants", [])],
            variants=[VariantStep(**v) for v in data.get("variants", [])],
            command_sequence=list(data.get("command_sequence", [])),
            fallback_strategies=[FallbackEntry(**f) for f in data.get("fallback_strategies", [])],
            success_criteria=data.get("success_criteria", DEFAULT_SUCCESS_CRITERIA),
        )


@dataclasses.dataclass
class _StepAnalysis:
    is_invariant: bool
    description: str
    action_kind: str
    element_identifier: str = ""
    primary_strategy: str | None = None  # None -> no fallback entry, never replayed
    fallbacks: list[str] = dataclasses.field(default_factory=list)
    variation_kind: str = "choice"
    values: list[Any] = dataclasses.field(default_factory=list)
    average: float | None = None


def _escape_braces(text: str) -> str:
    return text.replace("{", "{{").replace("}", "}}")


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _stddev(values: Sequence[float]) -> float:
    """Population standard deviation (0.0 for a single sample)."""
    if len(values) < 2:
        return 0.0
    return statistics.pstdev(values)


class PatternLearner:
    """Analyzes repetitions of a task and extracts a replayable pattern."""

    def __init__(
        self,
        position_threshold: float = POSITION_STDDEV_THRESHOLD,
        scroll_threshold: float = SCROLL_STDDEV_THRESHOLD,
    ) -> None:
        self._position_threshold = position_threshold
        self._scroll_threshold = scroll_threshold

    # -- Analysis ------------------------------------------------------------

    def analyze(self, sessions: Sequence[ObservationSession]) -> ExtractedPattern:
        """Extract a pattern from every attempt of one task.

        Raises:
            InsufficientDataError: *sessions* is empty.
            SessionMismatchError: sessions belong to different tasks.
        """
        if not sessions:
            raise InsufficientDataError("Need at least 1 observation session to analyze")

        task_name = sessions[0].task_name
        mismatched = sorted({s.task_name for s in sessions if s.task_name != task_name})
        if mismatched:
            raise SessionMismatchError(
                f"Sessions for '{task_name}' mixed with sessions for: {', '.join(mismatched)}"
            )

        pattern = ExtractedPattern(task_name=task_name, total_attempts=len(sessions))

        for step, group in enumerate(self._group_by_position(sessions)):
            analysis = self._analyze_group(group)

            if analysis.is_invariant:
                pattern.invariants.append(
                    InvariantStep(
                        step=step,
                        description=analysis.description,
                        action_kind=analysis.action_kind,
                        element_identifier=analysis.element_identifier,
                    )
                )
            else:
                pattern.variants.append(
                    VariantStep(
                        step=step,
                        description=analysis.description,
                        variation_kind=analysis.variation_kind,
                        sampled_values=analysis.values,
                        average=analysis.average,
                    )
                )

            if analysis.primary_strategy is not None:
                pattern.fallback_strategies.append(
                    FallbackEntry(
                        step=step,
                        primary_strategy=analysis.primary_strategy,
                        fallback_strategies=analysis.fallbacks,
                    )
                )

        pattern.command_sequence = self._synthesize_commands(pattern)

        logger.info(
            "Pattern for '%s' from %d attempts: %d invariant, %d variant, %d commands",
            task_name,
            pattern.total_attempts,
            len(pattern.invariants),
            len(pattern.variants),
            len(pattern.command_sequence),
        )
        return pattern

    @staticmethod
    def _group_by_position(sessions: Sequence[ObservationSession]) -> list[list[RawAction]]:
        longest = max(len(s.actions) for s in sessions)
        return [[s.actions[i] for s in sessions if i < len(s.actions)] for i in range(longest)]

    def _analyze_group(self, group: list[RawAction]) -> _StepAnalysis:
        kinds = [a.kind for a in group]
        if len(set(kinds)) > 1:
            most_common = Counter(kinds).most_common(1)[0][0]
            return _StepAnalysis(
                is_invariant=False,
                description=f"Mixed action types (most common: {most_common})",
                action_kind="mixed",
                primary_strategy=most_common.upper(),
                variation_kind="choice",
                values=kinds,
            )

        kind = kinds[0]
        if kind == "pointer":
            return self._analyze_pointer(group)
        if kind == "key":
            return self._analyze_key(group)
        return self._analyze_wheel(group)

    def _analyze_pointer(self, group: list[RawAction]) -> _StepAnalysis:
        buttons = [a.button for a in group]
        if len(set(buttons)) > 1:
            return _StepAnalysis(
                is_invariant=False,
                description="Click button varies",
                action_kind="click",
                variation_kind="choice",
                values=buttons,
            )
        verb, label = ("RIGHT_CLICK", "Right-click") if buttons[0] == "right" else ("CLICK", "Click")

        elements = [a.element for a in group]
        texts = [el.text if el else None for el in elements]
        xs = [a.x for a in group]
        ys = [a.y for a in group]
        cx = _round_half_up(statistics.fmean(xs))
        cy = _round_half_up(statistics.fmean(ys))

        if all(texts) and len(set(texts)) == 1:
            text = texts[0]
            tag = elements[0].tag if elements[0] else "*"
            return _StepAnalysis(
                is_invariant=True,
                description=f'{label} element containing "{text}"',
                action_kind="click",
                element_identifier=f"text:{text}",
                primary_strategy=f"FOCUS_ELEMENT:text={_escape_braces(text)} then {verb}",
                fallbacks=[
                    f"Find by approximate position near [{cx}, {cy}]",
                    f"Find by element type <{tag}>",
                ],
            )

        if _stddev(xs) < self._position_threshold and _stddev(ys) < self._position_threshold:
            return _StepAnalysis(
                is_invariant=True,
                description=f"{label} at approximately [{cx}, {cy}]",
                action_kind="click",
                element_identifier=f"position:{cx},{cy}",
                primary_strategy=f"MOUSE_MOVE:{cx}:{cy} then {verb}",
                fallbacks=["Search nearby area for clickable element"],
            )

        return _StepAnalysis(
            is_invariant=False,
            description=f"{label} varies by position",
            action_kind="click",
            variation_kind="position",
            values=[[x, y] for x, y in zip(xs, ys)],
        )

    @staticmethod
    def _analyze_key(group: list[RawAction]) -> _StepAnalysis:
        texts = [a.text for a in group]
        keys = [a.key for a in group]

        if any(texts):
            if all(texts) and len(set(texts)) == 1:
                return _StepAnalysis(
                    is_invariant=True,
                    description=f'Type "{texts[0]}"',
                    action_kind="type",
                    primary_strategy=f"TYPE:{_escape_braces(texts[0])}",
                )
            return _StepAnalysis(
                is_invariant=False,
                description="Typing varies",
                action_kind="type",
                variation_kind="choice",
                values=[t if t else k for t, k in zip(texts, keys)],
            )

        if all(keys) and len(set(keys)) == 1:
            return _StepAnalysis(
                is_invariant=True,
                description=f"Press {keys[0]} key",
                action_kind="keypress",
                primary_strategy=f"PRESS_KEY:{keys[0]}",
            )

        return _StepAnalysis(
            is_invariant=True,
            description="Keyboard action",
            action_kind="keyboard",
            element_identifier=GENERIC_KEYBOARD_MARKER,
            primary_strategy=None,
        )

    def _analyze_wheel(self, group: list[RawAction]) -> _StepAnalysis:
        deltas = [a.delta_y for a in group]
        avg = _round_half_up(statistics.fmean(deltas))
        direction = "down" if avg > 0 else "up"

        if _stddev(deltas) < self._scroll_threshold:
            cx = _round_half_up(statistics.fmean(a.x for a in group))
            cy = _round_half_up(statistics.fmean(a.y for a in group))
            return _StepAnalysis(
                is_invariant=True,
                description=f"Scroll {direction} {abs(avg)}px",
                action_kind="scroll",
                primary_strategy=f"SCROLL:{direction}:{abs(avg)}",
                fallbacks=[f"Scroll near [{cx}, {cy}]"],
            )

        return _StepAnalysis(
            is_invariant=False,
            description="Scroll amount varies",
            action_kind="scroll",
            variation_kind="position",
            values=deltas,
            average=float(avg),
        )

    @staticmethod
    def _synthesize_commands(pattern: ExtractedPattern) -> list[str]:
        commands: list[str] = []
        for inv in pattern.invariants:
            entry = pattern.fallback_for(inv.step)
            if entry is not None:
                commands.append(entry.primary_strategy)
        return commands

    # -- Knowledge conversion ------------------------------------------------

    @staticmethod
    def confidence_for(total_attempts: int) -> float:
        return min(CONFIDENCE_BASE + CONFIDENCE_PER_ATTEMPT * total_attempts, CONFIDENCE_CEILING)

    def to_knowledge_record(
        self,
        pattern: ExtractedPattern,
        sessions: Sequence[ObservationSession] = (),
    ) -> KnowledgeRecord:
        """Build a persistable behavior from an extracted pattern.

        The briefing text becomes the record's context; raw sessions, when
        given, are kept as observations.
        """
        rules = [inv.description for inv in pattern.invariants]
        observations = [
            {
                "attempt_number": s.attempt_number,
                "timestamp": datetime.fromtimestamp(s.start_time, tz=timezone.utc).isoformat(),
                "raw_actions": [a.to_dict() for a in s.actions],
                "extracted_rules": list(rules),
            }
            for s in sessions
        ]
        decision_tree = [
            {
                "condition": f"Step {idx + 1} succeeds",
                "if_true": entry.primary_strategy,
                "if_false": entry.fallback_strategies[0] if entry.fallback_strategies else "Retry",
            }
            for idx, entry in enumerate(pattern.fallback_strategies)
        ]
        return KnowledgeRecord(
            id=str(uuid.uuid4()),
            version=1,
            name=pattern.task_name,
            description=f"Learned from {pattern.total_attempts} observations",
            category="custom",
            task_goal=pattern.task_name,
            context=self.build_briefing(pattern),
            decision_tree=decision_tree,
            command_sequence=list(pattern.command_sequence),
            raw_observations=observations,
            confidence=self.confidence_for(pattern.total_attempts),
            last_tested=datetime.now(timezone.utc).isoformat(),
        )

    @staticmethod
    def build_briefing(pattern: ExtractedPattern) -> str:
        """Human/AI-readable summary of how to perform the learned task."""
        lines = [
            f"LEARNED BEHAVIOR: {pattern.task_name}",
            "",
            f"OBSERVATIONS: {pattern.total_attempts} repetitions analyzed",
            "",
            "STRATEGY:",
        ]
        for idx, inv in enumerate(pattern.invariants):
            lines.append(f"Step {idx + 1}: {inv.description}")
            entry = pattern.fallback_for(inv.step)
            if entry is not None:
                lines.append(f"  - Primary: {entry.primary_strategy}")
                if entry.fallback_strategies:
                    lines.append(f"  - Fallback: {', '.join(entry.fallback_strategies)}")
            lines.append("")

        if pattern.variants:
            lines.append("ADAPTATIONS:")
            for variant in pattern.variants:
                line = f"- {variant.description}"
                if variant.average:
                    line += f" (average: {variant.average:g})"
                lines.append(line)
            lines.append("")

        lines.append(f"SUCCESS CRITERIA: {pattern.success_criteria}")
        return "\n".join(lines) + "\n"
