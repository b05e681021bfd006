"""Shadowplay engine -- learning and replaying UI behaviors from demonstrations.

- ActionRecorder: captures one demonstration as an ObservationSession
- PatternLearner: aligns attempts and extracts invariant steps and a command plan
- ElementResolver: finds live elements by selector, text or signature
- CommandInterpreter: replays command sequences through an InputInjector
- KnowledgeStore: encrypted persistence of learned behaviors
- ReplayReportGenerator: markdown replay reports

The Playwright adapters (``browser_host``, ``browser_adapters``) are NOT
imported here; import them from their modules when a browser is needed.
"""

from shadowplay.engine.element_resolver import ElementResolver, Locator
from shadowplay.engine.interpreter import (
    CancelToken,
    CommandInterpreter,
    CommandParseError,
    ElementNotFoundError,
    ReplayCancelled,
    ReplayResult,
    parse_command,
)
from shadowplay.engine.knowledge_store import (
    BehaviorStatistics,
    KnowledgeRecord,
    KnowledgeStore,
    StoreNotOpenError,
    device_fingerprint,
)
from shadowplay.engine.kv_store import FileKeyValueStore, MemoryKeyValueStore
from shadowplay.engine.observation import ElementDescriptor, ObservationSession, RawAction, load_sessions
from shadowplay.engine.pattern_learner import (
    ExtractedPattern,
    FallbackEntry,
    InsufficientDataError,
    InvariantStep,
    PatternLearner,
    SessionMismatchError,
    VariantStep,
)
from shadowplay.engine.recorder import ActionRecorder, CaptureError
from shadowplay.engine.report_generator import ReplayReport, ReplayReportGenerator

__all__ = [
    "ActionRecorder",
    "BehaviorStatistics",
    "CancelToken",
    "CaptureError",
    "CommandInterpreter",
    "CommandParseError",
    "ElementDescriptor",
    "ElementNotFoundError",
    "ElementResolver",
    "ExtractedPattern",
    "FallbackEntry",
    "FileKeyValueStore",
    "InsufficientDataError",
    "InvariantStep",
    "KnowledgeRecord",
    "KnowledgeStore",
    "Locator",
    "MemoryKeyValueStore",
    "ObservationSession",
    "PatternLearner",
    "RawAction",
    "ReplayCancelled",
    "ReplayReport",
    "ReplayReportGenerator",
    "ReplayResult",
    "SessionMismatchError",
    "StoreNotOpenError",
    "VariantStep",
    "device_fingerprint",
    "load_sessions",
    "parse_command",
]
