"""Centralized tuning constants for recording, learning, replay and storage."""

# Default viewport (also part of the device fingerprint)
DEFAULT_VIEWPORT = (1280, 720)
DEFAULT_LOCALE = "en-US"

# Recorder
ELEMENT_TEXT_LIMIT = 50  # visible text kept per element descriptor
ELEMENT_ATTRIBUTE_WHITELIST = ("data-app", "placeholder", "type", "role", "aria-label")
TRAINING_MARKER_ATTRIBUTE = "data-training-interface"

# Pattern learning
POSITION_STDDEV_THRESHOLD = 50.0  # display units, per axis
SCROLL_STDDEV_THRESHOLD = 100.0
CONFIDENCE_BASE = 0.7
CONFIDENCE_PER_ATTEMPT = 0.1
CONFIDENCE_CEILING = 0.95
DEFAULT_SUCCESS_CRITERIA = "Task completed successfully"

# Replay pacing (milliseconds)
TYPING_DELAY_MS = 50
DRAG_STEPS = 10
DRAG_STEP_DELAY_MS = 20
DEFAULT_WAIT_MS = 1000
WAIT_SLICE_MS = 100  # cancellation granularity of waits

# Knowledge store
STORE_SCHEMA_VERSION = 1
DEFAULT_STORE_SECRET = "shadowplay_training_key_2026"
KDF_SALT = b"shadowplay_agent_salt_2026"
KDF_ITERATIONS = 100_000
KEY_LENGTH_BYTES = 32
NONCE_LENGTH_BYTES = 12
