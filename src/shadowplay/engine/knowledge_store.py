"""Shadowplay Knowledge Store -- encrypted persistence of learned behaviors.

The whole record collection is serialized to JSON, encrypted with AES-GCM
under a fresh nonce and written as a single envelope to a key-value
substrate (a JSON file standing in for browser localStorage).  The AES key
is derived with PBKDF2-HMAC-SHA256 from a shared secret concatenated with a
device fingerprint, so a store moved to another machine or opened with
another secret cannot be read.

Load is fail-destructive: an envelope that cannot be decoded or
authenticated is treated as tampering, deleted, and an empty collection is
returned.  No decryption error ever reaches the caller.

Writes are last-writer-wins.  Two processes sharing one substrate will
silently overwrite each other's updates.
"""

from __future__ import annotations

import base64
import dataclasses
import hashlib
import json
import logging
import os
import secrets
import string
from datetime import datetime, timezone
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from shadowplay.engine.protocols import KeyValueStore
from shadowplay.models import (
    KDF_ITERATIONS,
    KDF_SALT,
    KEY_LENGTH_BYTES,
    NONCE_LENGTH_BYTES,
    STORE_SCHEMA_VERSION,
)

logger = logging.getLogger("shadowplay.engine.knowledge_store")


class StoreNotOpenError(Exception):
    """Raised when a KnowledgeStore is used before open() or after close()."""

    pass


@dataclasses.dataclass
class BehaviorStatistics:
    """Replay outcome statistics of one behavior."""

    times_executed: int = 0
    success_rate: float = 0.0
    avg_execution_time: float = 0.0  # milliseconds
    last_failure_reason: str | None = None


@dataclasses.dataclass
class KnowledgeRecord:
    """A persisted, confidence-scored, replayable behavior."""

    id: str
    name: str
    version: int = 1
    description: str = ""
    category: str = "custom"
    task_goal: str = ""
    context: str = ""  # Briefing text built by the pattern learner
    decision_tree: list[dict[str, str]] = dataclasses.field(default_factory=list)
    command_sequence: list[str] = dataclasses.field(default_factory=list)
    raw_observations: list[dict[str, Any]] = dataclasses.field(default_factory=list)
    statistics: BehaviorStatistics = dataclasses.field(default_factory=BehaviorStatistics)
    confidence: float = 0.0
    last_tested: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> KnowledgeRecord:
        stats = data.get("statistics") or {}
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            version=int(data.get("version", 1)),
            description=data.get("description", ""),
            category=data.get("category", "custom"),
            task_goal=data.get("task_goal", ""),
            context=data.get("context", ""),
            decision_tree=list(data.get("decision_tree", [])),
            command_sequence=list(data.get("command_sequence", [])),
            raw_observations=list(data.get("raw_observations", [])),
            statistics=BehaviorStatistics(**stats),
            confidence=float(data.get("confidence", 0.0)),
            last_tested=data.get("last_tested"),
        )


# Fields an explicit edit may change; id is fixed for the record's lifetime.
_EDITABLE_FIELDS = frozenset(f.name for f in dataclasses.fields(KnowledgeRecord)) - {"id", "statistics"}


def device_fingerprint(platform: str, viewport: tuple[int, int], locale: str) -> str:
    """Platform identity + display geometry + locale, as fed to the KDF."""
    return f"{platform}|{viewport[0]}x{viewport[1]}|{locale}"


def generate_storage_key(user_id: str) -> str:
    """Obfuscated, randomized substrate key name for one store."""
    alphabet = string.ascii_lowercase + string.digits
    suffix = "".join(secrets.choice(alphabet) for _ in range(9))
    raw = f"__sys_internal_{user_id}_agent_core_{suffix}"
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class KnowledgeStore:
    """Encrypted collection of KnowledgeRecords on a key-value substrate.

    Usage::

        with KnowledgeStore(kv, secret, fingerprint) as store:
            store.add_behavior(record)
            matches = store.find_matching("open settings")

    The key is derived once in ``open()`` and dropped in ``close()``.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        secret: str,
        fingerprint: str,
        user_id: str = "default",
        storage_key: str | None = None,
    ) -> None:
        self._kv = kv
        self._secret = secret
        self._fingerprint = fingerprint
        self._storage_key = storage_key or generate_storage_key(user_id)
        self._aead: AESGCM | None = None

    @property
    def storage_key(self) -> str:
        return self._storage_key

    @property
    def is_open(self) -> bool:
        return self._aead is not None

    # -- Lifecycle -----------------------------------------------------------

    def open(self) -> KnowledgeStore:
        if self._aead is None:
            key = hashlib.pbkdf2_hmac(
                "sha256",
                (self._secret + self._fingerprint).encode("utf-8"),
                KDF_SALT,
                KDF_ITERATIONS,
                dklen=KEY_LENGTH_BYTES,
            )
            self._aead = AESGCM(key)
            logger.debug("Knowledge store opened")
        return self

    def close(self) -> None:
        self._aead = None

    def __enter__(self) -> KnowledgeStore:
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _cipher(self) -> AESGCM:
        if self._aead is None:
            raise StoreNotOpenError("Knowledge store is not open; call open() first")
        return self._aead

    # -- Envelope ------------------------------------------------------------

    def load(self) -> list[KnowledgeRecord]:
        """Decrypt and return every record; wipe the entry on any failure."""
        aead = self._cipher()
        raw = self._kv.get(self._storage_key)
        if not raw:
            return []

        try:
            envelope = json.loads(base64.b64decode(raw, validate=True))
            nonce = base64.b64decode(envelope["nonce"], validate=True)
            ciphertext = base64.b64decode(envelope["ciphertext"], validate=True)
            plaintext = aead.decrypt(nonce, ciphertext, None)
            data = json.loads(plaintext.decode("utf-8"))
            return [KnowledgeRecord.from_dict(item) for item in data]
        except (InvalidTag, ValueError, KeyError, TypeError) as exc:
            logger.warning("Stored knowledge failed to decrypt (%s); wiping entry", type(exc).__name__)
            self._kv.delete(self._storage_key)
            return []

    def save(self, records: list[KnowledgeRecord]) -> None:
        """Re-encrypt the entire collection under a fresh nonce."""
        aead = self._cipher()
        plaintext = json.dumps([r.to_dict() for r in records]).encode("utf-8")
        nonce = os.urandom(NONCE_LENGTH_BYTES)
        ciphertext = aead.encrypt(nonce, plaintext, None)
        envelope = {
            "nonce": base64.b64encode(nonce).decode("ascii"),
            "ciphertext": base64.b64encode(ciphertext).decode("ascii"),
            "schema_version": STORE_SCHEMA_VERSION,
            "timestamp": _now(),
        }
        encoded = base64.b64encode(json.dumps(envelope).encode("utf-8")).decode("ascii")
        self._kv.set(self._storage_key, encoded)
        logger.debug("Saved %d behaviors", len(records))

    # -- Behaviors -----------------------------------------------------------

    def add_behavior(self, record: KnowledgeRecord) -> KnowledgeRecord:
        """Append *record*, replacing any existing record with the same id."""
        records = [r for r in self.load() if r.id != record.id]
        records.append(record)
        self.save(records)
        logger.info("Behavior saved: %s (confidence %.2f)", record.name, record.confidence)
        return record

    def get_behavior(self, behavior_id: str) -> KnowledgeRecord | None:
        for record in self.load():
            if record.id == behavior_id:
                return record
        return None

    def update_behavior(self, behavior_id: str, patch: dict[str, Any]) -> KnowledgeRecord | None:
        """Apply an explicit edit.  Returns the updated record, or None if absent.

        ``statistics`` may be patched with a partial mapping; unknown fields
        raise ValueError.
        """
        unknown = set(patch) - _EDITABLE_FIELDS - {"statistics"}
        if unknown:
            raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

        records = self.load()
        for idx, record in enumerate(records):
            if record.id != behavior_id:
                continue
            changes = {k: v for k, v in patch.items() if k != "statistics"}
            if "statistics" in patch:
                changes["statistics"] = dataclasses.replace(record.statistics, **patch["statistics"])
            records[idx] = dataclasses.replace(record, **changes)
            self.save(records)
            logger.info("Behavior updated: %s", records[idx].name)
            return records[idx]

        logger.warning("No behavior with id %s to update", behavior_id)
        return None

    def remove_behavior(self, behavior_id: str) -> bool:
        records = self.load()
        kept = [r for r in records if r.id != behavior_id]
        if len(kept) == len(records):
            return False
        self.save(kept)
        logger.info("Behavior removed: %s", behavior_id)
        return True

    def find_matching(self, goal: str) -> list[KnowledgeRecord]:
        """Records whose name, description or task goal matches *goal*.

        A field matches when either text contains the other (case-insensitive).
        Results are sorted by descending confidence.
        """
        needle = goal.strip().lower()
        matches = []
        for record in self.load():
            for field_text in (record.name, record.description, record.task_goal):
                hay = (field_text or "").lower()
                if hay and (needle in hay or hay in needle):
                    matches.append(record)
                    break
        return sorted(matches, key=lambda r: r.confidence, reverse=True)

    def record_execution(
        self,
        behavior_id: str,
        success: bool,
        duration_ms: float,
        failure_reason: str | None = None,
    ) -> KnowledgeRecord | None:
        """Fold one replay outcome into the behavior's statistics."""
        record = self.get_behavior(behavior_id)
        if record is None:
            logger.warning("No behavior with id %s to record execution for", behavior_id)
            return None

        stats = record.statistics
        n = stats.times_executed
        successes = stats.success_rate * n + (1 if success else 0)
        new_stats = BehaviorStatistics(
            times_executed=n + 1,
            success_rate=successes / (n + 1),
            avg_execution_time=(stats.avg_execution_time * n + duration_ms) / (n + 1),
            last_failure_reason=stats.last_failure_reason if success else (failure_reason or "unknown"),
        )
        return self.update_behavior(
            behavior_id,
            {"statistics": dataclasses.asdict(new_stats), "last_tested": _now()},
        )

    # -- Maintenance ---------------------------------------------------------

    def clear(self) -> None:
        """Delete the stored envelope."""
        self._kv.delete(self._storage_key)
        logger.info("Knowledge store wiped")

    def export_json(self) -> str:
        """Plaintext JSON of every record."""
        return json.dumps([r.to_dict() for r in self.load()], indent=2)

    def import_json(self, text: str) -> int:
        """Replace the collection with records from *text*.

        Returns the number of records imported; invalid input is logged and
        leaves the store untouched (returns 0).
        """
        try:
            data = json.loads(text)
            if not isinstance(data, list):
                raise TypeError("expected a JSON list of behaviors")
            records = [KnowledgeRecord.from_dict(item) for item in data]
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Import failed: %s", exc)
            return 0
        self.save(records)
        logger.info("Imported %d behaviors", len(records))
        return len(records)
