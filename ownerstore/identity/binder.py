"""Owner binding: captures the initializing caller exactly once."""

from __future__ import annotations

import hashlib
import json
import time
from dataclasses import dataclass
from pathlib import Path
from threading import RLock
from typing import Any

from loguru import logger

from ownerstore.errors import AlreadyInitialized, CellStorageError
from ownerstore.utils.files import atomic_write_text, file_lock


def normalize_identity(identity: str | None) -> str:
    """Canonical form of a caller identity; every surface goes through this."""
    return str(identity or "").strip()


def identity_digest(identity: str | None) -> bytes:
    """Fixed-length digest of a caller identity."""
    return hashlib.sha256(normalize_identity(identity).encode("utf-8")).digest()


@dataclass(frozen=True)
class OwnerRecord:
    owner_digest: bytes
    bound_at_ms: int

    def to_row(self) -> dict[str, Any]:
        return {
            "version": 1,
            "owner_digest": self.owner_digest.hex(),
            "bound_at_ms": self.bound_at_ms,
        }

    @classmethod
    def from_row(cls, row: Any) -> "OwnerRecord":
        if not isinstance(row, dict):
            raise CellStorageError("owner state is not an object")
        try:
            digest = bytes.fromhex(str(row["owner_digest"]))
            bound_at_ms = int(row.get("bound_at_ms") or 0)
        except (KeyError, ValueError) as exc:
            raise CellStorageError(f"owner state is malformed: {exc}") from exc
        if len(digest) != hashlib.sha256().digest_size:
            raise CellStorageError("owner digest has the wrong length")
        return cls(owner_digest=digest, bound_at_ms=bound_at_ms)


class IdentityBinder:
    """Holds the immutable owner for one store instance.

    When `state_path` is given the binding is persisted, and an existing
    binding on disk is loaded on construction so a restart can never rebind.
    """

    def __init__(self, state_path: Path | None = None):
        self.state_path = Path(state_path).expanduser() if state_path else None
        self._lock = RLock()
        self._lock_path = (
            self.state_path.with_suffix(f"{self.state_path.suffix}.lock") if self.state_path else None
        )
        self._record: OwnerRecord | None = self._load()

    def _load(self) -> OwnerRecord | None:
        if self.state_path is None or not self.state_path.exists():
            return None
        try:
            row = json.loads(self.state_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise CellStorageError(f"cannot read owner state {self.state_path}: {exc}") from exc
        return OwnerRecord.from_row(row)

    def _current(self) -> OwnerRecord | None:
        # A bound record is immutable; an unbound one is re-read from disk.
        with self._lock:
            if self._record is None and self.state_path is not None:
                with file_lock(self._lock_path):
                    self._record = self._load()
            return self._record

    @property
    def is_bound(self) -> bool:
        return self._current() is not None

    @property
    def owner_digest(self) -> bytes | None:
        record = self._current()
        return record.owner_digest if record else None

    def initialize(self, caller_identity: str) -> OwnerRecord:
        identity = normalize_identity(caller_identity)
        if not identity:
            raise ValueError("caller identity is required")

        with self._lock:
            with file_lock(self._lock_path):
                # Another process may have bound the owner since construction.
                if self._record is None:
                    self._record = self._load()
                if self._record is not None:
                    raise AlreadyInitialized()

                record = OwnerRecord(
                    owner_digest=identity_digest(identity),
                    bound_at_ms=int(time.time() * 1000),
                )
                if self.state_path is not None:
                    atomic_write_text(
                        self.state_path,
                        json.dumps(record.to_row(), indent=2),
                        mode=0o600,
                    )
                self._record = record

        logger.info("Owner bound")
        return record
