"""OwnerGuardedStore: binder + gate + cell + notifier, composed per instance."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from ownerstore.audit.notifier import ChangeEvent, ChangeNotifier, FileEventSink, MemoryEventSink
from ownerstore.identity.binder import IdentityBinder, OwnerRecord
from ownerstore.identity.gate import AccessGate
from ownerstore.secrets.backends import CellBackend, open_backend
from ownerstore.secrets.cell import SecretCell, SetResult


class StoreState(str, Enum):
    UNINITIALIZED = "uninitialized"
    SECRET_UNSET = "secret_unset"
    SECRET_SET = "secret_set"


class OwnerGuardedStore:
    """Single-owner secret store.

    Owner state lives on this instance only; two stores never share it.
    """

    def __init__(
        self,
        *,
        binder: IdentityBinder | None = None,
        backend: CellBackend | None = None,
        notifier: ChangeNotifier | None = None,
    ):
        self.binder = binder if binder is not None else IdentityBinder()
        self.gate = AccessGate(self.binder)
        self.notifier = notifier if notifier is not None else ChangeNotifier(MemoryEventSink())
        self.cell = SecretCell(self.gate, backend=backend, notifier=self.notifier)

    @classmethod
    def from_config(cls, config: Any) -> "OwnerGuardedStore":
        data_dir = Path(config.storage.data_dir).expanduser()
        kind = config.storage.backend
        log_path = str(config.audit.log_path or "").strip()
        if kind == "memory":
            binder = IdentityBinder()
            sink = FileEventSink(Path(log_path)) if log_path else MemoryEventSink()
        else:
            binder = IdentityBinder(data_dir / "owner.json")
            sink = FileEventSink(Path(log_path) if log_path else data_dir / "events.jsonl")
        return cls(
            binder=binder,
            backend=open_backend(kind, data_dir),
            notifier=ChangeNotifier(sink, enabled=config.audit.enabled),
        )

    @property
    def initialized(self) -> bool:
        return self.binder.is_bound

    def initialize(self, caller_identity: str) -> OwnerRecord:
        return self.binder.initialize(caller_identity)

    def set_secret(self, value: bytes, caller_identity: str | None) -> SetResult:
        return self.cell.set(value, caller_identity)

    def get_secret(self, caller_identity: str | None) -> bytes:
        return self.cell.get(caller_identity)

    def state(self, caller_identity: str | None) -> StoreState:
        """Lifecycle state. Past UNINITIALIZED, only the owner may ask."""
        if not self.binder.is_bound:
            return StoreState.UNINITIALIZED
        if self.cell.is_set(caller_identity):
            return StoreState.SECRET_SET
        return StoreState.SECRET_UNSET

    def events(self, since: int = 0) -> list[ChangeEvent]:
        return self.notifier.events(since)
