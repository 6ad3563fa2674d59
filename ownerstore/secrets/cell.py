"""The secret cell: one opaque value behind the access gate."""

from __future__ import annotations

from dataclasses import dataclass, field
from threading import RLock

from loguru import logger

from ownerstore.audit.notifier import ChangeNotifier, NotifierWarning
from ownerstore.errors import NotSet
from ownerstore.identity.gate import AccessGate
from ownerstore.secrets.backends import CellBackend, CellState, MemoryCellBackend


@dataclass
class SetResult:
    """Outcome of a committed write.

    `seq` is None when no event was recorded; `warnings` carries notifier
    failures, which never undo the write.
    """

    seq: int | None = None
    warnings: list[NotifierWarning] = field(default_factory=list)


def _coerce_value(value: object) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise TypeError(f"secret value must be bytes-like, not {type(value).__name__}")


class SecretCell:
    """Holds the current value and its is-set flag.

    Every method calls the gate before touching the backend, and runs as one
    indivisible unit under the cell lock (and the backend's file lock).
    """

    def __init__(
        self,
        gate: AccessGate,
        *,
        backend: CellBackend | None = None,
        notifier: ChangeNotifier | None = None,
    ):
        self.gate = gate
        self.backend = backend if backend is not None else MemoryCellBackend()
        self.notifier = notifier if notifier is not None else ChangeNotifier()
        self._lock = RLock()

    def set(self, new_value: bytes, caller_identity: str | None) -> SetResult:
        value = _coerce_value(new_value)
        with self._lock, self.backend.locked():
            self.gate.require(caller_identity)
            first_write = not self.backend.load().is_set
            self.backend.save(CellState(value=value, is_set=True))
            # Inside the critical section so event order matches commit order.
            notified = self.notifier.emit(first_write=first_write)

        logger.info("Secret written" + (" (first write)" if first_write else ""))
        return SetResult(
            seq=notified.event.seq if notified.event else None,
            warnings=list(notified.warnings),
        )

    def get(self, caller_identity: str | None) -> bytes:
        with self._lock, self.backend.locked():
            self.gate.require(caller_identity)
            state = self.backend.load()
        if not state.is_set:
            raise NotSet()
        return state.value

    def is_set(self, caller_identity: str | None) -> bool:
        with self._lock, self.backend.locked():
            self.gate.require(caller_identity)
            return self.backend.load().is_set
