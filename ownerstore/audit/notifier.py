"""Append-only change feed for secret mutations."""

from __future__ import annotations

import json
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from threading import RLock
from typing import Any

from loguru import logger

from ownerstore.errors import NotifierError


@dataclass(frozen=True)
class ChangeEvent:
    """One committed write. Carries no value and no identity."""

    seq: int
    first_write: bool
    ts: float
    event: str = "secret_set"

    def to_row(self) -> dict[str, Any]:
        return {"seq": self.seq, "event": self.event, "first_write": self.first_write, "ts": self.ts}

    @classmethod
    def from_row(cls, row: Any) -> "ChangeEvent":
        if not isinstance(row, dict):
            raise ValueError("event row is not an object")
        return cls(
            seq=int(row["seq"]),
            event=str(row.get("event") or "secret_set"),
            first_write=bool(row.get("first_write", False)),
            ts=float(row.get("ts") or 0.0),
        )


@dataclass(frozen=True)
class NotifierWarning:
    message: str


@dataclass
class NotifierResult:
    event: ChangeEvent | None = None
    warnings: list[NotifierWarning] = field(default_factory=list)


class MemoryEventSink:
    """In-process event list."""

    def __init__(self) -> None:
        self._rows: list[ChangeEvent] = []

    def last_seq(self) -> int:
        return self._rows[-1].seq if self._rows else 0

    def append(self, event: ChangeEvent) -> None:
        self._rows.append(event)

    def read(self) -> list[ChangeEvent]:
        return list(self._rows)


class FileEventSink:
    """JSON-lines event log. Lines are only ever appended."""

    def __init__(self, log_path: Path):
        self.log_path = Path(log_path).expanduser()
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def last_seq(self) -> int:
        for line in reversed(self._tail_lines()):
            try:
                return ChangeEvent.from_row(json.loads(line)).seq
            except (ValueError, KeyError, TypeError):
                continue
        # No intact row near the end (a crash tore the tail): scan the whole log.
        return max((event.seq for event in self.read()), default=0)

    def append(self, event: ChangeEvent) -> None:
        row = json.dumps(event.to_row(), ensure_ascii=False).encode("utf-8") + b"\n"
        try:
            with open(self.log_path, "a+b") as f:
                if f.seek(0, os.SEEK_END) > 0:
                    f.seek(-1, os.SEEK_END)
                    if f.read(1) != b"\n":
                        # Close off a line left unterminated by an interrupted append.
                        row = b"\n" + row
                f.write(row)
                f.flush()
                os.fsync(f.fileno())
        except OSError as exc:
            raise NotifierError(f"event log write failed: {exc}") from exc

    def read(self) -> list[ChangeEvent]:
        if not self.log_path.exists():
            return []
        out: list[ChangeEvent] = []
        try:
            with open(self.log_path, encoding="utf-8", errors="replace") as f:
                for lineno, line in enumerate(f, start=1):
                    if not line.strip():
                        continue
                    try:
                        out.append(ChangeEvent.from_row(json.loads(line)))
                    except (ValueError, KeyError, TypeError) as exc:
                        logger.warning(f"Skipping unreadable event log line {lineno}: {exc}")
        except OSError as exc:
            raise NotifierError(f"event log read failed: {exc}") from exc
        return out

    def _tail_lines(self) -> list[str]:
        try:
            with open(self.log_path, "rb") as f:
                pos = f.seek(0, os.SEEK_END)
                chunk = b""
                # Two newlines inside the chunk guarantee one whole line before a torn one.
                while pos > 0 and chunk.rstrip(b"\n").count(b"\n") < 2:
                    step = min(4096, pos)
                    pos -= step
                    f.seek(pos)
                    chunk = f.read(step) + chunk
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise NotifierError(f"event log read failed: {exc}") from exc
        return [ln for ln in chunk.decode("utf-8", errors="replace").splitlines() if ln.strip()]


EventSink = MemoryEventSink | FileEventSink


class ChangeNotifier:
    """Fire-and-forget emitter of change events.

    A sink failure never propagates out of `emit`: it is logged and handed
    back as a warning so the caller's write still stands.
    """

    def __init__(self, sink: EventSink | None = None, *, enabled: bool = True):
        self._sink = sink if sink is not None else MemoryEventSink()
        self.enabled = enabled
        self._lock = RLock()

    def emit(self, *, first_write: bool) -> NotifierResult:
        if not self.enabled:
            return NotifierResult()
        with self._lock:
            try:
                event = ChangeEvent(
                    seq=self._sink.last_seq() + 1,
                    first_write=first_write,
                    ts=time.time(),
                )
                self._sink.append(event)
            except Exception as exc:
                logger.warning(f"Change notification failed: {exc}")
                return NotifierResult(warnings=[NotifierWarning(message=str(exc))])
        return NotifierResult(event=event)

    def events(self, since: int = 0) -> list[ChangeEvent]:
        with self._lock:
            rows = self._sink.read()
        return [row for row in rows if row.seq > since]
