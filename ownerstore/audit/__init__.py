"""Audit feed of secret mutations."""

from ownerstore.audit.notifier import (
    ChangeEvent,
    ChangeNotifier,
    FileEventSink,
    MemoryEventSink,
    NotifierResult,
    NotifierWarning,
)

__all__ = [
    "ChangeEvent",
    "ChangeNotifier",
    "FileEventSink",
    "MemoryEventSink",
    "NotifierResult",
    "NotifierWarning",
]
