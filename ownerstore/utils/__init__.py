"""Utility helpers for ownerstore."""

from ownerstore.utils.files import atomic_write_text, file_lock

__all__ = ["atomic_write_text", "file_lock"]
