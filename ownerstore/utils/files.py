"""File helpers: atomic replace and advisory inter-process locks."""

from __future__ import annotations

import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

try:
    import fcntl
except ImportError:  # pragma: no cover - unavailable on Windows.
    fcntl = None


def atomic_write_text(path: Path, payload: str, *, mode: int | None = None) -> None:
    """Write `payload` to a sibling temp file, then rename it over `path`."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=str(path.parent),
        prefix=f"{path.name}.",
        suffix=".tmp",
        delete=False,
    ) as tmp:
        tmp.write(payload)
        tmp.flush()
        os.fsync(tmp.fileno())
        tmp_path = Path(tmp.name)
    if mode is not None:
        try:
            os.chmod(tmp_path, mode)
        except OSError:
            pass
    tmp_path.replace(path)


@contextmanager
def file_lock(lock_path: Path | None) -> Iterator[None]:
    """Hold an exclusive flock on `lock_path` (no-op when None)."""
    if lock_path is None:
        yield
        return
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    handle = open(lock_path, "a+", encoding="utf-8")
    try:
        if fcntl is not None:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        yield
    finally:
        if fcntl is not None:
            try:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
            except OSError:
                pass
        handle.close()
