"""Secret cell and its persistence backends."""

from ownerstore.secrets.backends import (
    CellState,
    EncryptedFileCellBackend,
    MemoryCellBackend,
    open_backend,
)
from ownerstore.secrets.cell import SecretCell, SetResult

__all__ = [
    "CellState",
    "EncryptedFileCellBackend",
    "MemoryCellBackend",
    "SecretCell",
    "SetResult",
    "open_backend",
]
