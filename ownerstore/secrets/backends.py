"""Persistence backends for the secret cell: in-memory or encrypted file."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import os
from contextlib import contextmanager, nullcontext
from dataclasses import dataclass
from pathlib import Path
from typing import ContextManager, Iterator

from ownerstore.errors import CellStorageError
from ownerstore.utils.files import atomic_write_text, file_lock


@dataclass(frozen=True)
class CellState:
    value: bytes = b""
    is_set: bool = False


class MemoryCellBackend:
    """Process-local cell state."""

    backend_name = "memory"

    def __init__(self) -> None:
        self._state = CellState()

    def locked(self) -> ContextManager[None]:
        return nullcontext()

    def load(self) -> CellState:
        return self._state

    def save(self, state: CellState) -> None:
        self._state = state


class EncryptedFileCellBackend:
    """
    Encrypted single-cell file backend.

    Encryption scheme:
    - Master key from env or local key file.
    - Per-write random salt + nonce.
    - Scrypt key derivation (PBKDF2 when scrypt is unavailable) + HMAC-SHA256 stream cipher.
    - HMAC tag for integrity.

    Unlike a cache, a tampered or unreadable cell is an error, never an empty cell.
    """

    backend_name = "encrypted_file"
    MASTER_KEY_ENV = "OWNERSTORE_MASTER_KEY"

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir).expanduser()
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.cell_file = self.data_dir / "cell.enc.json"
        self.key_file = self.data_dir / "cell.key"
        self.lock_file = self.data_dir / "cell.enc.json.lock"
        self._master_key = self._load_master_key()

    @contextmanager
    def locked(self) -> Iterator[None]:
        with file_lock(self.lock_file):
            yield

    def load(self) -> CellState:
        if not self.cell_file.exists():
            return CellState()
        try:
            payload = json.loads(self.cell_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise CellStorageError(f"cannot read {self.cell_file}: {exc}") from exc
        return self._decrypt_payload(payload)

    def save(self, state: CellState) -> None:
        payload = self._encrypt_payload(state)
        try:
            atomic_write_text(self.cell_file, json.dumps(payload, indent=2), mode=0o600)
        except OSError as exc:
            raise CellStorageError(f"cannot write {self.cell_file}: {exc}") from exc

    def _load_master_key(self) -> bytes:
        env_key = (os.environ.get(self.MASTER_KEY_ENV) or "").strip()
        if env_key:
            return env_key.encode("utf-8")

        # Creation and first read happen under the cell lock so concurrent
        # starters on a fresh data_dir all end up with the same key.
        with file_lock(self.lock_file):
            try:
                fd = os.open(self.key_file, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o600)
            except FileExistsError:
                return self._read_key_file()
            key = os.urandom(32)
            with os.fdopen(fd, "wb") as handle:
                handle.write(key.hex().encode("ascii"))
                handle.flush()
                os.fsync(handle.fileno())
            return key

    def _read_key_file(self) -> bytes:
        try:
            raw = self.key_file.read_bytes().strip()
        except OSError as exc:
            raise CellStorageError(f"cannot read {self.key_file}: {exc}") from exc
        if not raw:
            raise CellStorageError(f"master key file {self.key_file} is empty")
        try:
            return bytes.fromhex(raw.decode("ascii"))
        except (UnicodeDecodeError, ValueError):
            # Operator-supplied key material is used as-is.
            return raw

    def _derive_key(self, salt: bytes, kdf: str) -> bytes:
        if kdf == "scrypt":
            scrypt = getattr(hashlib, "scrypt", None)
            if scrypt is None:
                raise CellStorageError("cell was written with scrypt, which is unavailable here")
            return scrypt(self._master_key, salt=salt, n=2**14, r=8, p=1, dklen=32)
        if kdf == "pbkdf2":
            return hashlib.pbkdf2_hmac("sha256", self._master_key, salt, 200_000, dklen=32)
        raise CellStorageError(f"unknown key derivation '{kdf}'")

    @staticmethod
    def _preferred_kdf() -> str:
        return "scrypt" if getattr(hashlib, "scrypt", None) else "pbkdf2"

    def _encrypt_payload(self, state: CellState) -> dict[str, str | int]:
        plaintext = json.dumps(
            {"is_set": bool(state.is_set), "value": base64.b64encode(state.value).decode("ascii")},
            separators=(",", ":"),
        ).encode("utf-8")
        kdf = self._preferred_kdf()
        salt = os.urandom(16)
        nonce = os.urandom(16)
        key = self._derive_key(salt, kdf)
        ciphertext = self._xor_stream(plaintext, key=key, nonce=nonce)
        tag = hmac.new(key, nonce + ciphertext, hashlib.sha256).digest()
        return {
            "v": 1,
            "kdf": kdf,
            "salt": base64.b64encode(salt).decode("ascii"),
            "nonce": base64.b64encode(nonce).decode("ascii"),
            "ciphertext": base64.b64encode(ciphertext).decode("ascii"),
            "tag": base64.b64encode(tag).decode("ascii"),
        }

    def _decrypt_payload(self, payload: object) -> CellState:
        if not isinstance(payload, dict) or int(payload.get("v") or 0) != 1:
            raise CellStorageError("unsupported cell envelope")
        try:
            salt = base64.b64decode(payload["salt"])
            nonce = base64.b64decode(payload["nonce"])
            ciphertext = base64.b64decode(payload["ciphertext"])
            tag = base64.b64decode(payload["tag"])
        except (KeyError, binascii.Error, TypeError) as exc:
            raise CellStorageError(f"malformed cell envelope: {exc}") from exc

        key = self._derive_key(salt, str(payload.get("kdf") or "scrypt"))
        expected = hmac.new(key, nonce + ciphertext, hashlib.sha256).digest()
        if not hmac.compare_digest(tag, expected):
            raise CellStorageError("cell integrity check failed")
        plaintext = self._xor_stream(ciphertext, key=key, nonce=nonce)
        try:
            data = json.loads(plaintext.decode("utf-8"))
            return CellState(value=base64.b64decode(data["value"]), is_set=bool(data["is_set"]))
        except (ValueError, KeyError, TypeError, binascii.Error) as exc:
            raise CellStorageError(f"corrupt cell plaintext: {exc}") from exc

    @staticmethod
    def _xor_stream(data: bytes, *, key: bytes, nonce: bytes) -> bytes:
        block_count = (len(data) + 31) // 32
        stream = b"".join(
            hmac.new(key, nonce + counter.to_bytes(8, "big"), hashlib.sha256).digest()
            for counter in range(block_count)
        )
        return bytes(a ^ b for a, b in zip(data, stream))


CellBackend = MemoryCellBackend | EncryptedFileCellBackend


def open_backend(kind: str, data_dir: Path | None = None) -> CellBackend:
    """Resolve a backend by name ("memory" or "file")."""
    resolved = (kind or "").strip().lower()
    if resolved == "memory":
        return MemoryCellBackend()
    if resolved == "file":
        if data_dir is None:
            raise ValueError("file backend requires a data directory")
        return EncryptedFileCellBackend(data_dir)
    raise ValueError(f"unknown cell backend '{kind}'")
