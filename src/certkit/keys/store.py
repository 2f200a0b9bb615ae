"""Secure key storage — abstract interface, in-memory and filesystem backends.

SecureStore defines the storage contract: entries are addressed by a
human-readable label plus a byte-string tag and are identified afterwards by
opaque :class:`KeyHandle` values that only mean something to the store that
issued them.

InMemorySecureStore keeps entries in a dict and can emulate a hardware
token whose keys are flagged non-exportable. FilesystemSecureStore persists
each entry as a JSON file under a base directory with the key material
encrypted at rest (Fernet, keyed by a scrypt-derived store passphrase).
"""
from __future__ import annotations

import base64
import json
import logging
import os
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from certkit.algorithms import KeyType
from certkit.errors import HandleNotFound, InvalidPassword, KeyStoreError

logger = logging.getLogger(__name__)


class KeyKind(str, Enum):
    """Which half of a key pair a store entry holds."""

    PRIVATE = "private"
    PUBLIC = "public"


@dataclass(frozen=True)
class KeyHandle:
    """Opaque reference to a store entry.

    Equality is by store identity and entry reference, never by key bytes.
    """

    store_id: str
    ref: str

    def to_string(self) -> str:
        """Serialize as ``store_id:ref`` for JSON or config files."""
        return f"{self.store_id}:{self.ref}"

    @classmethod
    def from_string(cls, value: str) -> "KeyHandle":
        store_id, sep, ref = value.partition(":")
        if not sep or not store_id or not ref:
            raise ValueError(f"Not a key handle: {value!r}")
        return cls(store_id=store_id, ref=ref)

    def __repr__(self) -> str:
        return f"KeyHandle({self.ref[:8]})"


@dataclass(frozen=True)
class StoredKey:
    """A store entry as returned by :meth:`SecureStore.load`.

    Parameters
    ----------
    key_der:
        PKCS#8 DER for private entries, SubjectPublicKeyInfo DER for public.
    kind:
        Private or public half.
    key_type:
        Key family.
    label:
        Human-readable label the entry was stored under.
    tag:
        Application tag the entry was stored under.
    exportable:
        False for hardware-bound keys.
    hardware_bound:
        True when the store placed the key in (emulated) hardware.
    """

    key_der: bytes
    kind: KeyKind
    key_type: KeyType
    label: str
    tag: bytes
    exportable: bool = True
    hardware_bound: bool = False


class SecureStore(ABC):
    """Abstract base class for private/public key storage backends."""

    supports_hardware_keys: bool = False

    @property
    @abstractmethod
    def store_id(self) -> str:
        """Identity of this store; embedded in every handle it issues."""

    @abstractmethod
    def store(
        self,
        key_der: bytes,
        label: str,
        tag: bytes,
        *,
        kind: KeyKind,
        key_type: KeyType,
        exportable: bool = True,
        hardware_bound: bool = False,
    ) -> KeyHandle:
        """Persist one key half and return its handle."""

    @abstractmethod
    def load(self, handle: KeyHandle) -> StoredKey:
        """Return the entry for *handle*.

        Raises
        ------
        HandleNotFound
            If the handle was not issued by this store or was deleted.
        """

    @abstractmethod
    def delete(self, handle: KeyHandle) -> None:
        """Remove the entry for *handle*.

        Raises
        ------
        HandleNotFound
            If the handle was not issued by this store or was deleted.
        """

    @abstractmethod
    def find(
        self, label: str, tag: Optional[bytes] = None, kind: Optional[KeyKind] = None
    ) -> list[KeyHandle]:
        """Return handles stored under *label* (and *tag* / *kind* if given)."""

    def contains(self, handle: KeyHandle) -> bool:
        """Return True if *handle* still resolves in this store."""
        try:
            self.load(handle)
        except HandleNotFound:
            return False
        return True

    def _check_hardware(self, hardware_bound: bool) -> None:
        if hardware_bound and not self.supports_hardware_keys:
            raise KeyStoreError(f"{type(self).__name__} cannot hold hardware-bound keys")


class InMemorySecureStore(SecureStore):
    """Dict-backed store for tests and short-lived processes.

    Parameters
    ----------
    hardware_keys:
        Emulate a hardware token: hardware-bound generation requests are
        accepted and the resulting keys are flagged non-exportable.
    """

    def __init__(self, hardware_keys: bool = False) -> None:
        self._id = uuid.uuid4().hex
        self._entries: dict[str, StoredKey] = {}
        self._lock = threading.Lock()
        self.supports_hardware_keys = hardware_keys

    @property
    def store_id(self) -> str:
        return self._id

    def store(
        self,
        key_der: bytes,
        label: str,
        tag: bytes,
        *,
        kind: KeyKind,
        key_type: KeyType,
        exportable: bool = True,
        hardware_bound: bool = False,
    ) -> KeyHandle:
        self._check_hardware(hardware_bound)
        entry = StoredKey(
            key_der=bytes(key_der),
            kind=kind,
            key_type=key_type,
            label=label,
            tag=bytes(tag),
            exportable=exportable and not hardware_bound,
            hardware_bound=hardware_bound,
        )
        ref = uuid.uuid4().hex
        with self._lock:
            self._entries[ref] = entry
        return KeyHandle(store_id=self._id, ref=ref)

    def load(self, handle: KeyHandle) -> StoredKey:
        with self._lock:
            entry = self._entries.get(handle.ref) if handle.store_id == self._id else None
        if entry is None:
            raise HandleNotFound(handle)
        return entry

    def delete(self, handle: KeyHandle) -> None:
        with self._lock:
            if handle.store_id != self._id or handle.ref not in self._entries:
                raise HandleNotFound(handle)
            del self._entries[handle.ref]

    def find(
        self, label: str, tag: Optional[bytes] = None, kind: Optional[KeyKind] = None
    ) -> list[KeyHandle]:
        with self._lock:
            return [
                KeyHandle(store_id=self._id, ref=ref)
                for ref, entry in self._entries.items()
                if entry.label == label
                and (tag is None or entry.tag == tag)
                and (kind is None or entry.kind is kind)
            ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class FilesystemSecureStore(SecureStore):
    """Filesystem-backed store with key material encrypted at rest.

    Layout under *base_dir*::

        store.json            store id, scrypt salt, passphrase check token
        entries/<ref>.json    one entry (metadata + Fernet-encrypted key DER)

    Parameters
    ----------
    base_dir:
        Root directory; created if missing.
    passphrase:
        Secret the entry encryption key is derived from.

    Raises
    ------
    InvalidPassword
        If *base_dir* already holds a store created with another passphrase.
    """

    _CHECK_PLAINTEXT = b"certkit-store"

    def __init__(self, base_dir: Path, passphrase: Union[str, bytes]) -> None:
        self._base_dir = Path(base_dir)
        self._entries_dir = self._base_dir / "entries"
        self._entries_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        secret = passphrase.encode("utf-8") if isinstance(passphrase, str) else passphrase

        meta_path = self._base_dir / "store.json"
        if meta_path.exists():
            meta = json.loads(meta_path.read_text(encoding="utf-8"))
            self._id = meta["store_id"]
            self._fernet = Fernet(self._derive(secret, base64.b64decode(meta["salt"])))
            try:
                self._fernet.decrypt(meta["check"].encode("ascii"))
            except InvalidToken as exc:
                raise InvalidPassword(f"Wrong passphrase for key store at {self._base_dir}") from exc
        else:
            salt = os.urandom(16)
            self._id = uuid.uuid4().hex
            self._fernet = Fernet(self._derive(secret, salt))
            meta = {
                "store_id": self._id,
                "salt": base64.b64encode(salt).decode("ascii"),
                "check": self._fernet.encrypt(self._CHECK_PLAINTEXT).decode("ascii"),
            }
            meta_path.write_text(json.dumps(meta, indent=2), encoding="utf-8")
            logger.info("Initialised key store %s at %s", self._id, self._base_dir)

    @staticmethod
    def _derive(secret: bytes, salt: bytes) -> bytes:
        key = Scrypt(salt=salt, length=32, n=2**14, r=8, p=1).derive(secret)
        return base64.urlsafe_b64encode(key)

    @property
    def store_id(self) -> str:
        return self._id

    # ------------------------------------------------------------------
    # SecureStore interface
    # ------------------------------------------------------------------

    def store(
        self,
        key_der: bytes,
        label: str,
        tag: bytes,
        *,
        kind: KeyKind,
        key_type: KeyType,
        exportable: bool = True,
        hardware_bound: bool = False,
    ) -> KeyHandle:
        self._check_hardware(hardware_bound)
        ref = uuid.uuid4().hex
        record = {
            "label": label,
            "tag": base64.b64encode(bytes(tag)).decode("ascii"),
            "kind": kind.value,
            "key_type": key_type.value,
            "exportable": exportable,
            "key": self._fernet.encrypt(bytes(key_der)).decode("ascii"),
        }
        with self._lock:
            self._entry_path(ref).write_text(json.dumps(record, indent=2), encoding="utf-8")
        return KeyHandle(store_id=self._id, ref=ref)

    def load(self, handle: KeyHandle) -> StoredKey:
        path = self._resolve(handle)
        with self._lock:
            if not path.exists():
                raise HandleNotFound(handle)
            record = json.loads(path.read_text(encoding="utf-8"))
        return self._to_entry(record)

    def delete(self, handle: KeyHandle) -> None:
        path = self._resolve(handle)
        with self._lock:
            try:
                path.unlink()
            except FileNotFoundError as exc:
                raise HandleNotFound(handle) from exc

    def find(
        self, label: str, tag: Optional[bytes] = None, kind: Optional[KeyKind] = None
    ) -> list[KeyHandle]:
        handles = []
        with self._lock:
            paths = sorted(self._entries_dir.glob("*.json"))
            records = [(p.stem, json.loads(p.read_text(encoding="utf-8"))) for p in paths]
        for ref, record in records:
            if record["label"] != label:
                continue
            if tag is not None and base64.b64decode(record["tag"]) != tag:
                continue
            if kind is not None and record["kind"] != kind.value:
                continue
            handles.append(KeyHandle(store_id=self._id, ref=ref))
        return handles

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _entry_path(self, ref: str) -> Path:
        return self._entries_dir / f"{ref}.json"

    def _resolve(self, handle: KeyHandle) -> Path:
        # Refs are uuid hex; anything else cannot have been issued here.
        if handle.store_id != self._id or not all(c in "0123456789abcdef" for c in handle.ref):
            raise HandleNotFound(handle)
        return self._entry_path(handle.ref)

    def _to_entry(self, record: dict) -> StoredKey:
        try:
            key_der = self._fernet.decrypt(record["key"].encode("ascii"))
        except InvalidToken as exc:
            raise KeyStoreError(f"Key entry {record['label']!r} cannot be decrypted") from exc
        return StoredKey(
            key_der=key_der,
            kind=KeyKind(record["kind"]),
            key_type=KeyType(record["key_type"]),
            label=record["label"],
            tag=base64.b64decode(record["tag"]),
            exportable=record["exportable"],
        )


__all__ = [
    "FilesystemSecureStore",
    "InMemorySecureStore",
    "KeyHandle",
    "KeyKind",
    "SecureStore",
    "StoredKey",
]
