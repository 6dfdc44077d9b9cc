# -*- coding: utf-8 -*-
"""
RU: Потокобезопасное файловое хранилище JSON с атомарной записью и правами 0600.

EN: Thread-safe JSON file store with atomic writes and owner-only permissions.

Design:
- Implements SigningKeyStore, SignatureStore, DocumentStore and UserDirectory.
- On-disk format: one JSON object
      {"v": 1,
       "users": ["<id>", ...],
       "signing_keys": {"<kid>": <row>, ...},
       "document_signatures": [<row>, ...],
       "documents": {"<id>": <row>, ...}}
- Every mutation is read-modify-write under an RLock (threads of this
  instance) and an exclusive lock on the sidecar file "<name>.lock" (other
  instances and processes), then a temp file + fsync + os.replace so readers
  never observe a half-written file.
- Wrapped private keys are stored as produced by the envelope cipher; the
  master key never reaches this module. Only structural events are logged.
"""

from __future__ import annotations

import json
import logging
import os
import sys
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Final, Iterator, List, Optional

from custody.crypto.utils import set_secure_file_permissions
from custody.exceptions import (
    DuplicateRecordError,
    NotFoundError,
    StorageError,
    StorageReadError,
    StorageWriteError,
    ValidationError,
)
from custody.model.document import Document
from custody.model.signature import DocumentSignature
from custody.model.signing_key import SigningKey
from custody.storage.protocols import KeyMutator

_LOGGER: Final = logging.getLogger(__name__)

_FORMAT_VERSION: Final[int] = 1

if sys.platform == "win32":
    import msvcrt

    def _lock_file(fd: int) -> None:
        """Acquire exclusive lock on Windows (retries for about 10 s, then OSError)."""
        msvcrt.locking(fd, msvcrt.LK_LOCK, 1)

    def _unlock_file(fd: int) -> None:
        msvcrt.locking(fd, msvcrt.LK_UNLCK, 1)

else:
    import fcntl

    def _lock_file(fd: int) -> None:
        """Acquire exclusive lock on POSIX (blocks until free)."""
        fcntl.flock(fd, fcntl.LOCK_EX)

    def _unlock_file(fd: int) -> None:
        fcntl.flock(fd, fcntl.LOCK_UN)


_Db = Dict[str, Any]


def _empty_db() -> _Db:
    return {
        "v": _FORMAT_VERSION,
        "users": [],
        "signing_keys": {},
        "document_signatures": [],
        "documents": {},
    }


class JsonFileStore:
    """
    Durable single-file backend.

    Args:
        filepath: path to the JSON file (created on first write).

    Raises:
        StorageError: on an invalid path.
    """

    __slots__ = ("_filepath", "_lock_path", "_lock")

    def __init__(self, filepath: str) -> None:
        if not isinstance(filepath, str) or not filepath:
            raise StorageError("Invalid store path")
        self._filepath: Path = Path(filepath).resolve()
        self._lock_path: Path = self._filepath.with_name(self._filepath.name + ".lock")
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._filepath

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        """
        Hold the instance RLock and the sidecar file lock for one read-modify-write.

        Raises:
            StorageWriteError: if the lock file cannot be opened or locked.
        """
        with self._lock:
            try:
                self._lock_path.parent.mkdir(parents=True, exist_ok=True)
                lock_f = self._lock_path.open("a+b")
            except OSError as exc:
                _LOGGER.error("Could not open lock file: %s", exc.__class__.__name__)
                raise StorageWriteError("Could not acquire file lock") from exc
            try:
                try:
                    lock_f.seek(0)
                    _lock_file(lock_f.fileno())
                except OSError as exc:
                    _LOGGER.error("Could not acquire file lock: %s", exc)
                    raise StorageWriteError("Could not acquire file lock") from exc
                try:
                    yield
                finally:
                    lock_f.seek(0)
                    _unlock_file(lock_f.fileno())
            finally:
                lock_f.close()

    # UserDirectory

    def add_user(self, user_id: str) -> None:
        with self._exclusive():
            db = self._read_db_checked()
            if user_id not in db["users"]:
                db["users"].append(user_id)
                self._atomically_write_db(db)

    def user_exists(self, user_id: str) -> bool:
        with self._lock:
            return user_id in self._read_db_checked()["users"]

    # SigningKeyStore

    def insert_key(self, key: SigningKey) -> None:
        with self._exclusive():
            db = self._read_db_checked()
            if key.kid in db["signing_keys"]:
                raise DuplicateRecordError("Signing key id already exists")
            db["signing_keys"][key.kid] = key.to_dict()
            self._atomically_write_db(db)
            _LOGGER.info("Signing key row '%s' stored.", key.kid)

    def get_key(self, kid: str) -> Optional[SigningKey]:
        with self._lock:
            row = self._read_db_checked()["signing_keys"].get(kid)
            return self._key_from_row(row) if row is not None else None

    def keys_for(self, owner_id: str) -> List[SigningKey]:
        with self._lock:
            rows = self._read_db_checked()["signing_keys"].values()
            return [self._key_from_row(r) for r in rows if r.get("assigned_to") == owner_id]

    def update_key(self, kid: str, mutator: KeyMutator) -> SigningKey:
        with self._exclusive():
            db = self._read_db_checked()
            row = db["signing_keys"].get(kid)
            if row is None:
                raise NotFoundError("Signing key not found")
            updated = mutator(self._key_from_row(row))
            db["signing_keys"][kid] = updated.to_dict()
            self._atomically_write_db(db)
            return updated

    # SignatureStore

    def insert_signature(self, signature: DocumentSignature) -> None:
        with self._exclusive():
            db = self._read_db_checked()
            db["document_signatures"].append(signature.to_dict())
            self._atomically_write_db(db)

    def signatures_for(self, document_id: str) -> List[DocumentSignature]:
        with self._lock:
            rows = self._read_db_checked()["document_signatures"]
            try:
                return [
                    DocumentSignature.from_dict(r)
                    for r in rows
                    if r.get("document_id") == document_id
                ]
            except (KeyError, TypeError, ValidationError) as exc:
                raise StorageReadError("Malformed signature row") from exc

    # DocumentStore

    def add_document(self, document: Document) -> None:
        with self._exclusive():
            db = self._read_db_checked()
            db["documents"][document.id] = document.to_dict()
            self._atomically_write_db(db)

    def get_document(self, document_id: str) -> Optional[Document]:
        with self._lock:
            row = self._read_db_checked()["documents"].get(document_id)
            return self._document_from_row(row) if row is not None else None

    def find_by_serial(self, serial: str) -> Optional[Document]:
        with self._lock:
            for row in self._read_db_checked()["documents"].values():
                if row.get("serial") is not None and row.get("serial") == serial:
                    return self._document_from_row(row)
            return None

    def mark_signed(self, document_id: str, key_id: str, signed_at: str) -> None:
        with self._exclusive():
            db = self._read_db_checked()
            row = db["documents"].get(document_id)
            if row is None:
                raise NotFoundError("Document not found")
            row["signed"] = True
            row["signed_at"] = signed_at
            row["certificate_id"] = key_id
            self._atomically_write_db(db)

    # Internals

    @staticmethod
    def _key_from_row(row: Dict[str, Any]) -> SigningKey:
        try:
            return SigningKey.from_dict(row)
        except (KeyError, TypeError, ValidationError) as exc:
            _LOGGER.error("Malformed signing key row: %s", exc.__class__.__name__)
            raise StorageReadError("Malformed signing key row") from exc

    @staticmethod
    def _document_from_row(row: Dict[str, Any]) -> Document:
        try:
            return Document.from_dict(row)
        except (KeyError, TypeError, ValidationError) as exc:
            raise StorageReadError("Malformed document row") from exc

    def _read_db_checked(self) -> _Db:
        """
        Read the JSON object from file or return an empty layout if the file does not exist.

        Raises:
            StorageReadError: if file content is invalid.
        """
        if not self._filepath.exists():
            return _empty_db()

        try:
            with self._filepath.open("r", encoding="utf-8") as f:
                content = f.read()
        except OSError as exc:
            _LOGGER.error("Store read error: %s", exc.__class__.__name__)
            raise StorageReadError("Failed to read store file") from exc

        try:
            obj = json.loads(content)
            if not isinstance(obj, dict):
                raise ValueError("Root must be a JSON object")
            version = obj.get("v", _FORMAT_VERSION)
            if not isinstance(version, int) or version > _FORMAT_VERSION:
                raise ValueError("Unsupported store version")
            db = _empty_db()
            for section, kind in (
                ("users", list),
                ("signing_keys", dict),
                ("document_signatures", list),
                ("documents", dict),
            ):
                value = obj.get(section, db[section])
                if not isinstance(value, kind):
                    raise ValueError(f"Section '{section}' has wrong type")
                db[section] = value
            return db
        except ValueError as exc:
            _LOGGER.error("Store parse error: %s", exc.__class__.__name__)
            raise StorageReadError("Invalid store format") from exc

    def _atomically_write_db(self, db: _Db) -> None:
        """
        Write JSON to a temp file and atomically replace the target file, then harden permissions.

        Caller holds _exclusive(). Output is ASCII-escaped so lone surrogates in
        document text survive the round trip.
        """
        data = json.dumps(db, sort_keys=True, separators=(",", ":"))

        self._filepath.parent.mkdir(parents=True, exist_ok=True)

        fd: Optional[int] = None
        tmp_path: Optional[str] = None
        try:
            fd, tmp_path = tempfile.mkstemp(
                prefix=".custody-",
                suffix=".tmp",
                dir=str(self._filepath.parent),
                text=True,
            )
            with os.fdopen(fd, "w", encoding="utf-8") as tmp_f:
                fd = None
                tmp_f.write(data)
                tmp_f.flush()
                os.fsync(tmp_f.fileno())

            Path(tmp_path).replace(self._filepath)
            set_secure_file_permissions(str(self._filepath))

        except OSError as exc:
            self._cleanup_tmp(fd, tmp_path)
            _LOGGER.error("Store write failed: %s", exc.__class__.__name__)
            raise StorageWriteError("Write operation failed") from exc

    @staticmethod
    def _cleanup_tmp(fd: Optional[int], tmp_path: Optional[str]) -> None:
        if fd is not None:
            try:
                os.close(fd)
            except OSError:
                pass
        if tmp_path and Path(tmp_path).exists():
            try:
                Path(tmp_path).unlink()
            except OSError:
                pass


__all__ = ["JsonFileStore"]
