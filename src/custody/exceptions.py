# -*- coding: utf-8 -*-
"""
RU: Централизованная иерархия исключений ядра хранения ключей подписи, без утечек секретов
в текстах сообщений.

EN: Centralized exception hierarchy for the signing-key custody core.

Guidelines:
- Do not put secrets (master keys, passphrases, salts, IVs, private key bytes) into messages.
- Raise the narrowest kind so callers can map it to a response without string matching.
- Verification outcomes (invalid signature, hash mismatch, revoked key, unsigned document)
  are NOT exceptions; they are returned as data by the verifier.
"""

from __future__ import annotations

from typing import Optional


class CustodyError(Exception):
    """Base exception for all custody-core failures."""

    def __init__(
        self, message: str = "", *, cause: Optional[BaseException] = None
    ) -> None:
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause


class ValidationError(CustodyError):
    """Bad input or passphrase-policy violation."""


class DecodeError(ValidationError):
    """Malformed base64 (or other encoded) input."""


class NotFoundError(CustodyError):
    """Document, signing key or owner is absent (or no usable key qualifies)."""


class ConfigurationError(CustodyError):
    """Master key missing or malformed. Fatal; not retriable by the caller."""


class ForbiddenError(CustodyError):
    """Wrong passphrase. Carries no detail beyond the error kind."""


class IntegrityError(CustodyError):
    """Envelope decryption failed (tampering or master-key mismatch). Operational alarm."""


class StorageError(CustodyError):
    """Persistent store failure (I/O, corrupt file, constraint violation)."""


class StorageReadError(StorageError):
    """Store could not be read or parsed."""


class StorageWriteError(StorageError):
    """Store could not be written."""


class DuplicateRecordError(StorageWriteError):
    """Insert would violate a uniqueness constraint (e.g. an existing kid)."""


__all__ = [
    "CustodyError",
    "ValidationError",
    "DecodeError",
    "NotFoundError",
    "ConfigurationError",
    "ForbiddenError",
    "IntegrityError",
    "StorageError",
    "StorageReadError",
    "StorageWriteError",
    "DuplicateRecordError",
]
