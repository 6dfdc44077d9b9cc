# -*- coding: utf-8 -*-
"""
RU: Проверка парольной фразы ключа подписи: PBKDF2-HMAC-SHA256 с солью, число итераций
хранится в каждой записи, сравнение в константное время.

EN: Passphrase gate for signing keys. Salted, iterated PBKDF2-HMAC-SHA256 with the
iteration count stored per record, so historical keys stay verifiable after the
default is raised.

Format:
    "pbkdf2:<iterations>:<b64salt>:<b64dk>"

Notes:
- verify() fails closed: malformed records return False and never raise.
- The gate knows nothing about passphrase policy (prefix/length/symbol rules);
  see custody.crypto.policy.
- No secrets (passphrases, salts, derived keys) are logged.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Final, Optional, Tuple

from custody.crypto import codec
from custody.crypto.utils import constant_time_equals, generate_random_bytes
from custody.exceptions import DecodeError, ForbiddenError, ValidationError

_LOGGER: Final = logging.getLogger(__name__)

ALGORITHM_TAG: Final[str] = "pbkdf2"
MIN_ITERATIONS: Final[int] = 100_000
DEFAULT_ITERATIONS: Final[int] = 100_000
MAX_ITERATIONS: Final[int] = 10_000_000
SALT_LEN: Final[int] = 16
DERIVED_KEY_LEN: Final[int] = 32
_HASH_NAME: Final[str] = "sha256"
_MAX_PASSPHRASE_LEN: Final[int] = 4096


def _parse(stored: str) -> Optional[Tuple[int, bytes, bytes]]:
    """Split a stored record into (iterations, salt, derived key); None if malformed."""
    if not isinstance(stored, str) or not stored:
        return None
    parts = stored.split(":")
    if len(parts) != 4 or parts[0] != ALGORITHM_TAG:
        return None
    if not (parts[1].isascii() and parts[1].isdigit()):
        return None
    iterations = int(parts[1])
    if iterations <= 0 or iterations > MAX_ITERATIONS:
        return None
    try:
        salt = codec.decode(parts[2])
        expected = codec.decode(parts[3])
    except DecodeError:
        return None
    if not salt or not expected:
        return None
    return iterations, salt, expected


class PassphraseGate:
    """
    Hash, verify and rotate a per-key passphrase.

    Args:
        iterations: PBKDF2 iterations used for NEW hashes (>= 100_000).

    Examples:
        >>> gate = PassphraseGate()
        >>> stored = gate.hash("CA-Secret!1")
        >>> gate.verify("CA-Secret!1", stored)
        True
    """

    __slots__ = ("_iterations",)

    def __init__(self, iterations: int = DEFAULT_ITERATIONS) -> None:
        if not isinstance(iterations, int) or iterations < MIN_ITERATIONS:
            raise ValidationError(f"Iterations must be >= {MIN_ITERATIONS}")
        self._iterations = iterations

    @property
    def iterations(self) -> int:
        return self._iterations

    @staticmethod
    def _derive(passphrase: str, salt: bytes, iterations: int, length: int) -> bytes:
        return hashlib.pbkdf2_hmac(
            _HASH_NAME, passphrase.encode("utf-8"), salt, iterations, dklen=length
        )

    def hash(self, passphrase: str) -> str:
        """
        Produce a stored record for passphrase.

        Raises:
            ValidationError: if passphrase is not a non-empty string.
        """
        if not isinstance(passphrase, str) or passphrase == "":
            raise ValidationError("Passphrase must be a non-empty string")
        if len(passphrase) > _MAX_PASSPHRASE_LEN:
            raise ValidationError("Passphrase too long")

        salt = generate_random_bytes(SALT_LEN)
        dk = self._derive(passphrase, salt, self._iterations, DERIVED_KEY_LEN)
        _LOGGER.debug("Passphrase hashed (iters=%d)", self._iterations)
        return ":".join(
            [ALGORITHM_TAG, str(self._iterations), codec.encode(salt), codec.encode(dk)]
        )

    def verify(self, passphrase: str, stored: str) -> bool:
        """Re-derive with the record's own salt and iterations; compare in constant time."""
        if not isinstance(passphrase, str) or len(passphrase) > _MAX_PASSPHRASE_LEN:
            return False
        parsed = _parse(stored)
        if parsed is None:
            _LOGGER.warning("Malformed passphrase record; verification failed closed")
            return False
        iterations, salt, expected = parsed
        try:
            derived = self._derive(passphrase, salt, iterations, len(expected))
        except (ValueError, OverflowError) as exc:
            _LOGGER.warning("Passphrase derivation failed: %s", exc.__class__.__name__)
            return False
        return constant_time_equals(derived, expected)

    def rotate(self, old: str, new: str, stored: str) -> str:
        """
        Replace the passphrase behind stored.

        Raises:
            ValidationError: if new equals old.
            ForbiddenError: if old does not verify against stored.
        """
        if new == old:
            raise ValidationError("New passphrase must differ from the old one")
        if not self.verify(old, stored):
            raise ForbiddenError("Passphrase rejected")
        return self.hash(new)

    def needs_rehash(self, stored: str) -> bool:
        """True when the record is malformed or uses fewer iterations than the current default."""
        parsed = _parse(stored)
        if parsed is None:
            return True
        return parsed[0] < self._iterations


__all__ = [
    "PassphraseGate",
    "ALGORITHM_TAG",
    "MIN_ITERATIONS",
    "DEFAULT_ITERATIONS",
]
