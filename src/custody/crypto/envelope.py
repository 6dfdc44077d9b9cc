# -*- coding: utf-8 -*-
"""
RU: Конвертное шифрование закрытых ключей AES-256-GCM под мастер-ключом процесса,
случайный 96-битный IV на каждый вызов.

EN: Envelope cipher for private key material: AES-256-GCM under the process master key
with a fresh random 96-bit IV per wrap.

Security notes:
- IV reuse under one master key breaks GCM confidentiality and integrity; every wrap()
  draws a new IV from the unified RNG in custody.crypto.utils.
- The 16-byte tag is appended to the ciphertext (ciphertext||tag), matching what
  WebCrypto-style AES-GCM emits, so stored rows stay interoperable.
- unwrap() returns a bytearray so the caller can wipe it with zero_memory().
- The master key is never logged or stored by this module.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Final, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from custody.crypto.utils import generate_random_bytes
from custody.exceptions import ConfigurationError, IntegrityError

_LOGGER: Final = logging.getLogger(__name__)

KEY_LEN: Final[int] = 32
IV_LEN: Final[int] = 12
TAG_LEN: Final[int] = 16
ENC_ALGO: Final[str] = "AES-GCM"

BytesLike = Union[bytes, bytearray]


@dataclass(frozen=True)
class WrappedKey:
    """Ciphertext (with appended GCM tag) and the IV it was produced under."""

    ciphertext: bytes
    iv: bytes

    def __repr__(self) -> str:
        return f"WrappedKey(ciphertext=<{len(self.ciphertext)} bytes>, iv=<{len(self.iv)} bytes>)"


def _validate_master_key(master_key: BytesLike) -> None:
    if not isinstance(master_key, (bytes, bytearray)) or len(master_key) != KEY_LEN:
        raise ConfigurationError("Master key must be exactly 32 bytes")


class EnvelopeCipher:
    """
    Wrap/unwrap private key bytes under a master key.

    Stateless; safe to share between threads.

    Examples:
        >>> cipher = EnvelopeCipher()
        >>> wrapped = cipher.wrap(b"secret", b"\\x01" * 32)
        >>> bytes(cipher.unwrap(wrapped.ciphertext, wrapped.iv, b"\\x01" * 32))
        b'secret'
    """

    __slots__ = ()

    def wrap(self, plaintext: BytesLike, master_key: BytesLike) -> WrappedKey:
        """
        Encrypt plaintext with AES-256-GCM and a fresh IV.

        Raises:
            ConfigurationError: if master_key is not 32 bytes.
        """
        _validate_master_key(master_key)
        if not isinstance(plaintext, (bytes, bytearray)) or len(plaintext) == 0:
            raise ValueError("Plaintext must be non-empty bytes")

        iv = generate_random_bytes(IV_LEN)
        ciphertext = AESGCM(bytes(master_key)).encrypt(iv, bytes(plaintext), None)
        _LOGGER.debug("Private key material wrapped (%d bytes)", len(ciphertext))
        return WrappedKey(ciphertext=ciphertext, iv=iv)

    def unwrap(
        self, ciphertext: BytesLike, iv: BytesLike, master_key: BytesLike
    ) -> bytearray:
        """
        Decrypt and authenticate.

        Raises:
            ConfigurationError: if master_key is not 32 bytes.
            IntegrityError: if the tag does not verify or the inputs are structurally invalid.
        """
        _validate_master_key(master_key)
        if not isinstance(iv, (bytes, bytearray)) or len(iv) != IV_LEN:
            _LOGGER.error("Envelope unwrap rejected: bad IV length")
            raise IntegrityError("Wrapped key IV is invalid")
        if not isinstance(ciphertext, (bytes, bytearray)) or len(ciphertext) <= TAG_LEN:
            _LOGGER.error("Envelope unwrap rejected: ciphertext too short")
            raise IntegrityError("Wrapped key ciphertext is invalid")

        try:
            plaintext = AESGCM(bytes(master_key)).decrypt(
                bytes(iv), bytes(ciphertext), None
            )
        except InvalidTag as exc:
            _LOGGER.error("Envelope unwrap failed: authentication tag mismatch")
            raise IntegrityError("Wrapped key failed authentication") from exc
        return bytearray(plaintext)


__all__ = ["EnvelopeCipher", "WrappedKey", "KEY_LEN", "IV_LEN", "TAG_LEN", "ENC_ALGO"]
