# -*- coding: utf-8 -*-
"""
RU: Ed25519: генерация пары ключей, сериализация (SPKI DER / PKCS#8 DER), подпись и проверка.

EN: Ed25519 key material helpers.

- generate_keypair() -> KeyPairMaterial(public SPKI DER, private PKCS#8 DER as bytearray)
- sign(private_pkcs8, message) -> 64-byte signature
- verify(public_spki, signature, message) -> bool (never raises on a bad signature)

Private key bytes are handed out as bytearray so callers can wipe them once the
envelope cipher has wrapped them. No key material is logged.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Final, Union

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from custody.exceptions import IntegrityError, ValidationError

_LOGGER: Final = logging.getLogger(__name__)

KTY: Final[str] = "OKP"
CRV: Final[str] = "Ed25519"
SIGNATURE_LEN: Final[int] = 64

BytesLike = Union[bytes, bytearray]


@dataclass
class KeyPairMaterial:
    """Freshly generated key pair in storage encodings."""

    public_spki: bytes
    private_pkcs8: bytearray

    def __repr__(self) -> str:
        return f"KeyPairMaterial(public_spki=<{len(self.public_spki)} bytes>, private_pkcs8=<redacted>)"


def generate_keypair() -> KeyPairMaterial:
    """Generate an Ed25519 key pair."""
    private_key = Ed25519PrivateKey.generate()
    public_spki = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    private_pkcs8 = private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return KeyPairMaterial(public_spki=public_spki, private_pkcs8=bytearray(private_pkcs8))


def load_private_key(private_pkcs8: BytesLike) -> Ed25519PrivateKey:
    """
    Load an Ed25519 private key from PKCS#8 DER.

    Raises:
        IntegrityError: if the bytes are not an Ed25519 PKCS#8 key. Reaching this
            after a successful unwrap means the stored row is inconsistent.
    """
    try:
        key = serialization.load_der_private_key(bytes(private_pkcs8), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        _LOGGER.error("Private key decode failed: %s", exc.__class__.__name__)
        raise IntegrityError("Unwrapped private key is not valid PKCS#8") from exc
    if not isinstance(key, Ed25519PrivateKey):
        raise IntegrityError("Unwrapped private key is not Ed25519")
    return key


def load_public_key(public_spki: BytesLike) -> Ed25519PublicKey:
    """
    Load an Ed25519 public key from SPKI DER.

    Raises:
        ValidationError: if the bytes are not an Ed25519 SPKI key.
    """
    try:
        key = serialization.load_der_public_key(bytes(public_spki))
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise ValidationError("Public key is not valid SPKI DER") from exc
    if not isinstance(key, Ed25519PublicKey):
        raise ValidationError("Public key is not Ed25519")
    return key


def sign(private_pkcs8: BytesLike, message: bytes) -> bytes:
    """Sign message with the PKCS#8-encoded Ed25519 private key."""
    key = load_private_key(private_pkcs8)
    return key.sign(message)


def verify(public_spki: BytesLike, signature: bytes, message: bytes) -> bool:
    """
    Verify an Ed25519 signature.

    Returns False for a wrong-length or non-verifying signature. A malformed
    public key raises ValidationError since that is a data problem, not a verdict.
    """
    key = load_public_key(public_spki)
    if not isinstance(signature, (bytes, bytearray)) or len(signature) != SIGNATURE_LEN:
        return False
    try:
        key.verify(bytes(signature), message)
        return True
    except InvalidSignature:
        return False


__all__ = [
    "KeyPairMaterial",
    "generate_keypair",
    "load_private_key",
    "load_public_key",
    "sign",
    "verify",
    "KTY",
    "CRV",
]
