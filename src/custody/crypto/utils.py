# -*- coding: utf-8 -*-
"""
RU: Криптографические утилиты: RNG через HKDF-микширование, best-effort зануление буферов,
сравнение в константное время.

EN: Crypto utilities shared by the gate, the envelope cipher and the signer:
- generate_random_bytes: dual-source RNG mixed through HKDF-SHA256 with sanity checks.
- zero_memory: best-effort wipe of mutable buffers holding key material.
- constant_time_equals: full-length XOR accumulation, no early exit.
"""
from __future__ import annotations

import logging
import os
import secrets
import stat
from collections import Counter
from typing import Final, Optional, Union

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

_LOGGER: Final = logging.getLogger(__name__)

_MAX_RANDOM_BYTES: Final[int] = 255 * 32  # HKDF-SHA256 output limit
_SMALL_APT_MIN_N: Final[int] = 32
_HKDF_INFO: Final[bytes] = b"CUSTODY-UTILS-RNG-v1"

BytesLike = Union[bytes, bytearray]


def generate_random_bytes(n: int) -> bytes:
    """
    Generate cryptographically secure random bytes.

    Uses dual-source XOR (os.urandom + secrets.token_bytes) mixed via HKDF-SHA256.

    Args:
        n: number of bytes to generate (1..8160).

    Raises:
        ValueError: if n is out of range or the output fails sanity checks.
    """
    if not isinstance(n, int) or n <= 0 or n > _MAX_RANDOM_BYTES:
        raise ValueError("Requested random size must be in 1..8160")

    src1 = os.urandom(n)
    src2 = secrets.token_bytes(n)
    ikm = bytes(a ^ b for a, b in zip(src1, src2))
    salt = src2[:16]
    out = HKDF(algorithm=hashes.SHA256(), length=n, salt=salt, info=_HKDF_INFO).derive(
        ikm
    )
    _rct_apt_checks(out)
    return out


def _rct_apt_checks(data: bytes) -> None:
    """Repetition count and adaptive proportion sanity checks."""
    if len(data) > 1 and all(b == data[0] for b in data):
        raise ValueError("Degenerate RNG output (all bytes equal)")
    if len(data) >= _SMALL_APT_MIN_N:
        freq: Counter[int] = Counter(data)
        if max(freq.values()) / float(len(data)) > 0.80:
            raise ValueError("RNG output fails adaptive proportion sanity check")


def zero_memory(buf: Optional[bytearray]) -> None:
    """
    Best-effort zeroization of a mutable buffer.

    Notes:
        - Only bytearray can be wiped; immutable bytes copies made by libraries
          cannot be reached from Python.
    """
    if buf is None:
        return
    try:
        for i in range(len(buf)):
            buf[i] = 0
    except (TypeError, AttributeError) as e:
        _LOGGER.debug("zero_memory skip (immutable): %s", e.__class__.__name__)


def constant_time_equals(a: BytesLike, b: BytesLike) -> bool:
    """
    Compare two byte strings without an early exit.

    Every byte of the longer input is visited; a length mismatch is folded
    into the accumulator instead of returning early.
    """
    x = bytes(a)
    y = bytes(b)
    diff = len(x) ^ len(y)
    for i in range(max(len(x), len(y))):
        left = x[i] if i < len(x) else 0
        right = y[i] if i < len(y) else 0
        diff |= left ^ right
    return diff == 0


def set_secure_file_permissions(filepath: str) -> None:
    """
    Set owner-only permissions (0600) on a file holding wrapped key rows.

    Failure is logged and tolerated; Windows honours only part of the mode.
    """
    try:
        os.chmod(filepath, stat.S_IRUSR | stat.S_IWUSR)
        _LOGGER.debug("Applied 0600 permissions to %s", filepath)
    except OSError as e:
        _LOGGER.warning("Could not set strict permissions for %s: %s", filepath, e)


__all__ = [
    "generate_random_bytes",
    "zero_memory",
    "constant_time_equals",
    "set_secure_file_permissions",
]
