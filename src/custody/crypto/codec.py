# -*- coding: utf-8 -*-
"""
RU: Кодек Base64 для хранения и передачи байтов (ключи, IV, подписи).

EN: Base64 codec used for every byte field that is stored or transmitted
(public keys, wrapped private keys, IVs, signatures, passphrase-hash parts).
"""

from __future__ import annotations

import base64
import binascii
from typing import Union

from custody.exceptions import DecodeError

BytesLike = Union[bytes, bytearray]


def encode(data: BytesLike) -> str:
    """
    Encode bytes to a standard base64 ASCII string (no newlines).

    Raises:
        TypeError: if data is not bytes-like.
    """
    if not isinstance(data, (bytes, bytearray)):
        raise TypeError("base64 encode expects bytes")
    return base64.b64encode(bytes(data)).decode("ascii")


def decode(text: str) -> bytes:
    """
    Decode a standard base64 string to bytes.

    Raises:
        DecodeError: on non-string input, non-ASCII characters, characters
            outside the alphabet or bad padding.
    """
    if not isinstance(text, str):
        raise DecodeError("base64 input must be a string")
    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except (UnicodeEncodeError, binascii.Error, ValueError) as exc:
        raise DecodeError("Malformed base64 input", cause=exc) from exc


__all__ = ["encode", "decode"]
