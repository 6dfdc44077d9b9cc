"""
RU: Криптографические примитивы ядра: Base64, проверка парольной фразы, конвертное шифрование,
Ed25519 и каноническое хеширование документов.
EN: Crypto primitives of the custody core: base64 codec, passphrase gate, envelope
cipher, Ed25519 helpers and canonical document hashing.
"""

from custody.crypto import codec
from custody.crypto.canonical import (
    canonicalize,
    document_hash,
    payload_hash,
    signing_input,
)
from custody.crypto.envelope import EnvelopeCipher, WrappedKey
from custody.crypto.gate import PassphraseGate
from custody.crypto.policy import (
    InstitutionalPassphrasePolicy,
    PassphrasePolicy,
    PermissivePassphrasePolicy,
)

__all__ = [
    "codec",
    "canonicalize",
    "document_hash",
    "payload_hash",
    "signing_input",
    "EnvelopeCipher",
    "WrappedKey",
    "PassphraseGate",
    "PassphrasePolicy",
    "InstitutionalPassphrasePolicy",
    "PermissivePassphrasePolicy",
]
