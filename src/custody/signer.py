# -*- coding: utf-8 -*-
"""
RU: Подпись документа: пароль -> расшифровка ключа -> канонический хеш -> Ed25519 ->
запись подписи -> отметка документа.

EN: Document signer.

Flow (each step must succeed before the next one runs):
    1. load document
    2. latest usable key of the signer, re-read and re-checked for usability
    3. passphrase check against the re-read row
    4. unwrap private key under the master key
    5. canonical payload hash
    6. Ed25519 signature over the hex hash
    7. append DocumentSignature
    8. mark document signed, link key id

Failures in 1-7 leave no signature row and no signed flag. Step 7 strictly
precedes step 8; if step 8 fails the signature row stays and the call can be
retried. Decrypted key bytes are wiped in a finally block and never logged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Final, Optional

from custody.crypto import codec
from custody.crypto.canonical import document_hash, signing_input
from custody.crypto.signatures import sign
from custody.crypto.utils import zero_memory
from custody.exceptions import (
    DecodeError,
    ForbiddenError,
    IntegrityError,
    NotFoundError,
    ValidationError,
)
from custody.model.document import Document
from custody.model.signature import DocumentSignature
from custody.model.timestamps import format_timestamp, utcnow
from custody.registry import MasterKeyProvider, SigningKeyRegistry
from custody.storage.protocols import DocumentStore, SignatureStore

_LOGGER: Final = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignOutcome:
    """Result of a successful signing."""

    key_id: str
    hash: str
    signature: str
    signed_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {"keyId": self.key_id, "hash": self.hash, "signature": self.signature}


class DocumentSigner:
    """
    Passphrase-gated document signing.

    Args:
        registry: signing key registry (also supplies the passphrase gate and cipher).
        documents: external document collaborator.
        signatures: append-only signature store.
        master_key_provider: returns the 32-byte master key.
        clock: current UTC time; replaceable in tests.
    """

    __slots__ = ("_registry", "_documents", "_signatures", "_master_key_provider", "_clock")

    def __init__(
        self,
        registry: SigningKeyRegistry,
        documents: DocumentStore,
        signatures: SignatureStore,
        master_key_provider: MasterKeyProvider,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._registry = registry
        self._documents = documents
        self._signatures = signatures
        self._master_key_provider = master_key_provider
        self._clock = clock

    def _load_document(self, document_id: str) -> Document:
        document = self._documents.get_document(document_id)
        if document is None:
            raise NotFoundError("Document not found")
        return document

    def sign_document(
        self, document_id: str, signer_id: str, passphrase: str
    ) -> SignOutcome:
        """
        Sign a document with the signer's latest usable key.

        Raises:
            ValidationError: missing arguments.
            NotFoundError: document or usable key absent.
            ForbiddenError: wrong passphrase.
            ConfigurationError: master key missing or malformed.
            IntegrityError: wrapped key fails authentication under the master key.
        """
        if not document_id or not signer_id or not passphrase:
            raise ValidationError("Incomplete data")

        document = self._load_document(document_id)
        selected = self._registry.find_usable_for(signer_id)
        key = self._registry.ensure_usable(selected.kid)

        if not self._registry.gate.verify(passphrase, key.passphrase_hash):
            _LOGGER.warning("Passphrase rejected for key %s", key.kid)
            raise ForbiddenError("Passphrase rejected")

        master_key = self._master_key_provider()
        private_pkcs8: Optional[bytearray] = None
        try:
            try:
                ciphertext = codec.decode(key.enc_private_key)
                iv = codec.decode(key.enc_private_key_iv)
            except DecodeError as exc:
                _LOGGER.error("Wrapped key row %s is not valid base64", key.kid)
                raise IntegrityError("Wrapped key row is malformed") from exc
            private_pkcs8 = self._registry.cipher.unwrap(ciphertext, iv, master_key)
            hex_hash = document_hash(document)
            raw_signature = sign(private_pkcs8, signing_input(hex_hash))
        finally:
            zero_memory(private_pkcs8)

        signed_at = self._clock()
        signature_b64 = codec.encode(raw_signature)
        self._signatures.insert_signature(
            DocumentSignature(
                document_id=document.id,
                key_id=key.kid,
                payload_hash=hex_hash,
                signature=signature_b64,
                signer_user_id=signer_id,
                signed_at=signed_at,
            )
        )

        try:
            self._documents.mark_signed(document.id, key.kid, format_timestamp(signed_at))
        except Exception as exc:
            _LOGGER.error(
                "Signature stored but document %s not flagged: %s",
                document.id,
                exc.__class__.__name__,
            )
            raise

        record = {
            "event": "document_signed",
            "actor": signer_id,
            "details": {"document_id": document.id, "kid": key.kid},
            "time": format_timestamp(signed_at),
        }
        _LOGGER.info(f"AUDIT {record}")
        return SignOutcome(
            key_id=key.kid, hash=hex_hash, signature=signature_b64, signed_at=signed_at
        )


__all__ = ["DocumentSigner", "SignOutcome"]
