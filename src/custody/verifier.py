# -*- coding: utf-8 -*-
"""
RU: Проверка подписи документа. Только чтение; результат проверки возвращается как данные.

EN: Document verifier. Pure read; verification outcomes are data, not exceptions.

Order of checks:
    1. document (by id, falling back to the external serial) and its current signature
    2. key lifecycle: revoked, deleted or expired -> KEY_REVOKED
    3. recomputed canonical hash vs. stored hash -> PAYLOAD_HASH_MISMATCH
    4. public key of the signing key
    5. Ed25519 over the stored hash bytes -> OK / SIGNATURE_INVALID
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Final, Optional

from custody.crypto import codec
from custody.crypto.canonical import document_hash, signing_input
from custody.crypto.signatures import verify
from custody.exceptions import (
    DecodeError,
    IntegrityError,
    NotFoundError,
    ValidationError,
)
from custody.model.document import Document
from custody.model.signature import current_signature
from custody.model.signing_key import KeyState
from custody.model.timestamps import format_optional, utcnow
from custody.storage.protocols import DocumentStore, SignatureStore, SigningKeyStore

_LOGGER: Final = logging.getLogger(__name__)


class VerificationReason(str, Enum):
    OK = "OK"
    SIGNATURE_INVALID = "SIGNATURE_INVALID"
    PAYLOAD_HASH_MISMATCH = "PAYLOAD_HASH_MISMATCH"
    KEY_REVOKED = "KEY_REVOKED"
    UNSIGNED = "UNSIGNED"


@dataclass(frozen=True)
class VerificationResult:
    """
    Outcome of verify_document().

    Attributes:
        valid: True only for reason OK.
        reason: why the document is (in)valid.
        key_id: kid of the current signature (None when unsigned).
        signed_at: time of the current signature (None when unsigned).
        payload_hash: hash stored with the signature.
        recomputed_hash: hash of the document as it is now (set on a mismatch).
        key_state: lifecycle state of the key (distinguishes revoked/deleted/expired).
    """

    valid: bool
    reason: VerificationReason
    key_id: Optional[str] = None
    signed_at: Optional[datetime] = None
    payload_hash: Optional[str] = None
    recomputed_hash: Optional[str] = None
    key_state: Optional[KeyState] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "reason": self.reason.value,
            "keyId": self.key_id,
            "signedAt": format_optional(self.signed_at),
        }


class DocumentVerifier:
    """Checks the current signature of a document against its content and key."""

    __slots__ = ("_documents", "_signatures", "_keys", "_clock")

    def __init__(
        self,
        documents: DocumentStore,
        signatures: SignatureStore,
        keys: SigningKeyStore,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._documents = documents
        self._signatures = signatures
        self._keys = keys
        self._clock = clock

    def _load_document(self, reference: str) -> Document:
        document = self._documents.get_document(reference)
        if document is None:
            document = self._documents.find_by_serial(reference)
        if document is None:
            raise NotFoundError("Document not found")
        return document

    def verify_document(self, document_id: str) -> VerificationResult:
        """
        Verify the current signature of a document.

        Args:
            document_id: document id or external serial number.

        Raises:
            ValidationError: empty document_id.
            NotFoundError: document or signing key row absent, or the key has no public key.
            IntegrityError: stored public key is not a valid Ed25519 SPKI key.
        """
        if not document_id:
            raise ValidationError("Document id is required")

        document = self._load_document(document_id)
        signature = current_signature(self._signatures.signatures_for(document.id))
        if signature is None:
            return VerificationResult(valid=False, reason=VerificationReason.UNSIGNED)

        key = self._keys.get_key(signature.key_id)
        if key is None:
            _LOGGER.warning("Signature of %s references a missing key", document.id)
            raise NotFoundError("Signing key not found")

        state = key.state(self._clock())
        if state is not KeyState.ACTIVE:
            return VerificationResult(
                valid=False,
                reason=VerificationReason.KEY_REVOKED,
                key_id=signature.key_id,
                signed_at=signature.signed_at,
                payload_hash=signature.payload_hash,
                key_state=state,
            )

        recomputed = document_hash(document)
        if recomputed != signature.payload_hash:
            return VerificationResult(
                valid=False,
                reason=VerificationReason.PAYLOAD_HASH_MISMATCH,
                key_id=signature.key_id,
                signed_at=signature.signed_at,
                payload_hash=signature.payload_hash,
                recomputed_hash=recomputed,
                key_state=state,
            )

        if not key.public_key:
            raise NotFoundError("Public key not found")
        try:
            public_spki = codec.decode(key.public_key)
        except DecodeError as exc:
            raise IntegrityError("Stored public key is malformed") from exc

        try:
            raw_signature = codec.decode(signature.signature)
        except DecodeError:
            raw_signature = b""

        try:
            ok = verify(public_spki, raw_signature, signing_input(signature.payload_hash))
        except ValidationError as exc:
            raise IntegrityError("Stored public key is malformed") from exc

        return VerificationResult(
            valid=ok,
            reason=VerificationReason.OK if ok else VerificationReason.SIGNATURE_INVALID,
            key_id=signature.key_id,
            signed_at=signature.signed_at,
            payload_hash=signature.payload_hash,
            key_state=state,
        )


__all__ = ["DocumentVerifier", "VerificationResult", "VerificationReason"]
