"""Append-only document signature record."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from custody.model.timestamps import format_timestamp, parse_timestamp, utcnow


@dataclass(frozen=True)
class DocumentSignature:
    """
    Подпись документа.

    Атрибуты:
        document_id: Подписанный документ
        key_id: kid ключа, которым подписано
        payload_hash: SHA-256 канонического содержимого (hex, 64 символа)
        signature: Подпись Ed25519 (base64)
        signer_user_id: Кто подписал
        signed_at: Время подписи (UTC)
    """

    document_id: str
    key_id: str
    payload_hash: str
    signature: str
    signer_user_id: str
    signed_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_id": self.document_id,
            "key_id": self.key_id,
            "payload_hash": self.payload_hash,
            "signature": self.signature,
            "signer_user_id": self.signer_user_id,
            "signed_at": format_timestamp(self.signed_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> DocumentSignature:
        return cls(
            document_id=data["document_id"],
            key_id=data["key_id"],
            payload_hash=data["payload_hash"],
            signature=data["signature"],
            signer_user_id=data["signer_user_id"],
            signed_at=parse_timestamp(data["signed_at"]),
        )


def current_signature(
    signatures: Iterable[DocumentSignature],
) -> Optional[DocumentSignature]:
    """The signature with the greatest signed_at; None for an unsigned document."""
    latest: Optional[DocumentSignature] = None
    for sig in signatures:
        if latest is None or sig.signed_at >= latest.signed_at:
            latest = sig
    return latest


__all__ = ["DocumentSignature", "current_signature"]
