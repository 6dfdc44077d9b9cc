"""
Signing key record and its lifecycle state machine.

States:
    ACTIVE   initial, implicit while revoked_at/deleted_at are unset
    REVOKED  terminal, revoked_at set
    DELETED  terminal, deleted_at set (independent of REVOKED)
    EXPIRED  derived from expires_at, never stored

Usable <=> not revoked AND not deleted AND (no expiry OR expiry in the future).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from custody.crypto.envelope import ENC_ALGO
from custody.crypto.signatures import CRV, KTY
from custody.model.timestamps import (
    format_optional,
    format_timestamp,
    parse_optional,
    parse_timestamp,
    utcnow,
)


class KeyState(str, Enum):
    """Состояние ключа подписи."""

    ACTIVE = "active"
    REVOKED = "revoked"
    DELETED = "deleted"
    EXPIRED = "expired"


@dataclass
class SigningKey:
    """
    Запись ключа подписи.

    Атрибуты:
        kid: Стабильный непрозрачный идентификатор
        assigned_to: Владелец ключа
        public_key: Открытый ключ Ed25519 (SPKI DER, base64)
        enc_private_key: Закрытый ключ PKCS#8 под AES-GCM (ciphertext||tag, base64)
        enc_private_key_iv: IV шифрования (base64)
        passphrase_hash: Запись PBKDF2 для парольной фразы
        created_at: Время создания (UTC)
        created_by: Кто выпустил ключ
        expires_at: Срок действия (UTC), опционально
        revoked_at: Время отзыва, опционально
        deleted_at: Время удаления, опционально
    """

    kid: str
    assigned_to: str
    public_key: str
    enc_private_key: str
    enc_private_key_iv: str
    passphrase_hash: str
    created_at: datetime = field(default_factory=utcnow)
    created_by: Optional[str] = None
    expires_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    kty: str = KTY
    crv: str = CRV
    enc_algo: str = ENC_ALGO

    def __post_init__(self) -> None:
        self.created_at = parse_timestamp(self.created_at)
        self.expires_at = parse_optional(self.expires_at)
        self.revoked_at = parse_optional(self.revoked_at)
        self.deleted_at = parse_optional(self.deleted_at)

    def __repr__(self) -> str:
        return (
            f"SigningKey(kid={self.kid!r}, assigned_to={self.assigned_to!r}, "
            f"state={self.state().value!r})"
        )

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        current = parse_timestamp(now) if now is not None else utcnow()
        return self.expires_at <= current

    def is_usable(self, now: Optional[datetime] = None) -> bool:
        return not self.is_revoked and not self.is_deleted and not self.is_expired(now)

    def state(self, now: Optional[datetime] = None) -> KeyState:
        """Deleted wins over revoked, revoked over expired."""
        if self.is_deleted:
            return KeyState.DELETED
        if self.is_revoked:
            return KeyState.REVOKED
        if self.is_expired(now):
            return KeyState.EXPIRED
        return KeyState.ACTIVE

    def evolve(self, **changes: Any) -> SigningKey:
        """Copy with changes; records handed out by stores are never mutated in place."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kid": self.kid,
            "kty": self.kty,
            "crv": self.crv,
            "created_by": self.created_by,
            "assigned_to": self.assigned_to,
            "x": self.public_key,
            "enc_private_key": self.enc_private_key,
            "enc_private_key_iv": self.enc_private_key_iv,
            "enc_algo": self.enc_algo,
            "passphrase_hash": self.passphrase_hash,
            "created_at": format_timestamp(self.created_at),
            "expires_at": format_optional(self.expires_at),
            "revoked_at": format_optional(self.revoked_at),
            "deleted_at": format_optional(self.deleted_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SigningKey:
        return cls(
            kid=data["kid"],
            assigned_to=data["assigned_to"],
            public_key=data["x"],
            enc_private_key=data["enc_private_key"],
            enc_private_key_iv=data["enc_private_key_iv"],
            passphrase_hash=data["passphrase_hash"],
            created_at=parse_timestamp(data["created_at"]),
            created_by=data.get("created_by"),
            expires_at=parse_optional(data.get("expires_at")),
            revoked_at=parse_optional(data.get("revoked_at")),
            deleted_at=parse_optional(data.get("deleted_at")),
            kty=data.get("kty", KTY),
            crv=data.get("crv", CRV),
            enc_algo=data.get("enc_algo", ENC_ALGO),
        )


def usable_keys(
    keys: Iterable[SigningKey], now: Optional[datetime] = None
) -> List[SigningKey]:
    """Usable keys from a snapshot, newest first."""
    current = now if now is not None else utcnow()
    usable = [k for k in keys if k.is_usable(current)]
    usable.sort(key=lambda k: k.created_at, reverse=True)
    return usable


def latest_usable(
    keys: Iterable[SigningKey], now: Optional[datetime] = None
) -> Optional[SigningKey]:
    """
    Latest usable key from a snapshot of an owner's rows.

    Pure function: does not depend on storage ordering.
    """
    usable = usable_keys(keys, now)
    return usable[0] if usable else None


__all__ = ["KeyState", "SigningKey", "usable_keys", "latest_usable"]
