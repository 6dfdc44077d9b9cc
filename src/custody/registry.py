# -*- coding: utf-8 -*-
"""
RU: Реестр ключей подписи: выпуск, поиск действующего ключа, отзыв, удаление и смена
парольной фразы. Все события жизненного цикла пишутся в аудит.

EN: Signing key registry. Owns the key lifecycle:

    ACTIVE --revoke--> REVOKED   (terminal)
    ACTIVE --delete--> DELETED   (terminal, independent of REVOKED)
    ACTIVE --time----> EXPIRED   (derived from expires_at, never stored)

The master key is supplied by a provider callable and read only when key
material is wrapped; it is never stored on the registry or logged.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union

from custody.crypto import codec
from custody.crypto.envelope import EnvelopeCipher
from custody.crypto.gate import PassphraseGate
from custody.crypto.policy import InstitutionalPassphrasePolicy, PassphrasePolicy
from custody.crypto.signatures import generate_keypair
from custody.crypto.utils import zero_memory
from custody.exceptions import (
    DuplicateRecordError,
    NotFoundError,
    ValidationError,
)
from custody.model.signing_key import SigningKey, latest_usable
from custody.model.timestamps import format_timestamp, parse_optional, utcnow
from custody.storage.protocols import SigningKeyStore, UserDirectory

logger = logging.getLogger(__name__)

KID_VERSION: str = "v1"
_KID_ATTEMPTS: int = 3

MasterKeyProvider = Callable[[], bytes]
Clock = Callable[[], datetime]


def new_kid(now: datetime) -> str:
    """kid of the form v1-YYYY-MM-DD-<8 hex chars>."""
    return f"{KID_VERSION}-{now.strftime('%Y-%m-%d')}-{uuid.uuid4().hex[:8]}"


class SigningKeyRegistry:
    """
    Lifecycle operations over a SigningKeyStore.

    Args:
        keys: key row store.
        users: directory used to check that an owner exists.
        master_key_provider: returns the 32-byte master key; raises ConfigurationError
            when it is missing or malformed.
        gate: passphrase hasher/verifier.
        policy: passphrase rules for new passphrases.
        cipher: envelope cipher for private key material.
        clock: current UTC time; replaceable in tests.
    """

    def __init__(
        self,
        keys: SigningKeyStore,
        users: UserDirectory,
        master_key_provider: MasterKeyProvider,
        gate: Optional[PassphraseGate] = None,
        policy: Optional[PassphrasePolicy] = None,
        cipher: Optional[EnvelopeCipher] = None,
        clock: Clock = utcnow,
    ) -> None:
        self.keys = keys
        self.users = users
        self.gate: PassphraseGate = gate if gate is not None else PassphraseGate()
        self.policy: PassphrasePolicy = (
            policy if policy is not None else InstitutionalPassphrasePolicy()
        )
        self.cipher: EnvelopeCipher = cipher if cipher is not None else EnvelopeCipher()
        self._master_key_provider = master_key_provider
        self._clock = clock

    def _audit_log(self, event: str, actor: Optional[str], details: Dict[str, Any]) -> None:
        record: Dict[str, Any] = {
            "event": event,
            "actor": actor or "system",
            "details": details,
            "time": format_timestamp(self._clock()),
        }
        logger.info(f"AUDIT {record}")

    def create(
        self,
        owner_id: str,
        expires_at: Optional[Union[datetime, str]],
        passphrase: str,
        created_by: Optional[str] = None,
    ) -> SigningKey:
        """
        Issue a new Ed25519 key for owner_id.

        Order of checks: passphrase policy, expiry, owner, master key. Nothing is
        generated until all of them pass.

        Raises:
            ValidationError: policy violation or unparseable expires_at.
            NotFoundError: owner does not exist.
            ConfigurationError: master key missing or not 32 bytes.
        """
        if not owner_id:
            raise ValidationError("Owner is required")
        self.policy.check(passphrase)
        expiry = parse_optional(expires_at)
        if not self.users.user_exists(owner_id):
            raise NotFoundError("Owner not found")
        master_key = self._master_key_provider()

        material = generate_keypair()
        try:
            wrapped = self.cipher.wrap(material.private_pkcs8, master_key)
        finally:
            zero_memory(material.private_pkcs8)
        passphrase_hash = self.gate.hash(passphrase)

        now = self._clock()
        for attempt in range(_KID_ATTEMPTS):
            key = SigningKey(
                kid=new_kid(now),
                assigned_to=owner_id,
                public_key=codec.encode(material.public_spki),
                enc_private_key=codec.encode(wrapped.ciphertext),
                enc_private_key_iv=codec.encode(wrapped.iv),
                passphrase_hash=passphrase_hash,
                created_at=now,
                created_by=created_by,
                expires_at=expiry,
            )
            try:
                self.keys.insert_key(key)
                break
            except DuplicateRecordError:
                logger.warning("kid collision on attempt %d, regenerating", attempt + 1)
        else:
            raise DuplicateRecordError("Could not allocate a unique kid")

        self._audit_log(
            "signing_key_created",
            created_by,
            {"kid": key.kid, "assigned_to": owner_id, "expires_at": key.to_dict()["expires_at"]},
        )
        return key

    def get(self, kid: str) -> SigningKey:
        if not kid:
            raise ValidationError("kid is required")
        key = self.keys.get_key(kid)
        if key is None:
            raise NotFoundError("Signing key not found")
        return key

    def list_for(self, owner_id: str) -> List[SigningKey]:
        """All rows of an owner, newest first, whatever their state."""
        return sorted(self.keys.keys_for(owner_id), key=lambda k: k.created_at, reverse=True)

    def find_usable_for(self, owner_id: str) -> SigningKey:
        """
        Latest usable key of owner_id.

        Raises:
            NotFoundError: if the owner has no usable key.
        """
        key = latest_usable(self.keys.keys_for(owner_id), self._clock())
        if key is None:
            raise NotFoundError("No usable signing key for this user")
        return key

    def ensure_usable(self, kid: str) -> SigningKey:
        """
        Re-read the row and confirm it is still usable right now.

        Raises:
            NotFoundError: if the key vanished or became revoked, deleted or expired.
        """
        key = self.keys.get_key(kid)
        if key is None or not key.is_usable(self._clock()):
            raise NotFoundError("Signing key is no longer usable")
        return key

    def revoke(self, kid: str, actor: Optional[str] = None) -> SigningKey:
        """
        Mark a key revoked. Revoking an already revoked key returns it unchanged.

        Raises:
            NotFoundError: unknown kid.
        """
        if not kid:
            raise ValidationError("kid is required")
        now = self._clock()
        changed = False

        def _mutate(key: SigningKey) -> SigningKey:
            nonlocal changed
            if key.is_revoked:
                return key
            changed = True
            return key.evolve(revoked_at=now)

        key = self.keys.update_key(kid, _mutate)
        if changed:
            self._audit_log("signing_key_revoked", actor, {"kid": kid})
        else:
            logger.info("Signing key %s already revoked", kid)
        return key

    def delete(self, kid: str, actor: Optional[str] = None) -> SigningKey:
        """
        Soft-delete a key. The row stays for verification of past signatures.

        Raises:
            NotFoundError: unknown kid.
        """
        if not kid:
            raise ValidationError("kid is required")
        now = self._clock()
        changed = False

        def _mutate(key: SigningKey) -> SigningKey:
            nonlocal changed
            if key.is_deleted:
                return key
            changed = True
            return key.evolve(deleted_at=now)

        key = self.keys.update_key(kid, _mutate)
        if changed:
            self._audit_log("signing_key_deleted", actor, {"kid": kid})
        return key

    def change_passphrase(
        self, kid: str, old: str, new: str, actor: Optional[str] = None
    ) -> SigningKey:
        """
        Replace the passphrase of a live key.

        Raises:
            ValidationError: key revoked or deleted, new equals old, or new violates policy.
            NotFoundError: unknown kid.
            ForbiddenError: old passphrase does not verify.
        """
        if not kid or not old or not new:
            raise ValidationError("Incomplete data")
        if old == new:
            raise ValidationError("New passphrase must differ from the old one")
        self.policy.check(new)

        def _mutate(key: SigningKey) -> SigningKey:
            if key.is_revoked or key.is_deleted:
                raise ValidationError("Signing key is revoked or deleted")
            return key.evolve(passphrase_hash=self.gate.rotate(old, new, key.passphrase_hash))

        key = self.keys.update_key(kid, _mutate)
        self._audit_log("signing_key_passphrase_changed", actor, {"kid": kid})
        return key


__all__ = ["SigningKeyRegistry", "new_kid", "KID_VERSION"]
