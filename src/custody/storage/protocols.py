# -*- coding: utf-8 -*-
"""
RU: Контракты хранилищ ядра: ключи подписи, подписи документов, документы, пользователи.

EN: Store contracts used by the registry, signer and verifier.

Every method is a single atomic operation on the backend. Read methods return
snapshots; callers never mutate what they get back. update_key() is the only
read-modify-write primitive and runs its mutator under the store's lock, so a
conditional update (e.g. "revoke unless already revoked") cannot interleave
with another writer.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Protocol, runtime_checkable

from custody.model.document import Document
from custody.model.signature import DocumentSignature
from custody.model.signing_key import SigningKey

KeyMutator = Callable[[SigningKey], SigningKey]


@runtime_checkable
class SigningKeyStore(Protocol):
    def insert_key(self, key: SigningKey) -> None:
        """Raises DuplicateRecordError if key.kid is taken."""
        ...

    def get_key(self, kid: str) -> Optional[SigningKey]: ...

    def keys_for(self, owner_id: str) -> List[SigningKey]: ...

    def update_key(self, kid: str, mutator: KeyMutator) -> SigningKey:
        """
        Replace the row with mutator(row) atomically and return the new row.

        Raises:
            NotFoundError: if kid is absent.
            Whatever mutator raises; the row is then left untouched.
        """
        ...


@runtime_checkable
class SignatureStore(Protocol):
    def insert_signature(self, signature: DocumentSignature) -> None: ...

    def signatures_for(self, document_id: str) -> List[DocumentSignature]: ...


@runtime_checkable
class DocumentStore(Protocol):
    def get_document(self, document_id: str) -> Optional[Document]: ...

    def find_by_serial(self, serial: str) -> Optional[Document]: ...

    def mark_signed(self, document_id: str, key_id: str, signed_at: str) -> None:
        """Set signed/signed_at/certificate_id. Raises NotFoundError if absent."""
        ...


@runtime_checkable
class UserDirectory(Protocol):
    def user_exists(self, user_id: str) -> bool: ...


__all__ = [
    "KeyMutator",
    "SigningKeyStore",
    "SignatureStore",
    "DocumentStore",
    "UserDirectory",
]
