# -*- coding: utf-8 -*-
"""
RU: Хранилище в памяти для тестов и встраивания; реализует все четыре контракта.

EN: In-memory store for development, tests and embedding. Implements
SigningKeyStore, SignatureStore, DocumentStore and UserDirectory behind one
re-entrant lock.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, List, Optional

from custody.exceptions import DuplicateRecordError, NotFoundError
from custody.model.document import Document
from custody.model.signature import DocumentSignature
from custody.model.signing_key import SigningKey
from custody.storage.protocols import KeyMutator

logger = logging.getLogger(__name__)


class InMemoryStore:
    """Simple in-memory store for development/testing."""

    def __init__(
        self,
        users: Iterable[str] = (),
        documents: Iterable[Document] = (),
    ) -> None:
        self._lock = threading.RLock()
        self._users: set[str] = set(users)
        self._keys: Dict[str, SigningKey] = {}
        self._signatures: List[DocumentSignature] = []
        self._documents: Dict[str, Document] = {
            d.id: Document.from_dict(d.to_dict()) for d in documents
        }

    # UserDirectory

    def add_user(self, user_id: str) -> None:
        with self._lock:
            self._users.add(user_id)

    def user_exists(self, user_id: str) -> bool:
        with self._lock:
            return user_id in self._users

    # SigningKeyStore

    def insert_key(self, key: SigningKey) -> None:
        with self._lock:
            if key.kid in self._keys:
                raise DuplicateRecordError("Signing key id already exists")
            self._keys[key.kid] = key.evolve()

    def get_key(self, kid: str) -> Optional[SigningKey]:
        with self._lock:
            key = self._keys.get(kid)
            return key.evolve() if key is not None else None

    def keys_for(self, owner_id: str) -> List[SigningKey]:
        with self._lock:
            return [k.evolve() for k in self._keys.values() if k.assigned_to == owner_id]

    def update_key(self, kid: str, mutator: KeyMutator) -> SigningKey:
        with self._lock:
            current = self._keys.get(kid)
            if current is None:
                raise NotFoundError("Signing key not found")
            updated = mutator(current.evolve())
            self._keys[kid] = updated.evolve()
            return updated

    # SignatureStore

    def insert_signature(self, signature: DocumentSignature) -> None:
        with self._lock:
            self._signatures.append(signature)

    def signatures_for(self, document_id: str) -> List[DocumentSignature]:
        with self._lock:
            return [s for s in self._signatures if s.document_id == document_id]

    # DocumentStore

    def add_document(self, document: Document) -> None:
        with self._lock:
            self._documents[document.id] = Document.from_dict(document.to_dict())

    def get_document(self, document_id: str) -> Optional[Document]:
        with self._lock:
            doc = self._documents.get(document_id)
            return Document.from_dict(doc.to_dict()) if doc is not None else None

    def find_by_serial(self, serial: str) -> Optional[Document]:
        with self._lock:
            for doc in self._documents.values():
                if doc.serial is not None and doc.serial == serial:
                    return Document.from_dict(doc.to_dict())
            return None

    def mark_signed(self, document_id: str, key_id: str, signed_at: str) -> None:
        with self._lock:
            doc = self._documents.get(document_id)
            if doc is None:
                raise NotFoundError("Document not found")
            doc.signed = True
            doc.signed_at = signed_at
            doc.certificate_id = key_id


__all__ = ["InMemoryStore"]
