# -*- coding: utf-8 -*-
"""
CustodyService: the outward surface of the custody core.

Each method checks that its inputs are present, delegates to the registry,
signer or verifier, and returns a JSON-ready dictionary with camelCase keys.
Errors propagate as CustodyError subclasses so a transport layer can map them
(ValidationError -> 400, ForbiddenError -> 403, NotFoundError -> 404,
ConfigurationError/IntegrityError -> 500). The master key is never accepted
as an argument.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Union

from custody.exceptions import ValidationError
from custody.model.timestamps import format_optional
from custody.registry import SigningKeyRegistry
from custody.signer import DocumentSigner
from custody.verifier import DocumentVerifier

logger = logging.getLogger(__name__)


def _require(*values: Any) -> None:
    if any(v is None or v == "" for v in values):
        raise ValidationError("Incomplete data")


class CustodyService:
    """High-level facade over the registry, signer and verifier."""

    def __init__(
        self,
        registry: SigningKeyRegistry,
        signer: DocumentSigner,
        verifier: DocumentVerifier,
    ) -> None:
        self.registry = registry
        self.signer = signer
        self.verifier = verifier

    def create_signing_key(
        self,
        created_by: str,
        assigned_to: str,
        expires_at: Union[datetime, str],
        passphrase: str,
    ) -> Dict[str, Any]:
        _require(created_by, assigned_to, expires_at, passphrase)
        key = self.registry.create(
            assigned_to, expires_at, passphrase, created_by=created_by
        )
        return {"kid": key.kid, "expiresAt": format_optional(key.expires_at)}

    def revoke_signing_key(self, kid: str, actor: Optional[str] = None) -> Dict[str, Any]:
        _require(kid)
        key = self.registry.revoke(kid, actor=actor)
        return {"kid": key.kid, "revokedAt": format_optional(key.revoked_at)}

    def delete_signing_key(self, kid: str, actor: Optional[str] = None) -> Dict[str, Any]:
        _require(kid)
        key = self.registry.delete(kid, actor=actor)
        return {"kid": key.kid, "deletedAt": format_optional(key.deleted_at)}

    def change_passphrase(
        self,
        kid: str,
        old_passphrase: str,
        new_passphrase: str,
        actor: Optional[str] = None,
    ) -> Dict[str, Any]:
        _require(kid, old_passphrase, new_passphrase)
        key = self.registry.change_passphrase(
            kid, old_passphrase, new_passphrase, actor=actor
        )
        return {"kid": key.kid}

    def sign_document(
        self, document_id: str, signer_user_id: str, passphrase: str
    ) -> Dict[str, Any]:
        _require(document_id, signer_user_id, passphrase)
        return self.signer.sign_document(document_id, signer_user_id, passphrase).to_dict()

    def verify_document(self, document_id: str) -> Dict[str, Any]:
        _require(document_id)
        return self.verifier.verify_document(document_id).to_dict()


__all__ = ["CustodyService"]
