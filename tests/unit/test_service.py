from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

import pytest

from custody.exceptions import ForbiddenError, NotFoundError, ValidationError
from custody.model.document import Document
from custody.service import CustodyService
from custody.storage.memory import InMemoryStore

if TYPE_CHECKING:
    from conftest import FakeClock

OWNER = "user-1"
ADMIN = "admin-1"
PASSPHRASE = "CA-Secret!1"
EXPIRES = "2026-01-15T12:00:00.000Z"


def test_create_signing_key_shape(service: CustodyService) -> None:
    payload = service.create_signing_key(ADMIN, OWNER, EXPIRES, PASSPHRASE)
    assert set(payload) == {"kid", "expiresAt"}
    assert payload["expiresAt"] == EXPIRES
    assert payload["kid"].startswith("v1-2025-01-15-")


@pytest.mark.parametrize(
    "args",
    [
        ("", OWNER, EXPIRES, PASSPHRASE),
        (ADMIN, "", EXPIRES, PASSPHRASE),
        (ADMIN, OWNER, "", PASSPHRASE),
        (ADMIN, OWNER, None, PASSPHRASE),
        (ADMIN, OWNER, EXPIRES, ""),
    ],
)
def test_create_incomplete(service: CustodyService, args: tuple) -> None:
    with pytest.raises(ValidationError, match="Incomplete data"):
        service.create_signing_key(*args)


def test_revoke_and_delete_shapes(service: CustodyService) -> None:
    kid = service.create_signing_key(ADMIN, OWNER, EXPIRES, PASSPHRASE)["kid"]
    revoked = service.revoke_signing_key(kid, actor=ADMIN)
    assert revoked == {"kid": kid, "revokedAt": "2025-01-15T12:00:00.000Z"}
    deleted = service.delete_signing_key(kid, actor=ADMIN)
    assert deleted == {"kid": kid, "deletedAt": "2025-01-15T12:00:00.000Z"}


def test_change_passphrase_shape(service: CustodyService) -> None:
    kid = service.create_signing_key(ADMIN, OWNER, EXPIRES, PASSPHRASE)["kid"]
    assert service.change_passphrase(kid, PASSPHRASE, "CA-NewPass#9") == {"kid": kid}


@pytest.mark.parametrize(
    "call",
    [
        lambda s: s.revoke_signing_key(""),
        lambda s: s.delete_signing_key(""),
        lambda s: s.change_passphrase("k", "", "CA-NewPass#9"),
        lambda s: s.sign_document("doc-1", "", PASSPHRASE),
        lambda s: s.verify_document(""),
    ],
)
def test_incomplete_inputs(service: CustodyService, call) -> None:  # type: ignore[no-untyped-def]
    with pytest.raises(ValidationError):
        call(service)


def test_verify_unsigned_shape(service: CustodyService) -> None:
    assert service.verify_document("doc-1") == {
        "valid": False,
        "reason": "UNSIGNED",
        "keyId": None,
        "signedAt": None,
    }


def test_full_lifecycle(
    service: CustodyService, store: InMemoryStore, clock: FakeClock
) -> None:
    """Create, sign, verify, tamper, revoke, rotate and re-sign in one flow."""
    kid = service.create_signing_key(ADMIN, OWNER, EXPIRES, PASSPHRASE)["kid"]

    signed = service.sign_document("doc-1", OWNER, PASSPHRASE)
    assert signed["keyId"] == kid
    assert len(signed["hash"]) == 64

    result = service.verify_document("doc-1")
    assert result["valid"] is True and result["reason"] == "OK"
    assert service.verify_document("SN-0001")["keyId"] == kid

    with pytest.raises(ForbiddenError):
        service.sign_document("doc-1", OWNER, "CA-Wrong!!1")

    service.change_passphrase(kid, PASSPHRASE, "CA-NewPass#9")
    with pytest.raises(ForbiddenError):
        service.sign_document("doc-1", OWNER, PASSPHRASE)
    clock.advance(minutes=1)
    resigned = service.sign_document("doc-1", OWNER, "CA-NewPass#9")
    assert resigned["hash"] == signed["hash"]

    service.revoke_signing_key(kid, actor=ADMIN)
    revoked = service.verify_document("doc-1")
    assert revoked["valid"] is False and revoked["reason"] == "KEY_REVOKED"

    with pytest.raises(NotFoundError):
        service.sign_document("doc-1", OWNER, "CA-NewPass#9")

    clock.advance(minutes=1)
    fresh = service.create_signing_key(ADMIN, OWNER, EXPIRES, "CA-Fresh#77")["kid"]
    store.add_document(
        Document(
            id="doc-2",
            title="Second",
            content="Body",
            user_id=OWNER,
            created_at="2025-01-15T12:02:00.000Z",
        )
    )
    assert service.sign_document("doc-2", OWNER, "CA-Fresh#77")["keyId"] == fresh
    assert service.verify_document("doc-2")["valid"] is True

    doc = store.get_document("doc-2")
    assert doc is not None
    doc.content = "Body, edited"
    store.add_document(doc)
    assert service.verify_document("doc-2")["reason"] == "PAYLOAD_HASH_MISMATCH"


def test_expired_key_lifecycle(service: CustodyService, clock: FakeClock) -> None:
    expires = clock() + timedelta(days=1)
    service.create_signing_key(ADMIN, OWNER, expires, PASSPHRASE)
    service.sign_document("doc-1", OWNER, PASSPHRASE)
    clock.advance(days=1)
    assert service.verify_document("doc-1")["reason"] == "KEY_REVOKED"
    with pytest.raises(NotFoundError):
        service.sign_document("doc-1", OWNER, PASSPHRASE)
