from __future__ import annotations

import json
import os
import stat
import sys
import threading
from datetime import datetime, timezone
from pathlib import Path

import pytest

from custody.exceptions import (
    DuplicateRecordError,
    NotFoundError,
    StorageError,
    StorageReadError,
)
from custody.model.document import Document
from custody.model.signature import DocumentSignature
from custody.model.signing_key import SigningKey
from custody.storage.file_store import JsonFileStore

NOW = datetime(2025, 1, 15, tzinfo=timezone.utc)


def _key(kid: str, owner: str = "u1") -> SigningKey:
    return SigningKey(
        kid=kid,
        assigned_to=owner,
        public_key="cHVi",
        enc_private_key="ZW5j",
        enc_private_key_iv="aXY=",
        passphrase_hash="pbkdf2:100000:c2FsdA==:aGFzaA==",
        created_at=NOW,
        created_by="admin",
    )


@pytest.fixture
def path(tmp_path: Path) -> Path:
    return tmp_path / "nested" / "custody.json"


def test_empty_store_reads_nothing(path: Path) -> None:
    fs = JsonFileStore(str(path))
    assert fs.get_key("k1") is None
    assert fs.keys_for("u1") == []
    assert not fs.user_exists("u1")
    assert not path.exists()


def test_invalid_path() -> None:
    with pytest.raises(StorageError):
        JsonFileStore("")


def test_persists_across_instances(path: Path) -> None:
    fs = JsonFileStore(str(path))
    fs.add_user("u1")
    fs.insert_key(_key("k1"))
    fs.add_document(Document(id="d1", title="t", content="c", user_id="u1", created_at="x", serial="S1"))
    fs.insert_signature(DocumentSignature("d1", "k1", "0" * 64, "c2ln", "u1", NOW))

    again = JsonFileStore(str(path))
    assert again.user_exists("u1")
    key = again.get_key("k1")
    assert key is not None and key.created_by == "admin" and key.created_at == NOW
    assert again.find_by_serial("S1").id == "d1"  # type: ignore[union-attr]
    assert len(again.signatures_for("d1")) == 1


def test_row_layout_on_disk(path: Path) -> None:
    fs = JsonFileStore(str(path))
    fs.insert_key(_key("k1"))
    db = json.loads(path.read_text(encoding="utf-8"))
    row = db["signing_keys"]["k1"]
    assert row["x"] == "cHVi"
    assert row["enc_algo"] == "AES-GCM"
    assert db["v"] == 1


def test_duplicate_kid(path: Path) -> None:
    fs = JsonFileStore(str(path))
    fs.insert_key(_key("k1"))
    with pytest.raises(DuplicateRecordError):
        fs.insert_key(_key("k1"))


def test_update_and_mark_signed(path: Path) -> None:
    fs = JsonFileStore(str(path))
    fs.insert_key(_key("k1"))
    fs.update_key("k1", lambda k: k.evolve(revoked_at=NOW))
    assert JsonFileStore(str(path)).get_key("k1").revoked_at == NOW  # type: ignore[union-attr]
    with pytest.raises(NotFoundError):
        fs.update_key("missing", lambda k: k)

    fs.add_document(Document(id="d1", title="t", content="c", user_id="u1", created_at="x"))
    fs.mark_signed("d1", "k1", "2025-01-15T00:00:00.000Z")
    doc = fs.get_document("d1")
    assert doc is not None and doc.signed and doc.certificate_id == "k1"
    with pytest.raises(NotFoundError):
        fs.mark_signed("d2", "k1", "2025-01-15T00:00:00.000Z")


def test_corrupt_file_raises(path: Path) -> None:
    path.parent.mkdir(parents=True)
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(StorageReadError):
        JsonFileStore(str(path)).get_key("k1")


def test_wrong_section_type_raises(path: Path) -> None:
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({"signing_keys": []}), encoding="utf-8")
    with pytest.raises(StorageReadError):
        JsonFileStore(str(path)).get_key("k1")


def test_malformed_key_row_raises(path: Path) -> None:
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({"signing_keys": {"k1": {"kid": "k1"}}}), encoding="utf-8")
    with pytest.raises(StorageReadError):
        JsonFileStore(str(path)).get_key("k1")


def test_no_temp_files_left(path: Path) -> None:
    fs = JsonFileStore(str(path))
    for i in range(5):
        fs.insert_key(_key(f"k{i}"))
    leftovers = [p for p in path.parent.iterdir() if p.name.endswith(".tmp")]
    assert leftovers == []


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
def test_file_permissions_0600(path: Path) -> None:
    fs = JsonFileStore(str(path))
    fs.insert_key(_key("k1"))
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o600


def test_concurrent_instances_do_not_lose_writes(path: Path) -> None:
    """A write from another instance waits for an in-flight update and sees its result."""
    a = JsonFileStore(str(path))
    b = JsonFileStore(str(path))
    a.insert_key(_key("k1"))
    sig = DocumentSignature("doc-1", "k1", "0" * 64, "c2ln", "u1", NOW)
    writer = threading.Thread(target=b.insert_signature, args=(sig,))

    def revoke_while_b_writes(key: SigningKey) -> SigningKey:
        writer.start()
        writer.join(timeout=0.3)
        assert writer.is_alive(), "second instance must wait for the lock"
        return key.evolve(revoked_at=NOW)

    a.update_key("k1", revoke_while_b_writes)
    writer.join(timeout=10)
    assert not writer.is_alive()

    fresh = JsonFileStore(str(path))
    assert len(fresh.signatures_for("doc-1")) == 1
    assert fresh.get_key("k1").revoked_at == NOW  # type: ignore[union-attr]


def test_lock_file_beside_store(path: Path) -> None:
    fs = JsonFileStore(str(path))
    fs.add_user("u1")
    assert path.with_name("custody.json.lock").exists()


def test_lone_surrogate_text_round_trips(path: Path) -> None:
    title = json.loads('"bad \\ud800 title"')
    fs = JsonFileStore(str(path))
    fs.add_document(Document(id="d1", title=title, content="c", user_id="u1", created_at="x"))
    assert JsonFileStore(str(path)).get_document("d1").title == title  # type: ignore[union-attr]
