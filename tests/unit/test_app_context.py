from __future__ import annotations

import json
from pathlib import Path
from typing import Iterator

import pytest

from custody.app_context import AppContext, get_app_context, reset_app_context
from custody.config import CustodyConfig
from custody.crypto import codec
from custody.exceptions import ConfigurationError, ValidationError
from custody.storage.file_store import JsonFileStore
from custody.storage.memory import InMemoryStore

MASTER_KEY = bytes(range(32))
OWNER = "user-1"


@pytest.fixture(autouse=True)
def _fresh_context() -> Iterator[None]:
    reset_app_context()
    yield
    reset_app_context()


def test_builds_in_memory_by_default(config: CustodyConfig) -> None:
    ctx = AppContext(config=config)
    assert isinstance(ctx.store, InMemoryStore)
    assert ctx.service.registry is ctx.registry
    assert ctx.service.verifier is ctx.verifier
    assert ctx.master_key() == MASTER_KEY


def test_builds_file_store(tmp_path: Path) -> None:
    cfg = CustodyConfig(store_path=str(tmp_path / "custody.json"))
    ctx = AppContext(config=cfg)
    assert isinstance(ctx.store, JsonFileStore)


def test_policy_follows_config() -> None:
    cfg = CustodyConfig(passphrase_prefix="XY", passphrase_min_length=10)
    ctx = AppContext(config=cfg, store=InMemoryStore(users=[OWNER]))
    ctx.policy.check("XY-Secret!1")
    with pytest.raises(ValidationError):
        ctx.policy.check("CA-Secret!1")


def test_master_key_read_lazily() -> None:
    ctx = AppContext(config=CustodyConfig(), store=InMemoryStore(users=[OWNER]))
    with pytest.raises(ConfigurationError):
        ctx.registry.create(OWNER, None, "CA-Secret!1")


def test_end_to_end_through_context(tmp_path: Path) -> None:
    cfg = CustodyConfig(
        master_key_b64=codec.encode(MASTER_KEY),
        store_path=str(tmp_path / "custody.json"),
    )
    ctx = AppContext(config=cfg)
    ctx.store.add_user(OWNER)
    key = ctx.registry.create(OWNER, None, "CA-Secret!1")

    reopened = AppContext(config=cfg)
    assert reopened.registry.get(key.kid).assigned_to == OWNER
    assert reopened.registry.find_usable_for(OWNER).kid == key.kid


def test_singleton_and_reset(config: CustodyConfig) -> None:
    first = get_app_context(config=config)
    assert get_app_context() is first
    reset_app_context()
    assert get_app_context(config=config) is not first


def test_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MASTER_KEY_B64", codec.encode(MASTER_KEY))
    monkeypatch.delenv("CUSTODY_STORE_PATH", raising=False)
    assert get_app_context().master_key() == MASTER_KEY


def test_config_file_layered_under_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    (tmp_path / "custody.json").write_text(
        json.dumps({"pbkdf2_iterations": 200_000, "passphrase_prefix": "XY"}), encoding="utf-8"
    )
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("CUSTODY_PASSPHRASE_PREFIX", "ZZ")
    monkeypatch.delenv("CUSTODY_PBKDF2_ITERATIONS", raising=False)
    monkeypatch.delenv("CUSTODY_STORE_PATH", raising=False)
    ctx = AppContext()
    assert ctx.config.pbkdf2_iterations == 200_000
    assert ctx.gate.iterations == 200_000
    assert ctx.config.passphrase_prefix == "ZZ"
