from __future__ import annotations

import concurrent.futures

import pytest

from custody.crypto import codec
from custody.crypto import gate as gate_mod
from custody.crypto.gate import (
    DEFAULT_ITERATIONS,
    MIN_ITERATIONS,
    PassphraseGate,
)
from custody.exceptions import ForbiddenError, ValidationError

PASS = "CA-Secret!1"


@pytest.fixture(scope="module")
def gate() -> PassphraseGate:
    return PassphraseGate()


@pytest.fixture(scope="module")
def stored(gate: PassphraseGate) -> str:
    return gate.hash(PASS)


def test_hash_format(stored: str) -> None:
    tag, iters, salt_b64, dk_b64 = stored.split(":")
    assert tag == "pbkdf2"
    assert int(iters) == DEFAULT_ITERATIONS
    assert len(codec.decode(salt_b64)) == 16
    assert len(codec.decode(dk_b64)) == 32


def test_verify_roundtrip(gate: PassphraseGate, stored: str) -> None:
    assert gate.verify(PASS, stored)
    assert not gate.verify("CA-Secret!2", stored)
    assert not gate.verify("", stored)


def test_same_passphrase_different_salt(gate: PassphraseGate, stored: str) -> None:
    other = gate.hash(PASS)
    assert other != stored
    assert gate.verify(PASS, other)


def test_verify_uses_iterations_from_record() -> None:
    """A record written with a higher cost stays verifiable by a default gate."""
    strong = PassphraseGate(iterations=MIN_ITERATIONS + 1000)
    record = strong.hash(PASS)
    assert record.split(":")[1] == str(MIN_ITERATIONS + 1000)
    assert PassphraseGate().verify(PASS, record)


@pytest.mark.parametrize(
    "malformed",
    [
        "",
        "pbkdf2",
        "pbkdf2:100000:AAAA",
        "argon2:100000:AAAAAAAAAAAAAAAAAAAAAA==:AAAA",
        "pbkdf2:abc:AAAAAAAAAAAAAAAAAAAAAA==:AAAA",
        "pbkdf2:-5:AAAAAAAAAAAAAAAAAAAAAA==:AAAA",
        "pbkdf2:0:AAAAAAAAAAAAAAAAAAAAAA==:AAAA",
        "pbkdf2:100000:!!!:AAAA",
        "pbkdf2:100000:AAAAAAAAAAAAAAAAAAAAAA==:",
        "pbkdf2:100000:AAAAAAAAAAAAAAAAAAAAAA==:AAAA:extra",
    ],
)
def test_verify_malformed_returns_false(gate: PassphraseGate, malformed: str) -> None:
    assert gate.verify(PASS, malformed) is False


def test_verify_non_string_record_returns_false(gate: PassphraseGate) -> None:
    assert gate.verify(PASS, None) is False  # type: ignore[arg-type]


def test_hash_rejects_empty(gate: PassphraseGate) -> None:
    with pytest.raises(ValidationError):
        gate.hash("")


def test_iterations_below_minimum_rejected() -> None:
    with pytest.raises(ValidationError):
        PassphraseGate(iterations=MIN_ITERATIONS - 1)


def test_rotate_success(gate: PassphraseGate, stored: str) -> None:
    new_record = gate.rotate(PASS, "CA-Another#2", stored)
    assert gate.verify("CA-Another#2", new_record)
    assert not gate.verify(PASS, new_record)


def test_rotate_wrong_old_forbidden(gate: PassphraseGate, stored: str) -> None:
    with pytest.raises(ForbiddenError):
        gate.rotate("CA-Wrong!!", "CA-Another#2", stored)


def test_rotate_same_passphrase_rejected(gate: PassphraseGate, stored: str) -> None:
    with pytest.raises(ValidationError):
        gate.rotate(PASS, PASS, stored)


def test_needs_rehash() -> None:
    low = PassphraseGate().hash(PASS)
    assert PassphraseGate(iterations=DEFAULT_ITERATIONS * 2).needs_rehash(low)
    assert not PassphraseGate().needs_rehash(low)
    assert PassphraseGate().needs_rehash("garbage")


def test_hash_uses_utils_rng(monkeypatch: pytest.MonkeyPatch, gate: PassphraseGate) -> None:
    calls = {"n": 0}

    def fake_rng(n: int) -> bytes:
        calls["n"] += 1
        assert n == 16
        return bytes(range(16))

    monkeypatch.setattr(gate_mod, "generate_random_bytes", fake_rng, raising=True)
    record = gate.hash(PASS)
    assert codec.decode(record.split(":")[2]) == bytes(range(16))
    assert calls["n"] == 1


def test_verify_parallel(gate: PassphraseGate, stored: str) -> None:
    with concurrent.futures.ThreadPoolExecutor(max_workers=4) as ex:
        results = list(ex.map(lambda p: gate.verify(p, stored), [PASS, "CA-x!yyyyy"] * 4))
    assert results == [True, False] * 4
