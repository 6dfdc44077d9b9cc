from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, List

import pytest

from custody.config import CustodyConfig
from custody.crypto import codec
from custody.crypto.envelope import EnvelopeCipher
from custody.crypto.gate import PassphraseGate
from custody.crypto.policy import InstitutionalPassphrasePolicy
from custody.model.document import Document
from custody.registry import SigningKeyRegistry
from custody.service import CustodyService
from custody.signer import DocumentSigner
from custody.storage.memory import InMemoryStore
from custody.verifier import DocumentVerifier

MASTER_KEY: bytes = bytes(range(32))
OTHER_MASTER_KEY: bytes = bytes(range(1, 33))
PASSPHRASE: str = "CA-Secret!1"
OWNER: str = "user-1"
ADMIN: str = "admin-1"


class FakeClock:
    """Mutable UTC clock for lifecycle tests."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def master_key() -> bytes:
    return MASTER_KEY


@pytest.fixture
def document() -> Document:
    return Document(
        id="doc-1",
        title="Surat Keterangan",
        content="Isi dokumen — résumé",
        user_id=OWNER,
        created_at="2025-01-10T08:30:00.000Z",
        serial="SN-0001",
    )


@pytest.fixture
def store(document: Document) -> InMemoryStore:
    return InMemoryStore(users=[OWNER, ADMIN], documents=[document])


@pytest.fixture
def master_keys() -> List[bytes]:
    """Holder for the key the providers return; tests may swap or clear it."""
    return [MASTER_KEY]


@pytest.fixture
def master_key_provider(master_keys: List[bytes]) -> Callable[[], bytes]:
    from custody.exceptions import ConfigurationError

    def provide() -> bytes:
        if not master_keys:
            raise ConfigurationError("Master key is not configured")
        return master_keys[0]

    return provide


@pytest.fixture
def registry(
    store: InMemoryStore,
    master_key_provider: Callable[[], bytes],
    clock: FakeClock,
) -> SigningKeyRegistry:
    return SigningKeyRegistry(
        keys=store,
        users=store,
        master_key_provider=master_key_provider,
        gate=PassphraseGate(),
        policy=InstitutionalPassphrasePolicy(),
        cipher=EnvelopeCipher(),
        clock=clock,
    )


@pytest.fixture
def signer(
    registry: SigningKeyRegistry,
    store: InMemoryStore,
    master_key_provider: Callable[[], bytes],
    clock: FakeClock,
) -> DocumentSigner:
    return DocumentSigner(registry, store, store, master_key_provider, clock=clock)


@pytest.fixture
def verifier(store: InMemoryStore, clock: FakeClock) -> DocumentVerifier:
    return DocumentVerifier(store, store, store, clock=clock)


@pytest.fixture
def service(
    registry: SigningKeyRegistry, signer: DocumentSigner, verifier: DocumentVerifier
) -> CustodyService:
    return CustodyService(registry, signer, verifier)


@pytest.fixture
def config() -> CustodyConfig:
    return CustodyConfig(master_key_b64=codec.encode(MASTER_KEY))
