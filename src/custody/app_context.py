"""
Dependency injection context for the custody core.

Builds stores, gate, policy, registry, signer, verifier and service from a
CustodyConfig. Without an explicit config, custody.json (load_config) supplies
the defaults and environment variables override them. The master key is resolved through load_master_key() each time
key material is touched, so the context can be built before it is configured.
"""

from __future__ import annotations

from typing import Optional, Union

from custody import load_config
from custody.config import CustodyConfig, load_master_key
from custody.crypto.envelope import EnvelopeCipher
from custody.crypto.gate import PassphraseGate
from custody.crypto.policy import InstitutionalPassphrasePolicy, PassphrasePolicy
from custody.registry import SigningKeyRegistry
from custody.service import CustodyService
from custody.signer import DocumentSigner
from custody.storage.file_store import JsonFileStore
from custody.storage.memory import InMemoryStore
from custody.verifier import DocumentVerifier

Store = Union[InMemoryStore, JsonFileStore]


class AppContext:
    """
    Dependency Injection context (singleton) for the custody core.

    A single store object serves as key, signature, document and user backend.
    """

    def __init__(
        self,
        config: Optional[CustodyConfig] = None,
        store: Optional[Store] = None,
        policy: Optional[PassphrasePolicy] = None,
    ) -> None:
        self.config: CustodyConfig = (
            config
            if config is not None
            else CustodyConfig.from_env(defaults=load_config())
        )

        if store is None:
            store = (
                JsonFileStore(self.config.store_path)
                if self.config.store_path
                else InMemoryStore()
            )
        self.store: Store = store

        if policy is None:
            policy = InstitutionalPassphrasePolicy(
                prefix=self.config.passphrase_prefix,
                min_length=self.config.passphrase_min_length,
                require_symbol=self.config.passphrase_require_symbol,
            )
        self.policy: PassphrasePolicy = policy
        self.gate = PassphraseGate(self.config.pbkdf2_iterations)
        self.cipher = EnvelopeCipher()

        self.registry = SigningKeyRegistry(
            keys=self.store,
            users=self.store,
            master_key_provider=self.master_key,
            gate=self.gate,
            policy=self.policy,
            cipher=self.cipher,
        )
        self.signer = DocumentSigner(
            registry=self.registry,
            documents=self.store,
            signatures=self.store,
            master_key_provider=self.master_key,
        )
        self.verifier = DocumentVerifier(
            documents=self.store, signatures=self.store, keys=self.store
        )
        self.service = CustodyService(self.registry, self.signer, self.verifier)

    def master_key(self) -> bytes:
        return load_master_key(self.config)


_ctx: Optional[AppContext] = None


def get_app_context(
    config: Optional[CustodyConfig] = None,
    store: Optional[Store] = None,
) -> AppContext:
    """Returns the global app context (singleton)."""
    global _ctx
    if _ctx is None:
        _ctx = AppContext(config=config, store=store)
    return _ctx


def reset_app_context() -> None:
    """Drop the global context (tests, reconfiguration)."""
    global _ctx
    _ctx = None


__all__ = ["AppContext", "get_app_context", "reset_app_context"]
