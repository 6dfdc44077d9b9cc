"""
RU: Хранилища ядра: протоколы и две реализации (в памяти и JSON-файл).
EN: Store contracts plus in-memory and JSON file backends.
"""

from custody.storage.file_store import JsonFileStore
from custody.storage.memory import InMemoryStore
from custody.storage.protocols import (
    DocumentStore,
    KeyMutator,
    SignatureStore,
    SigningKeyStore,
    UserDirectory,
)

__all__ = [
    "JsonFileStore",
    "InMemoryStore",
    "DocumentStore",
    "KeyMutator",
    "SignatureStore",
    "SigningKeyStore",
    "UserDirectory",
]
