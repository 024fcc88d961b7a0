"""Persistence backends for tcnauth.

This package provides the two stores the session core depends on:
- KeyValueStore: plain persisted key space (local JSON file or memory)
- SecretStore: capability-gated encrypted store for remembered credentials
"""

from tcnauth.storage.base import KeyValueStore, SecretStore
from tcnauth.storage.keys import SESSION_KEYS, SecretKey, StorageKey
from tcnauth.storage.local import LocalKeyValueStore
from tcnauth.storage.memory import MemoryKeyValueStore, MemorySecretStore
from tcnauth.storage.secure import EncryptedSecretStore, NullSecretStore

__all__ = [
    "KeyValueStore",
    "SecretStore",
    "StorageKey",
    "SecretKey",
    "SESSION_KEYS",
    "LocalKeyValueStore",
    "MemoryKeyValueStore",
    "MemorySecretStore",
    "EncryptedSecretStore",
    "NullSecretStore",
]
