"""Public key registry shared by the two nodes."""

from .registry import (
    InMemoryKeyStore,
    KeyStore,
    PublicKeyRegistry,
    RegistryEntry,
    RegistrySnapshot,
)

__all__ = [
    "InMemoryKeyStore",
    "KeyStore",
    "PublicKeyRegistry",
    "RegistryEntry",
    "RegistrySnapshot",
]
